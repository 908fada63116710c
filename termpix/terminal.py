"""Contain functions related to querying terminal features."""

from __future__ import annotations

import logging
import os
import re
import sys
import threading
from contextlib import contextmanager
from functools import lru_cache
from typing import TYPE_CHECKING

from termpix.errors import GraphicsError, NonTTYError, TermResponseTimedOutError

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence
    from typing import IO, Any

log = logging.getLogger(__name__)

# The time to wait for a terminal response before nudging the terminal
QUERY_TIMEOUT = 1 / 16
# Maximum number of bytes of terminal response to capture
RESPONSE_SIZE = 1024

# CSI Ps c - Send Device Attributes (Primary DA)
DEVICE_ATTRIBUTES_QUERY = "\x1b[0c"
# CSI 6 n - Report Cursor Position, only sent so some bytes arrive on the input
CURSOR_POSITION_NUDGE = "\x1b\x1b[6n"
# Ps = 4 -> Sixel graphics
SIXEL_ATTRIBUTE = 4

_NUMBER_RE = re.compile(rb"\d+")


@lru_cache
def _have_termios_tty() -> bool:
    try:
        import termios  # noqa F401
        import tty  # noqa F401
    except ModuleNotFoundError:
        return False
    else:
        return True


def _is_tty(stream: IO[Any] | None) -> bool:
    """Determine if a stream is connected to a real terminal."""
    # The standard streams are ``None`` when detached
    if stream is None:
        return False
    try:
        isatty = stream.isatty()
    except ValueError:
        # Closed
        return False
    return (
        isatty
        # Pseudo-ttys used to fake color output should never receive queries
        and not getattr(stream, "fake_tty", False)
    )


@contextmanager
def raw_mode(fd: int) -> Iterator[None]:
    """Put a terminal into raw mode, restoring its original mode on exit."""
    import termios
    import tty

    old = termios.tcgetattr(fd)
    try:
        tty.setraw(fd)
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSANOW, old)


class ResponseTimer:
    """A timer which nudges the terminal if it does not respond in time.

    If the timer expires before it is stopped, a cursor position request is written
    to the terminal. This forces some bytes to arrive on the terminal's input, so a
    pending blocking read is able to return.
    """

    def __init__(self, fd: int, timeout: float = QUERY_TIMEOUT) -> None:
        """Create a new timer which writes to the given file descriptor."""
        self.fd = fd
        self.timeout = timeout
        self.fired = False
        self._stopped = threading.Event()
        self._lock = threading.Lock()
        self._thread = threading.Thread(
            target=self._run, name="termpix-response-timer", daemon=True
        )

    def start(self) -> None:
        """Start the timer."""
        self._thread.start()

    def _run(self) -> None:
        if self._stopped.wait(self.timeout):
            return
        with self._lock:
            if self._stopped.is_set():
                return
            self.fired = True
        log.debug("No terminal response after %ss, nudging terminal", self.timeout)
        try:
            os.write(self.fd, CURSOR_POSITION_NUDGE.encode())
        except OSError:
            log.debug("Could not nudge the terminal", exc_info=True)

    def stop(self) -> bool:
        """Stop the timer.

        Returns:
            :py:const:`True` if the timer was stopped before it fired

        """
        with self._lock:
            self._stopped.set()
            return not self.fired

    def join(self) -> None:
        """Wait for the timer's helper thread to finish."""
        self._thread.join()


def request_response(
    query: str,
    input_: IO[Any] | None = None,
    output: IO[Any] | None = None,
) -> bytes:
    """Send a query to the terminal and capture its response.

    Only the first :py:data:`RESPONSE_SIZE` bytes of the response are captured. The
    response is only returned if it arrived after the terminal had to be nudged;
    a read which completes before the timer fires gives an empty response.

    Args:
        query: The control sequence to send to the terminal
        input_: The terminal's input stream, defaults to the standard input
        output: The terminal's output stream, defaults to the standard output

    Returns:
        The raw bytes received from the terminal

    Raises:
        NonTTYError: If either stream is not connected to a terminal
        TermResponseTimedOutError: If the terminal did not respond after it was
            nudged

    """
    input_ = input_ or sys.stdin
    output = output or sys.stdout
    if not (_is_tty(input_) and _is_tty(output)):
        raise NonTTYError()
    in_fd = input_.fileno()
    out_fd = output.fileno()

    read_error: OSError | None = None
    with raw_mode(in_fd):
        log.debug("Sending terminal query %r", query)
        os.write(out_fd, query.encode())
        timer = ResponseTimer(out_fd)
        timer.start()
        try:
            data = os.read(in_fd, RESPONSE_SIZE)
        except OSError as error:
            data = b""
            read_error = error
        finally:
            stopped = timer.stop()
            timer.join()

    if stopped:
        if read_error is not None:
            raise read_error
        log.debug("Terminal read completed before the response timer fired")
        return b""
    if data:
        log.debug("Got terminal response %r", data)
        return data
    raise TermResponseTimedOutError() from read_error


def parse_attributes(data: bytes) -> list[int]:
    """Extract the decimal numbers from a device attributes response."""
    return [int(match) for match in _NUMBER_RE.findall(data)]


def term_attributes(
    input_: IO[Any] | None = None, output: IO[Any] | None = None
) -> list[int]:
    """Request the terminal's primary device attributes.

    Responses look like ``CSI ? 62 ; Ps ; ... c``, where the first value identifies
    the terminal and the following values list the features it supports.

    See: https://invisible-island.net/xterm/ctlseqs/ctlseqs.html
    """
    return parse_attributes(
        request_response(DEVICE_ATTRIBUTES_QUERY, input_=input_, output=output)
    )


def has_sixel_attribute(attrs: Sequence[int]) -> bool:
    """Check if a list of device attributes declares sixel support.

    The first value is the terminal's identifier, so is ignored.
    """
    return SIXEL_ATTRIBUTE in attrs[1:]


def has_sixel_support(
    input_: IO[Any] | None = None, output: IO[Any] | None = None
) -> bool:
    """Determine if the terminal supports sixel graphics.

    Any failure to query the terminal is reported as no support.
    """
    if not _have_termios_tty():
        return False
    import termios

    try:
        attrs = term_attributes(input_, output)
    except (GraphicsError, OSError, termios.error) as error:
        log.debug("Could not query terminal device attributes: %s", error)
        return False
    return has_sixel_attribute(attrs)
