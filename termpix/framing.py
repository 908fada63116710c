"""Contain functions which wrap encoded image data in graphics escape sequences.

See:

- https://sw.kovidgoyal.net/kitty/graphics-protocol/
- https://iterm2.com/documentation-images.html
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

KITTY_CHUNK_SIZE = 4096

# Transmit and display a PNG file (f=100), sent in chunks
KITTY_PREAMBLE = "\x1b_Ga=T,f=100,m=1;\x1b\\"

_KITTY_CHUNK_RE = re.compile(r"\x1b_Gm=(?P<m>[01]);(?P<data>[^\x1b]*)\x1b\\")
_ITERM_RE = re.compile(r"\x1b\]1337;File=inline=1:(?P<data>[^\x07]*)\x07")


def kitty_frames(payload: bytes, chunk_size: int = KITTY_CHUNK_SIZE) -> Iterator[str]:
    """Split a base64 encoded PNG into kitty graphics protocol control sequences.

    An empty payload still produces a single final chunk, so the terminal always
    receives a terminating sequence.

    Args:
        payload: The base64 encoded PNG data
        chunk_size: The maximum number of payload bytes in each chunk

    Yields:
        The preamble, then one control sequence per chunk
    """
    yield KITTY_PREAMBLE
    size = len(payload)
    start = 0
    while True:
        end = min(start + chunk_size, size)
        more = int(end < size)
        yield f"\x1b_Gm={more};{payload[start:end].decode('ascii')}\x1b\\"
        if not more:
            break
        start = end


def parse_kitty(data: str) -> bytes:
    """Recover the payload from a stream of kitty graphics chunks.

    Raises:
        ValueError: If the stream does not end with a final chunk
    """
    chunks = list(_KITTY_CHUNK_RE.finditer(data))
    if not chunks or chunks[-1]["m"] != "0":
        raise ValueError("Kitty graphics stream is not terminated")
    return "".join(match["data"] for match in chunks).encode("ascii")


def iterm_frame(payload: bytes) -> str:
    """Wrap a base64 encoded image in an iTerm inline file escape sequence."""
    return f"\x1b]1337;File=inline=1:{payload.decode('ascii')}\x07"


def parse_iterm(data: str) -> bytes:
    """Recover the payload from an iTerm inline file escape sequence.

    Raises:
        ValueError: If no inline file escape sequence is found
    """
    if (match := _ITERM_RE.search(data)) is None:
        raise ValueError("No iTerm inline image found")
    return match["data"].encode("ascii")


def sixel_frames(sixels: str | Iterable[str]) -> Iterator[str]:
    """Pass sixel data from a converter through unchanged."""
    if isinstance(sixels, str):
        yield sixels
    else:
        yield from sixels
