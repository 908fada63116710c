"""Define encoders which write images to a stream as terminal graphics."""

from __future__ import annotations

import base64
import io
import logging
import threading
from abc import ABCMeta, abstractmethod
from typing import TYPE_CHECKING, cast

from termpix.config import get_config, graphics_override
from termpix.convert import is_paletted, to_jpeg, to_png, to_sixel
from termpix.enums import TermType
from termpix.errors import TermGraphicsNotAvailableError
from termpix.filters import in_ghostty, in_iterm, in_kitty, in_mintty, in_wezterm
from termpix.framing import iterm_frame, kitty_frames, sixel_frames
from termpix.terminal import has_sixel_support

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import IO, Any

    from PIL.Image import Image as PilImage

    from termpix.config import Config

log = logging.getLogger(__name__)


def _write(stream: IO[Any], chunks: Iterable[str]) -> None:
    """Write escape sequences to a text or binary stream."""
    binary = not isinstance(stream, io.TextIOBase) and "b" in getattr(
        stream, "mode", "b"
    )
    for chunk in chunks:
        stream.write(chunk.encode() if binary else chunk)


class Encoder(metaclass=ABCMeta):
    """Base class for terminal graphics encoders."""

    def __init__(
        self, config: Config | None = None, newline: bool | None = None
    ) -> None:
        """Create a new encoder.

        Args:
            config: The configuration to use. The process-wide configuration is used
                if none is given
            newline: Whether to write a line terminator after each image. The
                configured value is used if none is given
        """
        self._config = config
        self._newline = newline

    @property
    def config(self) -> Config:
        """Return the configuration used by this encoder."""
        return self._config or get_config()

    @property
    def newline(self) -> bool:
        """Whether a line terminator is written after each image."""
        if self._newline is None:
            return bool(self.config.newline)
        return self._newline

    @property
    def override(self) -> TermType:
        """Return the graphics type forced by the configuration."""
        return graphics_override(self.config.graphics)

    @abstractmethod
    def available(self) -> bool:
        """Determine if the encoder can be used in the current terminal."""

    @abstractmethod
    def frames(self, image: PilImage) -> Iterable[str]:
        """Generate the escape sequences which display an image."""

    def encode(self, stream: IO[Any], image: PilImage) -> None:
        """Write an image to a stream."""
        _write(stream, self.frames(image))
        if self.newline:
            _write(stream, ["\n"])

    def __repr__(self) -> str:
        """Represent the encoder as a string."""
        return f"{self.__class__.__name__}()"


class KittyEncoder(Encoder):
    """A kitty terminal graphics encoder.

    See: https://sw.kovidgoyal.net/kitty/graphics-protocol/
    """

    def available(self) -> bool:
        """Determine if kitty graphics are supported."""
        override = self.override
        return override != TermType.NONE and (
            override == TermType.KITTY or (in_kitty | in_ghostty)()
        )

    def frames(self, image: PilImage) -> Iterable[str]:
        """Transmit a PNG version of the image in chunks."""
        return kitty_frames(base64.standard_b64encode(to_png(image)))


class ItermEncoder(Encoder):
    """An iTerm terminal graphics encoder.

    See: https://iterm2.com/documentation-images.html
    """

    def available(self) -> bool:
        """Determine if iTerm graphics are supported."""
        override = self.override
        return override != TermType.NONE and (
            override == TermType.ITERM or (in_mintty | in_iterm | in_wezterm)()
        )

    def frames(self, image: PilImage) -> Iterable[str]:
        """Send the image as a single inline file.

        Paletted images are sent losslessly as PNGs, and other images as JPEGs.
        """
        if is_paletted(image):
            data = to_png(image)
        else:
            data = to_jpeg(image, quality=self.config.jpeg_quality)
        return [iterm_frame(base64.standard_b64encode(data))]


class SixelEncoder(Encoder):
    """A sixel terminal graphics encoder."""

    def available(self) -> bool:
        """Determine if sixel graphics are supported.

        Unless forced by the configuration, the terminal is queried for support.
        """
        override = self.override
        return override != TermType.NONE and (
            override == TermType.SIXEL or has_sixel_support()
        )

    def frames(self, image: PilImage) -> Iterable[str]:
        """Render the image as sixels."""
        return sixel_frames(to_sixel(image))


class DefaultEncoder(Encoder):
    """An encoder which uses the first available of several encoders.

    The choice of encoder is made once, when first needed, and is then kept for the
    lifetime of the encoder.
    """

    def __init__(self, *encoders: Encoder) -> None:
        """Create a wrapper for multiple terminal graphics encoders."""
        super().__init__()
        self.encoders = encoders
        self._lock = threading.Lock()
        self._resolved = False
        self._encoder: Encoder | None = None
        self._error: TermGraphicsNotAvailableError | None = None

    def _resolve(self) -> None:
        """Select the first available encoder."""
        for encoder in self.encoders:
            if encoder.available():
                log.debug("Using %r for terminal graphics", encoder)
                self._encoder = encoder
                return
        log.debug("No terminal graphics encoder is available")
        self._error = TermGraphicsNotAvailableError()

    def resolve(self) -> Encoder:
        """Return the chosen encoder.

        Raises:
            TermGraphicsNotAvailableError: If no encoder is available
        """
        if not self._resolved:
            with self._lock:
                if not self._resolved:
                    self._resolve()
                    self._resolved = True
        if self._error is not None:
            raise self._error.with_traceback(None)
        return cast("Encoder", self._encoder)

    def available(self) -> bool:
        """Determine if any of the wrapped encoders is available."""
        try:
            self.resolve()
        except TermGraphicsNotAvailableError:
            return False
        return True

    def frames(self, image: PilImage) -> Iterable[str]:
        """Generate the escape sequences of the chosen encoder."""
        return self.resolve().frames(image)

    def encode(self, stream: IO[Any], image: PilImage) -> None:
        """Write an image to a stream using the chosen encoder."""
        self.resolve().encode(stream, image)

    def __repr__(self) -> str:
        """Represent the encoder as a string."""
        return f"{self.__class__.__name__}{self.encoders!r}"


_kitty = KittyEncoder()
_iterm = ItermEncoder()
_sixel = SixelEncoder()

ENCODERS: dict[TermType, Encoder] = {
    TermType.KITTY: _kitty,
    TermType.ITERM: _iterm,
    TermType.SIXEL: _sixel,
    TermType.DEFAULT: DefaultEncoder(_kitty, _iterm, _sixel),
}


def get_encoder(term_type: TermType) -> Encoder | None:
    """Return the registered encoder for a graphics type."""
    return ENCODERS.get(term_type)
