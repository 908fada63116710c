"""Define enumerations used throughout termpix."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from termpix.errors import TermGraphicsNotAvailableError, UnknownTermTypeError

if TYPE_CHECKING:
    from typing import IO, Any

    from PIL.Image import Image as PilImage


class TermType(Enum):
    """A terminal graphics type.

    :py:attr:`DEFAULT` is a sentinel meaning the type is resolved when first used,
    while :py:attr:`NONE` means no terminal graphics at all.
    """

    NONE = 0
    KITTY = 1
    ITERM = 2
    SIXEL = 3
    DEFAULT = 255

    def __str__(self) -> str:
        """Return the lower-case name of the graphics type."""
        return _NAMES[self]

    @property
    def env_value(self) -> str:
        """Return the value used to select this type in the environment."""
        if self is TermType.DEFAULT:
            return ""
        return str(self)

    def to_text(self) -> str:
        """Serialize the graphics type to its text token.

        Raises:
            UnknownTermTypeError: If the type cannot be serialized
        """
        if self in _TOKENS:
            return _TOKENS[self]
        raise UnknownTermTypeError(f"unknown term type: {self!r}")

    @classmethod
    def from_text(cls, text: str | bytes) -> TermType:
        """Parse a graphics type from its text token.

        An empty token gives :py:attr:`DEFAULT`, and an unrecognised token gives
        :py:attr:`NONE`.
        """
        if isinstance(text, bytes):
            text = text.decode(errors="replace")
        return _FROM_TOKEN.get(text.lower(), cls.NONE)

    @classmethod
    def coerce(cls, value: TermType | int | str) -> TermType:
        """Convert a graphics type, integer value or text token to a graphics type.

        Raises:
            UnknownTermTypeError: If an integer value is not a known graphics type
        """
        if isinstance(value, TermType):
            return value
        if isinstance(value, (str, bytes)):
            return cls.from_text(value)
        try:
            return cls(value)
        except ValueError as error:
            raise UnknownTermTypeError(f"unknown term type: {value!r}") from error

    def available(self) -> bool:
        """Determine if this graphics type can be used in the current terminal."""
        from termpix.encoders import get_encoder

        encoder = get_encoder(self)
        return encoder is not None and encoder.available()

    def encode(self, stream: IO[Any], image: PilImage) -> None:
        """Write an image to a stream using this graphics type.

        Raises:
            TermGraphicsNotAvailableError: If no encoder is registered for the type
        """
        from termpix.encoders import get_encoder

        if (encoder := get_encoder(self)) is None:
            raise TermGraphicsNotAvailableError()
        encoder.encode(stream, image)


_NAMES = {
    TermType.NONE: "none",
    TermType.KITTY: "kitty",
    TermType.ITERM: "iterm",
    TermType.SIXEL: "sixel",
    TermType.DEFAULT: "default",
}

_TOKENS = {
    TermType.NONE: "none",
    TermType.KITTY: "kitty",
    TermType.ITERM: "iterm",
    TermType.SIXEL: "sixel",
    TermType.DEFAULT: "",
}

_FROM_TOKEN = {
    "kitty": TermType.KITTY,
    "iterm": TermType.ITERM,
    "sixel": TermType.SIXEL,
    "": TermType.DEFAULT,
}
