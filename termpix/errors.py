"""Define the errors raised while producing terminal graphics."""

from __future__ import annotations


class GraphicsError(Exception):
    """Base class for terminal graphics errors."""

    message = "terminal graphics error"

    def __init__(self, message: str | None = None) -> None:
        """Create a new error, falling back to the default message."""
        super().__init__(message or self.message)


class NonTTYError(GraphicsError):
    """The terminal streams are not connected to an interactive terminal."""

    message = "non tty"


class TermResponseTimedOutError(GraphicsError):
    """The terminal did not respond to a query in time."""

    message = "term response timed out"


class TermGraphicsNotAvailableError(GraphicsError):
    """No terminal graphics protocol is usable."""

    message = "term graphics not available"


class UnknownTermTypeError(GraphicsError):
    """A terminal graphics type is outside of the known set."""

    message = "unknown term type"


class ConverterNotFoundError(GraphicsError):
    """No converter is installed for the requested output format."""

    message = "no converter available"
