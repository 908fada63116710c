"""This package renders images as terminal graphics."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

__app_name__ = "termpix"
__version__ = "0.1.0"
__strapline__ = "Images in the terminal"
__author__ = "termpix contributors"
__copyright__ = f"© 2026, {__author__}"
__license__ = "MIT"

# Library logging is left for the application to configure
logging.getLogger(__name__).addHandler(logging.NullHandler())

if TYPE_CHECKING:
    from typing import IO, Any

    from PIL.Image import Image as PilImage


def encode(stream: IO[Any], image: PilImage) -> None:
    """Write an image to a stream using the best available graphics protocol."""
    from termpix.enums import TermType

    TermType.DEFAULT.encode(stream, image)


def available() -> bool:
    """Determine if any terminal graphics protocol is available."""
    from termpix.enums import TermType

    return TermType.DEFAULT.available()
