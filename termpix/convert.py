"""Contain functions which convert pillow images to encoded image formats."""

from __future__ import annotations

import io
import logging
import subprocess  # S404 - Security implications have been considered
from typing import TYPE_CHECKING, NamedTuple

from prompt_toolkit.filters.utils import to_filter

from termpix.errors import ConverterNotFoundError
from termpix.filters import command_exists, have_modules

if TYPE_CHECKING:
    from collections.abc import Callable

    from PIL.Image import Image as PilImage
    from prompt_toolkit.filters import Filter, FilterOrBool

log = logging.getLogger(__name__)

DEFAULT_JPEG_QUALITY = 93


class Converter(NamedTuple):
    """Hold a conversion function and its weight."""

    func: Callable[[PilImage], str]
    filter_: Filter
    weight: int = 1


sixel_converters: list[Converter] = []


def register_sixel(filter_: FilterOrBool = True, weight: int = 1) -> Callable:
    """Add a converter which renders pillow images as sixels."""

    def decorator(func: Callable[[PilImage], str]) -> Callable[[PilImage], str]:
        sixel_converters.append(
            Converter(func=func, filter_=to_filter(filter_), weight=weight)
        )
        return func

    return decorator


def is_paletted(image: PilImage) -> bool:
    """Determine if an image uses a colour palette."""
    return image.mode == "P"


def to_png(image: PilImage) -> bytes:
    """Encode a pillow image as PNG data."""
    with io.BytesIO() as output:
        image.save(output, format="PNG")
        return output.getvalue()


def to_jpeg(image: PilImage, quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
    """Encode a pillow image as JPEG data.

    JPEG has no alpha channel or palette, so other image modes are converted to RGB.
    """
    if image.mode not in ("RGB", "L", "CMYK"):
        image = image.convert("RGB")
    with io.BytesIO() as output:
        image.save(output, format="JPEG", quality=quality)
        return output.getvalue()


def to_sixel(image: PilImage) -> str:
    """Render a pillow image as sixels using the first usable converter.

    Raises:
        ConverterNotFoundError: If no sixel converter is usable
    """
    for converter in sorted(sixel_converters, key=lambda x: x.weight):
        if converter.filter_():
            log.debug("Converting image to sixels using %s", converter.func.__name__)
            return converter.func(image)
    raise ConverterNotFoundError("no sixel converter available")


def _call_subproc(data: bytes, cmd: list[str]) -> bytes:
    """Call a command with data on its standard input and return its output."""
    log.debug("Running external command `%s`", cmd)
    return subprocess.run(  # noqa: S603
        cmd, input=data, stdout=subprocess.PIPE, stderr=subprocess.DEVNULL, check=True
    ).stdout


@register_sixel(filter_=have_modules("timg"), weight=1)
def pil_to_sixel_py_timg(image: PilImage) -> str:
    """Convert a pillow image to sixels :py:mod:`timg`."""
    import timg

    return timg.SixelMethod(image).to_string()


@register_sixel(filter_=command_exists("img2sixel"), weight=2)
def pil_to_sixel_img2sixel(image: PilImage) -> str:
    """Convert a pillow image to sixels :command:`img2sixel`."""
    return _call_subproc(to_png(image), ["img2sixel", "-I"]).decode()


@register_sixel(filter_=command_exists("magick"), weight=3)
def pil_to_sixel_magick(image: PilImage) -> str:
    """Convert a pillow image to sixels using ``imagemagick``."""
    return _call_subproc(to_png(image), ["magick", "-", "sixel:-"]).decode()
