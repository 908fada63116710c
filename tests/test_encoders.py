"""Test the terminal graphics encoders."""

from __future__ import annotations

import base64
import io
import threading
import time
from typing import TYPE_CHECKING

import pytest
from PIL import Image

import termpix
from termpix.config import Config
from termpix.encoders import (
    ENCODERS,
    DefaultEncoder,
    Encoder,
    ItermEncoder,
    KittyEncoder,
    SixelEncoder,
)
from termpix.enums import TermType
from termpix.errors import ConverterNotFoundError, TermGraphicsNotAvailableError
from termpix.framing import parse_iterm, parse_kitty

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from pathlib import Path

    from PIL.Image import Image as PilImage

ENV_VARS = ("TERM", "TERM_PROGRAM", "LC_TERMINAL")


class CountingEncoder(Encoder):
    """An encoder which counts how often its availability is checked."""

    def __init__(self, is_available: bool, delay: float = 0.0) -> None:
        """Create a new counting encoder."""
        super().__init__(config=Config(), newline=False)
        self.is_available = is_available
        self.delay = delay
        self.checks = 0

    def available(self) -> bool:
        """Count the check and report the configured availability."""
        self.checks += 1
        time.sleep(self.delay)
        return self.is_available

    def frames(self, image: PilImage) -> Iterable[str]:
        """Return a marker instead of an image."""
        return ["<image>"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove terminal identification from the environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("termpix.encoders.has_sixel_support", lambda: False)


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., Config]:
    """Return a factory for configurations isolated from the user's config file."""

    def factory(**kwargs: object) -> Config:
        return Config(config_file=tmp_path / "config.json", **kwargs)

    return factory


@pytest.fixture
def image() -> PilImage:
    """Return a small test image."""
    return Image.new("RGB", (8, 4), "blue")


def test_override_none_disables_all(
    monkeypatch: pytest.MonkeyPatch, make_config: Callable[..., Config]
) -> None:
    """Disabling graphics overrides every environment signal."""
    monkeypatch.setenv("TERM", "xterm-kitty")
    monkeypatch.setenv("LC_TERMINAL", "iTerm2")
    monkeypatch.setattr("termpix.encoders.has_sixel_support", lambda: True)
    config = make_config(graphics=TermType.NONE)
    assert not KittyEncoder(config).available()
    assert not ItermEncoder(config).available()
    assert not SixelEncoder(config).available()


def test_override_forces_protocol(make_config: Callable[..., Config]) -> None:
    """A forced protocol is available regardless of the terminal."""
    assert KittyEncoder(make_config(graphics="kitty")).available()
    assert not ItermEncoder(make_config(graphics="kitty")).available()
    assert ItermEncoder(make_config(graphics=TermType.ITERM)).available()
    assert SixelEncoder(make_config(graphics=TermType.SIXEL)).available()
    assert not SixelEncoder(make_config()).available()


@pytest.mark.parametrize("value", ["bogus", "default", "Kitty-please", "auto"])
def test_unknown_override_keeps_detection(
    monkeypatch: pytest.MonkeyPatch, make_config: Callable[..., Config], value: str
) -> None:
    """An override which names no graphics type leaves detection enabled."""
    monkeypatch.delenv("TERMPIX_GRAPHICS", raising=False)
    monkeypatch.setenv("TERM_GRAPHICS", value)
    monkeypatch.setenv("TERM", "xterm-kitty")
    config = make_config()
    config.load()
    assert KittyEncoder(config).available()
    assert KittyEncoder(make_config(graphics=value)).available()
    assert not KittyEncoder(make_config(graphics="NONE")).available()


@pytest.mark.parametrize(
    "name, value, encoder_class",
    [
        ("TERM", "xterm-kitty", KittyEncoder),
        ("TERM_PROGRAM", "ghostty", KittyEncoder),
        ("TERM", "mintty", ItermEncoder),
        ("LC_TERMINAL", "iTerm2", ItermEncoder),
        ("TERM_PROGRAM", "WezTerm", ItermEncoder),
    ],
)
def test_environment_detection(
    monkeypatch: pytest.MonkeyPatch,
    make_config: Callable[..., Config],
    name: str,
    value: str,
    encoder_class: type[Encoder],
) -> None:
    """Terminals are recognised from the environment."""
    config = make_config()
    assert not encoder_class(config).available()
    monkeypatch.setenv(name, value)
    assert encoder_class(config).available()


def test_sixel_uses_terminal_query(
    monkeypatch: pytest.MonkeyPatch, make_config: Callable[..., Config]
) -> None:
    """Sixel support is detected by querying the terminal."""
    monkeypatch.setattr("termpix.encoders.has_sixel_support", lambda: True)
    assert SixelEncoder(make_config()).available()


def test_kitty_encode(make_config: Callable[..., Config], image: PilImage) -> None:
    """Images are sent to kitty as chunked PNG data."""
    stream = io.StringIO()
    KittyEncoder(make_config()).encode(stream, image)
    output = stream.getvalue()
    assert output.startswith("\x1b_Ga=T,f=100,m=1;\x1b\\")
    assert output.endswith("\x1b\\\n")
    png = base64.standard_b64decode(parse_kitty(output))
    assert png.startswith(b"\x89PNG")
    assert Image.open(io.BytesIO(png)).size == (8, 4)


def test_kitty_encode_large_image(make_config: Callable[..., Config]) -> None:
    """Large images are sent in several chunks."""
    noise = Image.effect_noise((128, 128), 100)
    stream = io.StringIO()
    KittyEncoder(make_config(), newline=False).encode(stream, noise)
    output = stream.getvalue()
    assert output.count("m=1;") > 1
    assert output.endswith("\x1b\\")
    assert Image.open(io.BytesIO(base64.b64decode(parse_kitty(output)))).size == (
        128,
        128,
    )


def test_binary_stream(make_config: Callable[..., Config], image: PilImage) -> None:
    """Binary streams receive bytes."""
    stream = io.BytesIO()
    KittyEncoder(make_config()).encode(stream, image)
    assert stream.getvalue().startswith(b"\x1b_Ga=T,f=100,m=1;")


def test_newline_setting(make_config: Callable[..., Config], image: PilImage) -> None:
    """The line terminator can be disabled by configuration or argument."""
    stream = io.StringIO()
    KittyEncoder(make_config(newline=False)).encode(stream, image)
    assert not stream.getvalue().endswith("\n")

    stream = io.StringIO()
    KittyEncoder(make_config(newline=False), newline=True).encode(stream, image)
    assert stream.getvalue().endswith("\n")


def test_iterm_encode_jpeg(make_config: Callable[..., Config], image: PilImage) -> None:
    """Full colour images are sent to iTerm as JPEGs."""
    stream = io.StringIO()
    ItermEncoder(make_config(jpeg_quality=50)).encode(stream, image)
    output = stream.getvalue()
    assert output.startswith("\x1b]1337;File=inline=1:")
    assert output.endswith("\x07\n")
    assert base64.b64decode(parse_iterm(output)).startswith(b"\xff\xd8")


def test_iterm_encode_png(make_config: Callable[..., Config]) -> None:
    """Paletted images are sent to iTerm as PNGs."""
    stream = io.StringIO()
    ItermEncoder(make_config()).encode(stream, Image.new("P", (4, 4)))
    assert base64.b64decode(parse_iterm(stream.getvalue())).startswith(b"\x89PNG")


def test_sixel_encode(
    monkeypatch: pytest.MonkeyPatch, make_config: Callable[..., Config], image: PilImage
) -> None:
    """Sixel converter output is written unchanged."""
    monkeypatch.setattr("termpix.encoders.to_sixel", lambda image: "\x1bPq~~\x1b\\")
    stream = io.StringIO()
    SixelEncoder(make_config()).encode(stream, image)
    assert stream.getvalue() == "\x1bPq~~\x1b\\\n"


def test_sixel_encode_without_converter(
    monkeypatch: pytest.MonkeyPatch, make_config: Callable[..., Config], image: PilImage
) -> None:
    """Nothing is written if no sixel converter is installed."""
    monkeypatch.setattr("termpix.convert.sixel_converters", [])
    stream = io.StringIO()
    with pytest.raises(ConverterNotFoundError):
        SixelEncoder(make_config()).encode(stream, image)
    assert stream.getvalue() == ""


def test_default_uses_priority_order(image: PilImage) -> None:
    """The first available encoder is chosen."""
    first = CountingEncoder(False)
    second = CountingEncoder(True)
    third = CountingEncoder(True)
    encoder = DefaultEncoder(first, second, third)

    assert encoder.available()
    assert encoder.resolve() is second
    assert third.checks == 0

    stream = io.StringIO()
    encoder.encode(stream, image)
    assert stream.getvalue() == "<image>"


def test_default_resolves_once_concurrently() -> None:
    """Concurrent first calls only probe the encoders once."""
    first = CountingEncoder(False, delay=0.01)
    second = CountingEncoder(True, delay=0.01)
    encoder = DefaultEncoder(first, second)
    results: list[Encoder] = []
    barrier = threading.Barrier(16)

    def resolve() -> None:
        barrier.wait()
        results.append(encoder.resolve())

    threads = [threading.Thread(target=resolve) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert first.checks == 1
    assert second.checks == 1
    assert len(results) == 16
    assert all(result is second for result in results)


def test_default_not_available(image: PilImage) -> None:
    """The unavailable result is cached and nothing is written."""
    first = CountingEncoder(False)
    encoder = DefaultEncoder(first)

    assert not encoder.available()
    assert not encoder.available()
    stream = io.StringIO()
    with pytest.raises(TermGraphicsNotAvailableError):
        encoder.encode(stream, image)
    with pytest.raises(TermGraphicsNotAvailableError):
        encoder.resolve()
    assert stream.getvalue() == ""
    assert first.checks == 1


def test_registry() -> None:
    """Each graphics type except none has an encoder."""
    assert isinstance(ENCODERS[TermType.KITTY], KittyEncoder)
    assert isinstance(ENCODERS[TermType.ITERM], ItermEncoder)
    assert isinstance(ENCODERS[TermType.SIXEL], SixelEncoder)
    assert isinstance(ENCODERS[TermType.DEFAULT], DefaultEncoder)
    assert TermType.NONE not in ENCODERS


def test_top_level_functions(
    monkeypatch: pytest.MonkeyPatch, image: PilImage
) -> None:
    """The top level functions use the default encoder."""
    monkeypatch.setitem(
        ENCODERS, TermType.DEFAULT, DefaultEncoder(CountingEncoder(True))
    )
    assert termpix.available()
    stream = io.StringIO()
    termpix.encode(stream, image)
    assert stream.getvalue() == "<image>"

    monkeypatch.setitem(
        ENCODERS, TermType.DEFAULT, DefaultEncoder(CountingEncoder(False))
    )
    assert not termpix.available()
    with pytest.raises(TermGraphicsNotAvailableError):
        termpix.encode(io.StringIO(), image)
