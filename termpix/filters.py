"""Define filters which inspect the environment."""

from __future__ import annotations

import os
from functools import cache, partial, reduce
from importlib.util import find_spec
from shutil import which
from typing import TYPE_CHECKING

from prompt_toolkit.filters.base import Condition
from prompt_toolkit.filters.utils import to_filter

if TYPE_CHECKING:
    from prompt_toolkit.filters import Filter


@cache
def command_exists(*cmds: str) -> Filter:
    """Verify a list of external commands exist on the system."""
    filters = [
        Condition(partial(lambda x: bool(which(x)), cmd))  # noqa: B023
        for cmd in cmds
    ]
    return reduce(lambda a, b: a & b, filters, to_filter(True))


@cache
def have_modules(*modules: str) -> Filter:
    """Verify a list of python modules are importable."""

    def try_import(module: str) -> bool:
        loader = find_spec(module)
        return loader is not None

    filters = [Condition(partial(try_import, module)) for module in modules]
    return reduce(lambda a, b: a & b, filters, to_filter(True))


@cache
def env_is(name: str, *values: str) -> Filter:
    """Check if an environment variable matches one of the values, ignoring case."""
    return Condition(lambda: os.environ.get(name, "").lower() in values)


# Terminals which announce themselves in the environment
in_kitty = env_is("TERM", "xterm-kitty")
in_ghostty = env_is("TERM_PROGRAM", "ghostty")
in_mintty = env_is("TERM", "mintty")
in_iterm = env_is("LC_TERMINAL", "iterm2")
in_wezterm = env_is("TERM_PROGRAM", "wezterm")
