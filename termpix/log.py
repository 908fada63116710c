"""Initiate logging for termpix."""

from __future__ import annotations

import logging
import logging.config
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from termpix import __app_name__

if TYPE_CHECKING:
    from typing import Any, TextIO

    from termpix.config import Config


class StderrHandler(logging.StreamHandler):
    """A stream handler which always writes to the current standard error."""

    def __init__(self) -> None:
        """Create a new handler instance."""
        super().__init__()

    @property  # type: ignore [override]
    def stream(self) -> TextIO:
        """Look up the standard error when it is needed."""
        return sys.stderr

    @stream.setter
    def stream(self, value: TextIO) -> None:
        """Ignore attempts to replace the stream."""


def setup_logs(config: Config | None = None) -> None:
    """Configure the logger for termpix.

    termpix never calls this itself. Applications which want termpix's own log
    output, rather than handling its records through their root logger, call it
    once at start-up.
    """
    log_config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "file_format": {
                "format": "{asctime}.{msecs:03.0f} {levelname:<7} [{name}.{funcName}:{lineno}] {message}",
                "style": "{",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "stderr_format": {
                "format": "{levelname}: [{name}] {message}",
                "style": "{",
            },
        },
        "handlers": {
            "stderr": {
                "level": "WARNING",
                "()": StderrHandler,
                "formatter": "stderr_format",
            },
        },
        "loggers": {
            __app_name__: {
                "level": "WARNING",
                "handlers": ["stderr"],
                "propagate": False,
            },
        },
    }

    if config is not None:
        log_level = config.log_level.upper()
        if log_file := config.log_file:
            log_config["handlers"]["file"] = {
                "level": log_level,
                "class": "logging.FileHandler",
                "filename": Path(log_file).expanduser(),
                "formatter": "file_format",
            }
            log_config["loggers"][__app_name__]["handlers"].append("file")
        log_config["handlers"]["stderr"]["level"] = log_level
        log_config["loggers"][__app_name__]["level"] = log_level

    logging.config.dictConfig(log_config)
