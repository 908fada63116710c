"""Define a configuration class for termpix."""

from __future__ import annotations

import json
import logging
import os
import threading
from ast import literal_eval
from pathlib import Path
from typing import TYPE_CHECKING

import fastjsonschema
from platformdirs import user_config_dir

from termpix import __app_name__
from termpix.convert import DEFAULT_JPEG_QUALITY
from termpix.enums import TermType

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from typing import Any, ClassVar


log = logging.getLogger(__name__)

_SCHEMA_TYPES: dict[type | Callable, str] = {
    bool: "boolean",
    str: "string",
    int: "integer",
    float: "number",
}


class Setting:
    """A single configuration item."""

    def __init__(
        self,
        name: str,
        default: Any = None,
        help_: str = "",
        type_: Callable[[Any], Any] | None = None,
        choices: list[Any] | None = None,
        schema: dict[str, Any] | None = None,
        env: Sequence[str] = (),
    ) -> None:
        """Create a new configuration item."""
        self.name = name
        self.default = default
        self.help = help_
        self.type = type_ or type(default)
        self.choices = choices
        self.env = [*env, f"{__app_name__}_{name}".upper()]
        self._schema: dict[str, Any] = {
            "type": _SCHEMA_TYPES.get(self.type),
            **(schema or {}),
        }

    @property
    def schema(self) -> dict[str, Any]:
        """Return a json schema property for the config item."""
        schema = {"description": self.help, **self._schema}
        if self.choices:
            schema["enum"] = self.choices
        return schema

    def __repr__(self) -> str:
        """Represent a :py:class`Setting` instance as a string."""
        return f"<Setting {self.name}: {self.type}>"


class Config:
    """A configuration store.

    Values are taken from the setting defaults, then the user's configuration file,
    then environment variables, then any key-word arguments, with later sources
    taking precedence.
    """

    _conf_file_name = "config.json"
    _settings: ClassVar[dict[str, Setting]] = {}

    def __init__(self, config_file: Path | str | None = None, **kwargs: Any) -> None:
        """Create a new configuration object instance."""
        if config_file is None:
            config_file = (
                Path(user_config_dir(__app_name__, appauthor=None))
                / self._conf_file_name
            )
        self._config_file_path = Path(config_file)
        self._schema_validate = fastjsonschema.compile(self._schema, use_default=False)
        self._kwargs = kwargs
        self._values = {
            # Setting defaults
            **{k: v.default for k, v in self._settings.items()},
            # Key-word arguments
            **kwargs,
        }

    def load(self) -> None:
        """Load the configuration options from non-local sources.

        Logging is left alone: applications call :py:func:`termpix.log.setup_logs`
        to send termpix logs somewhere.
        """
        self._values.update(
            self._cast(self._validate(self._load_user(), "config file"))
        )
        self._values.update(
            self._cast(self._validate(self._load_env(), "environment variable"))
        )
        # Explicitly passed values always win
        self._values.update(self._kwargs)

    def _validate(self, data: dict[str, Any], group: str) -> dict[str, Any]:
        """Validate settings values."""
        validated = {}
        for name, value in data.items():
            if name in self._settings:
                try:
                    self._schema_validate({name: value})
                except fastjsonschema.JsonSchemaValueException as error:
                    # Warn about badly configured settings
                    log.warning(
                        "Error in %s setting: `%s = %r`\n%s",
                        group,
                        name,
                        value,
                        error.message.replace("data.", ""),
                    )
                else:
                    validated[name] = value
            else:
                log.warning(
                    "Configuration option '%s' not recognised in %s", name, group
                )
        return validated

    def _cast(self, data: dict[str, Any]) -> dict[str, Any]:
        """Cast validated values to each setting's type."""
        return {name: self._settings[name].type(value) for name, value in data.items()}

    @property
    def _schema(self) -> dict[str, Any]:
        """Return a JSON schema for the config."""
        return {
            "title": "termpix Configuration",
            "description": "A configuration for termpix",
            "type": "object",
            "properties": {name: item.schema for name, item in self._settings.items()},
        }

    def _load_env(self) -> dict[str, Any]:
        """Attempt to load configuration settings from environment variables."""
        result = {}
        for name, setting in self._settings.items():
            for env in setting.env:
                if env not in os.environ:
                    continue
                value: Any = os.environ[env]
                # Attempt to parse the value as a literal
                if value and setting.schema.get("type") != "string":
                    try:
                        value = literal_eval(value)
                    except (ValueError, TypeError, SyntaxError, MemoryError):
                        pass
                result[name] = value
        return result

    def _load_user(self) -> dict[str, Any]:
        """Attempt to load JSON configuration file."""
        results: dict[str, Any] = {}
        if self._config_file_path.exists():
            with self._config_file_path.open() as f:
                try:
                    json_data = json.load(f)
                except json.decoder.JSONDecodeError:
                    log.error(
                        "Could not parse the configuration file: %s\nIs it valid json?",
                        self._config_file_path,
                    )
                else:
                    if isinstance(json_data, dict):
                        results.update(json_data)
                    else:
                        log.error(
                            "The configuration file %s does not contain an object",
                            self._config_file_path,
                        )
        return results

    def __getattribute__(self, name: str) -> Any:
        """Enable access of config elements via dotted attributes."""
        try:
            return super().__getattribute__(name)
        except AttributeError as exc:
            values = super().__getattribute__("_values")
            if name in values:
                return values[name]
            raise exc

    def __setattr__(self, name: str, value: Any) -> None:
        """Set a configuration attribute."""
        if name in self._settings:
            self._values[name] = value
        else:
            super().__setattr__(name, value)

    @classmethod
    def add_setting(cls, name: str, *args: Any, **kwargs: Any) -> None:
        """Register a new config item."""
        setting = Setting(name, *args, **kwargs)
        Config._settings[name] = setting


add_setting = Config.add_setting


def graphics_override(value: TermType | int | str | bytes) -> TermType:
    """Interpret a forced graphics type.

    Only the token ``none`` disables graphics. Tokens which do not name a graphics
    type leave the choice to terminal detection.
    """
    if isinstance(value, bytes):
        value = value.decode(errors="replace")
    if isinstance(value, str):
        value = value.lower()
        if value == TermType.NONE.to_text():
            return TermType.NONE
        term_type = TermType.from_text(value)
        return TermType.DEFAULT if term_type is TermType.NONE else term_type
    return TermType.coerce(value)


_config: Config | None = None
_config_lock = threading.Lock()


def get_config() -> Config:
    """Return the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:
                config = Config()
                config.load()
                _config = config
    return _config


# ################################### Settings ####################################

add_setting(
    name="graphics",
    default=TermType.DEFAULT,
    type_=graphics_override,
    schema={"type": "string"},
    env=["TERM_GRAPHICS"],
    help_="Force a terminal graphics protocol",
)

add_setting(
    name="newline",
    default=True,
    help_="Write a line terminator after each image",
)

add_setting(
    name="jpeg_quality",
    default=DEFAULT_JPEG_QUALITY,
    schema={"minimum": 1, "maximum": 100},
    help_="The quality of JPEG images sent to the terminal",
)

add_setting(
    name="log_level",
    default="warning",
    choices=["debug", "info", "warning", "error", "critical"],
    help_="Set the logging level",
)

add_setting(
    name="log_file",
    default="",
    help_="File path for logs",
)
