"""Settings for spacetime-token itself.

The settings file parametrizes where the profile store lives and how the
spacetime CLI config document is located and keyed. It is loaded once per
invocation and passed explicitly to every operation that needs it.

Location:
- App directory: click.get_app_dir("spacetime-token") (e.g. ~/.config/spacetime-token)
- Settings file: <app dir>/config.toml
- Profile store: <app dir>/<profiles_filename>

Example config.toml:
    profiles_filename = "profiles.toml"
    cli_config_dir_from_home = ".config/spacetime"
    cli_config_filename = "cli.toml"
    cli_token_key = "spacetimedb_token"
"""

import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

import click
import tomli
import tomli_w

from spacetime_token.errors import SettingsError

logger = logging.getLogger(__name__)

APP_NAME = "spacetime-token"
SETTINGS_FILENAME = "config.toml"
APP_DIR_ENV_VAR = "SPACETIME_TOKEN_HOME"


@dataclass
class AppSettings:
    """spacetime-token settings data."""

    profiles_filename: str = "profiles.toml"
    cli_config_dir_from_home: str = ".config/spacetime"
    cli_config_filename: str = "cli.toml"
    cli_token_key: str = "spacetimedb_token"
    identity_timeout: float = 10.0  # seconds, for the server-issued login request
    spacetime_command: str = "spacetime"
    app_dir: Path | None = None  # set by SettingsManager, never persisted

    @property
    def profiles_path(self) -> Path:
        """Path of the profile store file."""
        if self.app_dir is None:
            raise SettingsError("Settings are not bound to an app directory")
        return self.app_dir / self.profiles_filename

    def cli_config_path(self, home: Path | None = None) -> Path:
        """Path of the spacetime CLI config document.

        Args:
            home: Home directory (default: Path.home())
        """
        base = home if home is not None else Path.home()
        return base / self.cli_config_dir_from_home / self.cli_config_filename

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, excluding runtime-only fields."""
        data = asdict(self)
        data.pop("app_dir")
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any], app_dir: Path | None = None) -> "AppSettings":
        """Create from dictionary, falling back to defaults for missing keys.

        Raises:
            SettingsError: If a known key has the wrong type
        """
        defaults = cls()
        values: dict[str, Any] = {}
        for f in fields(cls):
            if f.name == "app_dir" or f.name not in data:
                continue
            value = data[f.name]
            expected = type(getattr(defaults, f.name))
            if expected is float and isinstance(value, int) and not isinstance(value, bool):
                value = float(value)
            if not isinstance(value, expected) or isinstance(value, bool):
                raise SettingsError(
                    f"Setting '{f.name}' must be a {expected.__name__}, got {type(value).__name__}"
                )
            if expected is str and not value.strip():
                raise SettingsError(f"Setting '{f.name}' cannot be empty")
            values[f.name] = value
        return cls(app_dir=app_dir, **values)


def resolve_app_dir(custom_dir: str | Path | None = None) -> Path:
    """Resolve the spacetime-token app directory.

    Precedence: explicit argument, SPACETIME_TOKEN_HOME, click.get_app_dir().
    """
    if custom_dir:
        return Path(custom_dir).expanduser()
    env_dir = os.environ.get(APP_DIR_ENV_VAR)
    if env_dir:
        return Path(env_dir).expanduser()
    return Path(click.get_app_dir(APP_NAME))


class SettingsManager:
    """Load and save the settings file in the app directory."""

    def __init__(self, app_dir: Path | None = None):
        self.app_dir = app_dir or resolve_app_dir()

    @property
    def settings_path(self) -> Path:
        return self.app_dir / SETTINGS_FILENAME

    def ensure_app_dir(self) -> Path:
        """Create the app directory if it does not exist yet.

        Raises:
            SettingsError: If the directory cannot be created
        """
        if self.app_dir.exists():
            return self.app_dir
        try:
            self.app_dir.mkdir(parents=True, exist_ok=True)
            os.chmod(self.app_dir, 0o700)
        except OSError as e:
            raise SettingsError(f"Failed to create app config directory at {self.app_dir}: {e}") from e
        logger.info(f"Created application config directory at {self.app_dir}")
        return self.app_dir

    def load(self) -> AppSettings:
        """Load settings, writing the defaults first if no file exists.

        Returns:
            AppSettings bound to this app directory

        Raises:
            SettingsError: If the file cannot be read or parsed
        """
        self.ensure_app_dir()

        if not self.settings_path.exists():
            logger.info(
                f"Configuration file not found at {self.settings_path}. "
                "Creating with default settings."
            )
            settings = AppSettings(app_dir=self.app_dir)
            self.save(settings)
            return settings

        try:
            with open(self.settings_path, "rb") as f:
                data = tomli.load(f)
        except (OSError, tomli.TOMLDecodeError) as e:
            raise SettingsError(f"Failed to parse app config file at {self.settings_path}: {e}") from e

        logger.debug(f"Loaded settings from: {self.settings_path}")
        return AppSettings.from_dict(data, app_dir=self.app_dir)

    def save(self, settings: AppSettings) -> Path:
        """Write settings to the settings file.

        Raises:
            SettingsError: If the file cannot be written
        """
        self.ensure_app_dir()
        content = tomli_w.dumps(settings.to_dict())
        try:
            self.settings_path.write_text(content)
        except OSError as e:
            raise SettingsError(f"Failed to write app config to {self.settings_path}: {e}") from e
        settings.app_dir = self.app_dir
        logger.debug(f"Saved settings to: {self.settings_path}")
        return self.settings_path


__all__ = [
    "APP_DIR_ENV_VAR",
    "APP_NAME",
    "AppSettings",
    "SETTINGS_FILENAME",
    "SettingsManager",
    "resolve_app_dir",
]
