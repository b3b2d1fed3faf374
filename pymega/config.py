"""Configuration management for pymega."""

import configparser
import logging
import os
from pathlib import Path
from typing import Optional

from .exceptions import MegaConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PYMEGA_CONFIG"


def default_config_paths() -> list[Path]:
    """Config files searched when no explicit path is given, in order."""
    home = Path.home()
    return [home / ".megarc", home / ".config" / "pymega" / "config"]


class Config:
    """Settings loaded from an INI file and the environment.

    The file uses the following sections::

        [Store]
        Path = /var/lib/pymega/store

        [Sync]
        IgnoreErrors = false
        NoProgress = false

        [UI]
        Colors = true

    ``PYMEGA_STORE`` overrides the store path read from the file.
    """

    def __init__(self, path: Optional[Path] = None, load_file: bool = True):
        """Initialize configuration.

        Args:
            path: Explicit config file. It must exist if given.
            load_file: If False, only the environment is consulted
        """
        self.path: Optional[Path] = None
        self.store_path: Optional[Path] = None
        self.ignore_errors = False
        self.no_progress = False
        self.colors = True

        if path is not None:
            if not Path(path).is_file():
                raise MegaConfigError(f"Failed to open config file: {path}")
            self._load_file(Path(path))
        elif load_file:
            env_path = os.environ.get(CONFIG_ENV_VAR)
            candidates = [Path(env_path)] if env_path else default_config_paths()
            for candidate in candidates:
                if candidate.is_file():
                    self._load_file(candidate)
                    break

        self._load_env()

    def _load_file(self, path: Path) -> None:
        parser = configparser.ConfigParser()
        try:
            with open(path, encoding="utf-8") as f:
                parser.read_file(f)
        except (OSError, configparser.Error) as e:
            raise MegaConfigError(f"Failed to open config file: {path}: {e}") from e

        self.path = path
        logger.debug(f"Loaded config from {path}")

        try:
            store = parser.get("Store", "Path", fallback=None)
            if store:
                self.store_path = Path(store).expanduser()
            self.ignore_errors = parser.getboolean(
                "Sync", "IgnoreErrors", fallback=False
            )
            self.no_progress = parser.getboolean("Sync", "NoProgress", fallback=False)
            self.colors = parser.getboolean("UI", "Colors", fallback=True)
        except ValueError as e:
            raise MegaConfigError(f"Invalid value in config file {path}: {e}") from e

    def _load_env(self) -> None:
        store = os.environ.get("PYMEGA_STORE")
        if store:
            self.store_path = Path(store).expanduser()

    def is_configured(self) -> bool:
        """True if a remote store location is known."""
        return self.store_path is not None


_config: Optional[Config] = None


def get_config() -> Config:
    """Return the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = Config()
    return _config
