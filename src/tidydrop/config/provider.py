"""Key-based lookup of pipeline settings for the active environment."""

from __future__ import annotations

import logging
from pathlib import Path

from .exceptions import MissingSettingError
from .models import PathSettings, TidydropConfig

LOGGER = logging.getLogger(__name__)

ORIGIN_DIR = "ORIGINDIR"
DESTINATION_DIR = "DESTDIR"
MODEL_PATH = "MODELPATH"
MODEL_NAME = "MODELNAME"
TRAINING_PATH = "TRAINDATAPATH"
TRAINING_NAME = "TRAINDATANAME"
STATE_DIR = "STATEDIR"

_FIELDS = {
    ORIGIN_DIR: "origin_dir",
    DESTINATION_DIR: "destination_root",
    MODEL_PATH: "model_path",
    MODEL_NAME: "model_name",
    TRAINING_PATH: "training_path",
    TRAINING_NAME: "training_name",
    STATE_DIR: "state_dir",
}


class ConfigProvider:
    """Resolve setting keys against the profile of the active environment.

    Values are read from the profile on every call, so replacing the wrapped
    configuration with :meth:`reload` is visible to the next pipeline run.
    """

    def __init__(self, config: TidydropConfig) -> None:
        self._config = config

    @property
    def environment(self) -> str:
        """Return the name of the active environment."""
        return self._config.environment

    @property
    def config(self) -> TidydropConfig:
        """Return the wrapped configuration."""
        return self._config

    def reload(self, config: TidydropConfig) -> None:
        """Swap in a freshly loaded configuration."""
        self._config = config

    def get(self, key: str) -> str:
        """Return the value configured for ``key``.

        Args:
            key: One of the setting keys exported by this module.

        Returns:
            str: Non-empty configured value.

        Raises:
            KeyError: If ``key`` is not a known setting.
            MissingSettingError: If the active profile leaves the value unset.
        """
        try:
            field = _FIELDS[key]
        except KeyError:
            raise KeyError(f"Unknown setting key: {key}") from None
        profile: PathSettings = self._config.active_profile
        value = getattr(profile, field)
        if value is None or not str(value).strip():
            LOGGER.error("Setting %s missing for environment %s", key, self.environment)
            raise MissingSettingError(key, self.environment)
        return str(value)

    def directory(self, key: str) -> Path:
        """Return the setting as an expanded directory path."""
        return Path(self.get(key)).expanduser()

    def file_path(self, directory_key: str, name_key: str) -> Path:
        """Join a directory setting and a file-name setting into one path."""
        return self.directory(directory_key) / self.get(name_key)

    def origin_dir(self) -> Path:
        return self.directory(ORIGIN_DIR)

    def destination_root(self) -> Path:
        return self.directory(DESTINATION_DIR)

    def model_file(self) -> Path:
        return self.file_path(MODEL_PATH, MODEL_NAME)

    def training_file(self) -> Path:
        return self.file_path(TRAINING_PATH, TRAINING_NAME)

    def state_dir(self) -> Path:
        return self.directory(STATE_DIR)


__all__ = [
    "ConfigProvider",
    "ORIGIN_DIR",
    "DESTINATION_DIR",
    "MODEL_PATH",
    "MODEL_NAME",
    "TRAINING_PATH",
    "TRAINING_NAME",
    "STATE_DIR",
]
