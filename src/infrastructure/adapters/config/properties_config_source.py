"""Configuration sources backed by a key=value file or an in-memory dict."""

import logging
import os
import time
from typing import Dict, Mapping, Optional

from dotenv import dotenv_values

from src.domain.models.errors import ConfigError
from src.domain.ports.config_source import ConfigSource

logger = logging.getLogger(__name__)


class PropertiesFileConfigSource(ConfigSource):
    """
    Reads ``key=value`` settings from a file.

    Lines starting with ``#`` are comments. Values are taken literally,
    without variable interpolation.
    """

    def __init__(self, path: str, encoding: str = "utf-8"):
        """
        Initialize the source.

        Args:
            path: Path of the settings file
            encoding: File encoding
        """
        self.path = path
        self.encoding = encoding

    @property
    def location(self) -> str:
        return self.path

    def last_modified(self) -> float:
        try:
            return os.stat(self.path).st_mtime
        except OSError as e:
            raise ConfigError(f"Unable to stat configuration file {self.path}: {e}") from e

    def read(self) -> Dict[str, Optional[str]]:
        if not os.path.isfile(self.path):
            raise ConfigError(f"Configuration file {self.path} does not exist")
        try:
            values = dotenv_values(self.path, interpolate=False, encoding=self.encoding)
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Unable to read configuration file {self.path}: {e}") from e
        logger.debug(f"Read {len(values)} settings from {self.path}")
        return dict(values)


class DictConfigSource(ConfigSource):
    """In-memory configuration source; ``update`` replaces the settings."""

    def __init__(self, values: Mapping[str, Optional[str]], name: str = "<memory>"):
        self._values = dict(values)
        self._name = name
        self._modified = time.time()

    @property
    def location(self) -> str:
        return self._name

    def update(self, values: Mapping[str, Optional[str]], modified: Optional[float] = None) -> None:
        """Replace all settings and bump the modification time."""
        self._values = dict(values)
        self._modified = modified if modified is not None else max(time.time(), self._modified + 0.001)

    def last_modified(self) -> float:
        return self._modified

    def read(self) -> Dict[str, Optional[str]]:
        return dict(self._values)
