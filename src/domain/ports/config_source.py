"""Port interface for the raw configuration source."""

from abc import ABC, abstractmethod
from typing import Dict, Optional


class ConfigSource(ABC):
    """Backing store of raw key/value authenticator settings."""

    @property
    @abstractmethod
    def location(self) -> str:
        """Human-readable location, used in log messages."""
        pass

    @abstractmethod
    def read(self) -> Dict[str, Optional[str]]:
        """
        Read all settings.

        Returns:
            Raw key -> value mapping

        Raises:
            ConfigError: If the source cannot be read
        """
        pass

    @abstractmethod
    def last_modified(self) -> float:
        """
        Modification timestamp of the source.

        Raises:
            ConfigError: If the source cannot be inspected
        """
        pass
