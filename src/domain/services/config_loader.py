"""
Config Loader - owns the active configuration and its hot reload.

The loader publishes one immutable ConfigState at a time. Readers take the
current reference without locking; reloads are serialized by a lock and
swap the reference in a single assignment.
"""
import logging
import threading
import time
from dataclasses import replace
from typing import Callable, List, Optional

from src.domain.models.errors import ConfigError
from src.domain.models.mapping_models import (
    AuthenticatorSettings,
    ConfigState,
    MappingRuleSet,
)
from src.domain.ports.config_source import ConfigSource
from src.domain.services.mapping_parser import parse_config

logger = logging.getLogger(__name__)

ReloadErrorListener = Callable[[ConfigError], None]


class ConfigLoader:
    """Loads, polls and reloads the authenticator configuration."""

    def __init__(
        self,
        source: ConfigSource,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize config loader.

        Args:
            source: Backing configuration source
            clock: Returns the current time in epoch seconds
        """
        self.source = source
        self._clock = clock
        self._state: Optional[ConfigState] = None
        self._reload_lock = threading.Lock()
        self._error_listeners: List[ReloadErrorListener] = []
        self.last_error: Optional[ConfigError] = None

    def add_error_listener(self, listener: ReloadErrorListener) -> None:
        """Register a callback invoked with every reload failure."""
        self._error_listeners.append(listener)

    @property
    def is_loaded(self) -> bool:
        return self._state is not None

    def load(self) -> ConfigState:
        """
        Perform the initial load.

        Returns:
            The published state (the existing one if already loaded)

        Raises:
            ConfigError: If the source cannot be read or parsed
        """
        with self._reload_lock:
            if self._state is None:
                try:
                    self._state = self._read_state(self._clock())
                except ConfigError as e:
                    self._report(e)
                    raise
                logger.info(f"Loaded authenticator configuration from {self.source.location}")
            return self._state

    def state(self) -> ConfigState:
        """
        Return the active state, polling the source when it is due.

        Never waits for a reload running in another thread; callers get the
        currently published state instead.
        """
        state = self._state
        if state is None:
            return self.load()

        now = self._clock()
        if not self._is_due(state, now):
            return state

        if not self._reload_lock.acquire(blocking=False):
            return state
        try:
            self._poll(now)
        finally:
            self._reload_lock.release()
        return self._state

    def poll_due(self) -> bool:
        """Whether the next state() call will read or stat the source."""
        state = self._state
        return state is None or self._is_due(state, self._clock())

    def current(self) -> MappingRuleSet:
        """Return the active mapping rules."""
        return self.state().rule_set

    def settings(self) -> AuthenticatorSettings:
        """Return the active authenticator settings."""
        return self.state().settings

    def force_reload(self) -> ConfigState:
        """
        Reload unconditionally.

        Returns:
            The newly published state

        Raises:
            ConfigError: If the reload fails; the previous state stays active
        """
        with self._reload_lock:
            now = self._clock()
            try:
                new_state = self._read_state(now)
            except ConfigError as e:
                self._report(e)
                raise
            self._state = new_state
            self.last_error = None
            logger.info(f"Reloaded authenticator configuration from {self.source.location}")
            return new_state

    @staticmethod
    def _is_due(state: ConfigState, now: float) -> bool:
        if not state.settings.reload_config:
            return False
        return (now - state.last_checked_at) * 1000 >= state.poll_interval_ms

    def _poll(self, now: float) -> None:
        state = self._state
        try:
            modified = self.source.last_modified()
        except ConfigError as e:
            self._state = replace(state, last_checked_at=now)
            self._report(e)
            return

        if modified <= state.source_last_modified:
            self._state = replace(state, last_checked_at=now)
            return

        logger.info(f"Configuration {self.source.location} changed, reloading")
        try:
            self._state = self._read_state(now, modified)
            self.last_error = None
        except ConfigError as e:
            # Keep the previous rules but remember the new timestamp so a
            # broken file is not re-parsed on every poll
            self._state = replace(state, last_checked_at=now, source_last_modified=modified)
            self._report(e)

    def _read_state(self, now: float, modified: Optional[float] = None) -> ConfigState:
        if modified is None:
            modified = self.source.last_modified()
        raw = self.source.read()
        settings, rule_set = parse_config(raw)
        return ConfigState(
            rule_set=rule_set,
            settings=settings,
            source_last_modified=modified,
            last_checked_at=now,
            loaded_at=now,
        )

    def _report(self, error: ConfigError) -> None:
        self.last_error = error
        if self._state is not None:
            logger.warning(
                f"Unable to reload configuration from {self.source.location}, "
                f"keeping previous ruleset: {error}"
            )
        else:
            logger.error(f"Unable to load configuration from {self.source.location}: {error}")
        for listener in self._error_listeners:
            try:
                listener(error)
            except Exception as e:
                logger.error(f"Config error listener failed: {e}")
