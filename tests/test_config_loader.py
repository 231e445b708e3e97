"""Tests for loading, polling and hot reloading the configuration."""

from __future__ import annotations
import os
import threading
import time
from pathlib import Path
import pytest
from src.domain.models.errors import ConfigError
from src.domain.services.config_loader import ConfigLoader
from src.infrastructure.adapters.config import DictConfigSource, PropertiesFileConfigSource


class CountingSource(DictConfigSource):
    def __init__(self, values):
        super().__init__(values, name="counting")
        self.reads = 0
        self.stats = 0

    def read(self):
        self.reads += 1
        return super().read()

    def last_modified(self):
        self.stats += 1
        return super().last_modified()


class BlockingSource(DictConfigSource):
    """Source whose reads can be held open until released."""

    def __init__(self, values):
        super().__init__(values, name="blocking")
        self.block = False
        self.reading = threading.Event()
        self.release = threading.Event()

    def read(self):
        if self.block:
            self.reading.set()
            self.release.wait(timeout=5)
        return super().read()


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


RELOADING = {
    "reload.config": "true",
    "reload.config.check.interval": "1000",
    "default.roles": "users",
}


def test_load_publishes_rules(base_config) -> None:
    loader = ConfigLoader(DictConfigSource(base_config))

    assert loader.is_loaded is False
    rules = loader.current()

    assert loader.is_loaded is True
    assert rules.default_roles == ("confluence-users",)


def test_reload_disabled_reads_source_once(base_config) -> None:
    source = CountingSource(base_config)
    clock = FakeClock()
    loader = ConfigLoader(source, clock=clock)
    loader.load()

    source.update({**base_config, "default.roles": "changed"})
    clock.now += 3600
    for _ in range(5):
        rules = loader.current()

    assert rules.default_roles == ("confluence-users",)
    assert source.reads == 1
    assert source.stats == 1


def test_poll_waits_for_interval() -> None:
    source = CountingSource(RELOADING)
    clock = FakeClock()
    loader = ConfigLoader(source, clock=clock)
    loader.load()

    source.update({**RELOADING, "default.roles": "changed"})
    clock.now += 0.5
    assert loader.current().default_roles == ("users",)
    assert source.stats == 1

    clock.now += 0.5
    assert loader.current().default_roles == ("changed",)
    assert source.reads == 2


def test_unchanged_source_is_not_reparsed() -> None:
    source = CountingSource(RELOADING)
    clock = FakeClock()
    loader = ConfigLoader(source, clock=clock)
    first = loader.load()

    clock.now += 10
    state = loader.state()

    assert source.reads == 1
    assert source.stats == 2
    assert state.rule_set is first.rule_set
    assert state.last_checked_at == clock.now


def test_malformed_reload_keeps_previous_rules() -> None:
    source = CountingSource(RELOADING)
    clock = FakeClock()
    loader = ConfigLoader(source, clock=clock)
    loader.load()
    errors = []
    loader.add_error_listener(errors.append)

    source.update({**RELOADING, "header.dynamicroles.staff": " ; "})
    clock.now += 5
    rules = loader.current()

    assert rules.default_roles == ("users",)
    assert len(errors) == 1
    assert isinstance(loader.last_error, ConfigError)

    # The broken file is not parsed again until it changes
    clock.now += 5
    loader.current()
    assert source.reads == 2

    source.update({**RELOADING, "default.roles": "fixed"})
    clock.now += 5
    assert loader.current().default_roles == ("fixed",)
    assert loader.last_error is None


def test_force_reload_failure_raises_and_retains() -> None:
    source = DictConfigSource(RELOADING)
    loader = ConfigLoader(source)
    loader.load()

    source.update({"reload.config.check.interval": "never"})

    with pytest.raises(ConfigError):
        loader.force_reload()
    assert loader.current().default_roles == ("users",)


def test_force_reload_applies_changes_without_waiting(base_config) -> None:
    source = DictConfigSource(base_config)
    loader = ConfigLoader(source)
    loader.load()

    source.update({**base_config, "default.roles": "a b"})
    state = loader.force_reload()

    assert state.rule_set.default_roles == ("a", "b")
    assert loader.current() is state.rule_set


def test_initial_load_failure_is_raised() -> None:
    loader = ConfigLoader(DictConfigSource({"header.dynamicroles.x": ""}))

    with pytest.raises(ConfigError):
        loader.load()
    assert loader.is_loaded is False


def test_properties_file_source_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "remoteUserAuthenticator.properties"
    path.write_text(
        "# comment\n"
        "create.users=true\n"
        "default.roles = confluence-users, staff\n"
        "header.dynamicroles.attributenames=SHIB-EP-ENTITLEMENT\n"
        "header.dynamicroles.staff=confluence-staff;confluence-editors\n",
        encoding="utf-8",
    )
    loader = ConfigLoader(PropertiesFileConfigSource(str(path)))

    state = loader.load()

    assert state.settings.create_users is True
    assert state.rule_set.default_roles == ("confluence-users", "staff")
    assert state.rule_set.groups_for_value("staff") == ("confluence-staff", "confluence-editors")


def test_properties_file_reload_on_mtime_change(tmp_path: Path) -> None:
    path = tmp_path / "auth.properties"
    path.write_text("reload.config=true\nreload.config.check.interval=0\ndefault.roles=a\n")
    loader = ConfigLoader(PropertiesFileConfigSource(str(path)))
    first = loader.load()

    path.write_text("reload.config=true\nreload.config.check.interval=0\ndefault.roles=b\n")
    os.utime(path, (first.source_last_modified + 10, first.source_last_modified + 10))

    assert loader.current().default_roles == ("b",)


def test_missing_properties_file_is_a_config_error(tmp_path: Path) -> None:
    source = PropertiesFileConfigSource(str(tmp_path / "missing.properties"))

    with pytest.raises(ConfigError):
        source.read()
    with pytest.raises(ConfigError):
        source.last_modified()


def test_deleted_file_keeps_previous_rules(tmp_path: Path) -> None:
    path = tmp_path / "auth.properties"
    path.write_text("reload.config=true\nreload.config.check.interval=0\ndefault.roles=a\n")
    loader = ConfigLoader(PropertiesFileConfigSource(str(path)))
    loader.load()

    path.unlink()

    assert loader.current().default_roles == ("a",)
    assert isinstance(loader.last_error, ConfigError)


def test_readers_do_not_wait_for_running_reload() -> None:
    source = BlockingSource(RELOADING)
    clock = FakeClock()
    loader = ConfigLoader(source, clock=clock)
    loader.load()

    source.update({**RELOADING, "default.roles": "changed"})
    source.block = True
    reloader = threading.Thread(target=loader.force_reload)
    reloader.start()
    assert source.reading.wait(timeout=5)

    # A poll is due, but the reload lock is held by the other thread
    clock.now += 10
    started = time.monotonic()
    assert loader.current().default_roles == ("users",)
    assert time.monotonic() - started < 1

    source.release.set()
    reloader.join(timeout=5)
    assert not reloader.is_alive()
    assert loader.current().default_roles == ("changed",)


def test_poll_due_tracks_interval(base_config) -> None:
    clock = FakeClock()
    loader = ConfigLoader(DictConfigSource(RELOADING), clock=clock)
    assert loader.poll_due() is True

    loader.load()
    assert loader.poll_due() is False
    clock.now += 1
    assert loader.poll_due() is True

    static = ConfigLoader(DictConfigSource(base_config), clock=clock)
    static.load()
    clock.now += 3600
    assert static.poll_due() is False
