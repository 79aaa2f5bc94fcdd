"""Pytest configuration and fixtures for resource-locker tests"""
import logging
from pathlib import Path

import pytest

from resource_locker.core.config import BackoffConfig, LockConfig
from resource_locker.core.constants import ENV_VAR_MAPPING
from resource_locker.core.locks.backends import FileMarkerStore
from resource_locker.core.locks.manager import ResourceLock


class FakeClock:
    """Deterministic wall clock for driving the polling loop.

    ``sleep`` records the requested delay, advances time, and fires any
    actions scheduled with ``at`` whose offset falls inside the sleep.
    """

    def __init__(self, start: float = 1_700_000_000.0):
        self.start = start
        self.now = start
        self.sleeps: list[float] = []
        self._scheduled: list[tuple[float, object]] = []

    def __call__(self) -> float:
        return self.now

    @property
    def elapsed(self) -> float:
        return self.now - self.start

    def at(self, offset: float, action) -> None:
        self._scheduled.append((self.start + offset, action))
        self._scheduled.sort(key=lambda item: item[0])

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        target = self.now + seconds
        while self._scheduled and self._scheduled[0][0] <= target:
            when, action = self._scheduled.pop(0)
            self.now = when
            action()
        self.now = target


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep lock settings from the developer's shell or .env out of tests."""
    for var in [*ENV_VAR_MAPPING.values(), "LOG_LEVEL", "NO_COLOR"]:
        # setenv first so values loaded later from a .env file are undone too
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    monkeypatch.chdir(work_dir)


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Undo handler/propagation changes made by setup_logging."""
    logger = logging.getLogger("resource_locker")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield
    for handler in logger.handlers[:]:
        if handler not in saved[0]:
            handler.close()
            logger.removeHandler(handler)
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


@pytest.fixture
def lock_dir(tmp_path) -> Path:
    return tmp_path / "locks"


@pytest.fixture
def store(lock_dir) -> FileMarkerStore:
    return FileMarkerStore(lock_dir)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_lock(lock_dir, fake_clock):
    """Factory for ResourceLock instances on the shared test lock directory."""

    def _make(**overrides) -> ResourceLock:
        lock_kwargs = {
            "clock": overrides.pop("clock", fake_clock),
            "sleep": overrides.pop("sleep", fake_clock.sleep),
        }
        for key in ("store", "owner", "logger", "cancel_event", "on_wait"):
            if key in overrides:
                lock_kwargs[key] = overrides.pop(key)
        overrides.setdefault("lock_dir", str(lock_dir))
        return ResourceLock(LockConfig(**overrides), **lock_kwargs)

    return _make


@pytest.fixture
def fast_backoff() -> BackoffConfig:
    """Millisecond backoff for tests that use the real clock."""
    return BackoffConfig(initial_seconds=0.01, multiplier=1.2, max_seconds=0.02)
