"""Build-host adapter around ``ResourceLock``.

A build host calls ``set_up`` before the protected unit of work and
``tear_down`` on the returned environment afterwards, whether the work
succeeded or not. Timeouts become ``BuildAbortedError`` so the host can
abort the unit of work; release problems only produce warnings.

Usage:
    wrapper = ResourceLockWrapper("printer", timeout_seconds=600)
    environment = wrapper.set_up()
    try:
        print_labels()
    finally:
        environment.tear_down()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from resource_locker.core.config import LockConfig, normalize_resource_name, normalize_timeout
from resource_locker.core.exceptions import BuildAbortedError, LockTimeoutError, StorageError
from resource_locker.core.locks.manager import LockHandle, ResourceLock

T = TypeVar("T")


class Environment:
    """Handle returned by ``ResourceLockWrapper.set_up`` while the lock is held."""

    def __init__(self, lock: ResourceLock, handle: LockHandle, logger: logging.Logger):
        self.lock = lock
        self.handle = handle
        self.logger = logger
        self.torn_down = False

    @property
    def resource_name(self) -> str:
        return self.handle.resource_name

    def tear_down(self) -> bool:
        """Release the lock.

        Returns:
            True if the marker was deleted. False if it was already gone, if
            this environment was torn down before, or if deletion failed
            (logged as a warning).
        """
        if self.torn_down:
            return False
        self.torn_down = True
        try:
            return self.lock.release(self.handle)
        except StorageError as e:
            self.logger.warning(f"Could not release resource '{self.resource_name}': {e}")
            return False


class ResourceLockWrapper:
    """Wraps a unit of work so it runs only while a named resource is locked.

    Args:
        resource_name: Resource to lock; blank means "node"
        timeout_seconds: Acquisition timeout; <= 0 means 900 seconds
        config: Base lock configuration (lock directory, backoff, stale reclaim)
        lock: Pre-built ResourceLock, mainly for tests
        logger: Operator-visible log sink
    """

    def __init__(
        self,
        resource_name: str | None = None,
        timeout_seconds: float = 0,
        *,
        config: LockConfig | None = None,
        lock: ResourceLock | None = None,
        logger: logging.Logger | None = None,
    ):
        base = (config or LockConfig()).normalized()
        self.resource_name = normalize_resource_name(resource_name, default=base.resource_name)
        self.timeout_seconds = normalize_timeout(timeout_seconds, default=base.timeout_seconds)
        self.logger = logger or logging.getLogger(__name__)
        self.lock = lock or ResourceLock(base, logger=self.logger)

    def set_up(self) -> Environment:
        """Acquire the resource lock before the protected work starts.

        Raises:
            BuildAbortedError: The lock could not be obtained in time
            StorageError: The marker store failed
        """
        try:
            handle = self.lock.acquire(self.resource_name, self.timeout_seconds)
        except LockTimeoutError as e:
            raise BuildAbortedError(
                "Timed out trying to obtain lock...", resource_name=self.resource_name, cause=e
            ) from e
        return Environment(self.lock, handle, self.logger)

    def run(self, work: Callable[[], T]) -> T:
        """Run ``work`` while holding the lock and return its result."""
        environment = self.set_up()
        try:
            return work()
        finally:
            environment.tear_down()
