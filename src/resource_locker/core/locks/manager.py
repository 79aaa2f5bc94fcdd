"""Resource lock orchestrating marker claims, backoff and release."""

from __future__ import annotations

import logging
import socket
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from resource_locker.core.config import BackoffConfig, LockConfig, normalize_resource_name, normalize_timeout
from resource_locker.core.exceptions import InterruptedWaitError, LockTimeoutError, StorageError
from resource_locker.core.locks.backends import FileMarkerStore, MarkerInfo, MarkerStore, is_process_running
from resource_locker.core.logging import with_log_context

# Claim attempts per poll: the initial claim plus one retry after reclaiming a stale marker.
_CLAIM_ATTEMPTS_PER_POLL = 2

WaitCallback = Callable[[int, float, float], None]


class LockState(Enum):
    """States of a single acquisition attempt."""

    INIT = "init"
    POLLING = "polling"  # Marker held elsewhere, sleeping between claims
    ACQUIRED = "acquired"
    TIMED_OUT = "timed_out"
    BUSY = "busy"  # Non-blocking claim found the marker held
    INTERRUPTED = "interrupted"
    FAILED = "failed"  # Marker store error


class BackoffSchedule:
    """Deterministic, capped geometric backoff.

    Yields ``initial``, ``initial * m``, ``initial * m**2`` ... with every value
    capped at ``max_seconds``. There is no jitter and no limit on the number
    of values; the acquisition deadline is the only bound.

    Example:
        >>> BackoffSchedule().take(4)
        [5.0, 6.0, 7.2, 8.64]
    """

    def __init__(self, config: BackoffConfig | None = None):
        self.config = config or BackoffConfig()

    def __iter__(self) -> Iterator[float]:
        current = self.config.initial_seconds
        while True:
            yield min(current, self.config.max_seconds)
            # Stop growing once capped; avoids float overflow on very long waits.
            if current < self.config.max_seconds:
                current *= self.config.multiplier

    def take(self, count: int) -> list[float]:
        """Return the first ``count`` intervals."""
        intervals = []
        for interval in self:
            if len(intervals) >= count:
                break
            intervals.append(interval)
        return intervals


@dataclass(frozen=True)
class LockHandle:
    """In-memory token for a successful acquisition, used to release it."""

    resource_name: str
    marker_path: Path
    lock_id: str
    acquired_at: float
    waited_seconds: float = 0.0
    attempts: int = 1


def _iso_from_timestamp(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, UTC).isoformat()


class ResourceLock:
    """Filesystem-coordinated mutual exclusion for named resources.

    A resource is held while its marker file exists. ``acquire`` claims the
    marker with an exclusive create, polling with capped geometric backoff
    until a deadline. ``release`` deletes the marker.

    Ownership is not verified on release: whoever deletes the marker frees
    the resource. The lock is not reentrant.

    Args:
        config: Defaults for resource name, timeout, lock directory, stale
            reclaim and backoff. Normalized on construction.
        store: Marker store; defaults to a ``FileMarkerStore`` on ``config.lock_dir``
        owner: Free-form label recorded in marker metadata
        logger: Operator-visible log sink
        clock: Wall-clock source in epoch seconds
        sleep: Blocking sleep used between polls when no ``cancel_event`` is set
        cancel_event: When set during a backoff sleep, acquisition aborts
        on_wait: Called as ``on_wait(attempt, delay, remaining)`` before each sleep
    """

    def __init__(
        self,
        config: LockConfig | None = None,
        *,
        store: MarkerStore | None = None,
        owner: str = "",
        logger: logging.Logger | logging.LoggerAdapter | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
        cancel_event: threading.Event | None = None,
        on_wait: WaitCallback | None = None,
    ):
        self.config = (config or LockConfig()).normalized()
        self.store: MarkerStore = store if store is not None else FileMarkerStore(self.config.lock_dir)
        self.owner = owner
        self.logger = logger or logging.getLogger(__name__)
        self._clock = clock
        self._sleep = sleep
        self._cancel_event = cancel_event
        self._on_wait = on_wait
        self.state = LockState.INIT

    def acquire(self, resource_name: str | None = None, timeout_seconds: float | None = None) -> LockHandle:
        """Block until the resource marker is claimed or the deadline passes.

        Args:
            resource_name: Resource to lock; blank means the configured default
            timeout_seconds: Deadline in seconds; missing or <= 0 means the
                configured default

        Returns:
            LockHandle for a later ``release``

        Raises:
            LockTimeoutError: The marker stayed held until the deadline
            StorageError: The marker store failed; never treated as "still locked"
            InterruptedWaitError: ``cancel_event`` was set during a backoff sleep
            InvalidResourceNameError: The name is not usable as a marker name
        """
        name = normalize_resource_name(resource_name, default=self.config.resource_name)
        timeout = normalize_timeout(timeout_seconds, default=self.config.timeout_seconds)
        stale_threshold = self._stale_threshold(timeout)
        log = with_log_context(self.logger, resource=name)

        self.state = LockState.INIT
        start = self._clock()
        log.info(f"Attempting to lock resource '{name}'...")
        self.state = LockState.POLLING
        try:
            info, attempts = self._poll(name, start, timeout, stale_threshold, log)
        except LockTimeoutError:
            self.state = LockState.TIMED_OUT
            raise
        except InterruptedWaitError:
            self.state = LockState.INTERRUPTED
            raise
        except StorageError:
            self.state = LockState.FAILED
            raise

        now = self._clock()
        self.state = LockState.ACQUIRED
        log.info("Got resource lock!")
        return LockHandle(
            resource_name=name,
            marker_path=self.store.path_for(name),
            lock_id=info.lock_id,
            acquired_at=now,
            waited_seconds=now - start,
            attempts=attempts,
        )

    def try_acquire(self, resource_name: str | None = None) -> LockHandle | None:
        """Claim the resource marker once without waiting. Returns None if it is held."""
        name = normalize_resource_name(resource_name, default=self.config.resource_name)
        log = with_log_context(self.logger, resource=name)
        log.info(f"Attempting to lock resource '{name}'...")
        try:
            info = self._claim(name, self._stale_threshold(self.config.timeout_seconds), log)
        except StorageError:
            self.state = LockState.FAILED
            raise
        if info is None:
            self.state = LockState.BUSY
            return None
        self.state = LockState.ACQUIRED
        log.info("Got resource lock!")
        now = self._clock()
        return LockHandle(
            resource_name=name,
            marker_path=self.store.path_for(name),
            lock_id=info.lock_id,
            acquired_at=now,
        )

    def release(self, handle: LockHandle) -> bool:
        """Delete the marker named by ``handle``.

        Returns:
            True if a marker was removed, False if it was already gone

        Raises:
            StorageError: The marker could not be deleted
        """
        return self.release_resource(handle.resource_name)

    def release_resource(self, resource_name: str | None = None) -> bool:
        """Delete the marker for ``resource_name`` regardless of who created it."""
        name = normalize_resource_name(resource_name, default=self.config.resource_name)
        log = with_log_context(self.logger, resource=name)
        log.info(f"Giving up resource '{name}'...")
        removed = self.store.delete(name)
        if not removed:
            log.warning(f"Lock marker for resource '{name}' was already absent")
        return removed

    @contextmanager
    def hold(self, resource_name: str | None = None, timeout_seconds: float | None = None) -> Iterator[LockHandle]:
        """Hold the resource for the duration of a ``with`` block.

        Release failures are logged and never replace the block's own result
        or exception.
        """
        handle = self.acquire(resource_name, timeout_seconds)
        try:
            yield handle
        finally:
            try:
                self.release(handle)
            except StorageError as e:
                self.logger.warning(f"Failed to release resource '{handle.resource_name}': {e}")

    def describe(self, resource_name: str | None = None) -> dict[str, Any]:
        """Return a diagnostic snapshot of the resource marker."""
        name = normalize_resource_name(resource_name, default=self.config.resource_name)
        path = self.store.path_for(name)
        held = self.store.exists(name)
        snapshot: dict[str, Any] = {
            "resource": name,
            "marker_path": str(path),
            "held": held,
            "age_seconds": None,
            "holder": None,
            "holder_alive": None,
        }
        if held:
            snapshot["age_seconds"] = self.store.age_seconds(name, self._clock())
            info = self.store.read_info(name)
            if info is not None:
                snapshot["holder"] = info.to_dict()
                if info.host == socket.gethostname():
                    snapshot["holder_alive"] = is_process_running(info.pid)
        return snapshot

    def _stale_threshold(self, timeout: float) -> float | None:
        if self.config.stale_multiplier <= 0:
            return None
        return self.config.stale_multiplier * timeout

    def _poll(
        self,
        name: str,
        start: float,
        timeout: float,
        stale_threshold: float | None,
        log: logging.Logger | logging.LoggerAdapter,
    ) -> tuple[MarkerInfo, int]:
        """Claim until success or deadline. Returns the marker info and attempt count."""
        deadline = start + timeout
        schedule = iter(BackoffSchedule(self.config.backoff))
        attempts = 0
        while True:
            attempts += 1
            info = self._claim(name, stale_threshold, log)
            if info is not None:
                return info, attempts

            now = self._clock()
            remaining = deadline - now
            if remaining <= 0:
                log.warning(f"Resource '{name}' still locked after {now - start:.1f}s; giving up")
                raise LockTimeoutError(name, timeout, waited_seconds=now - start, attempts=attempts)

            delay = min(next(schedule), remaining)
            log.debug(f"Resource '{name}' is locked; retrying in {delay:.1f}s ({remaining:.1f}s left)")
            if self._on_wait is not None:
                self._on_wait(attempts, delay, remaining)
            self._wait(name, delay, start)

    def _claim(
        self,
        name: str,
        stale_threshold: float | None,
        log: logging.Logger | logging.LoggerAdapter,
    ) -> MarkerInfo | None:
        """Try to create the marker, reclaiming it first if it is stale."""
        for _ in range(_CLAIM_ATTEMPTS_PER_POLL):
            info = MarkerInfo.for_current_process(
                name,
                owner=self.owner,
                created_at=_iso_from_timestamp(self._clock()),
            )
            if self.store.create_exclusive(name, info):
                return info

            if stale_threshold is None:
                return None
            age = self.store.age_seconds(name, self._clock())
            if age is None:
                # Released between our claim and the age check; claim again.
                continue
            if age <= stale_threshold or not self._reclaim(name, stale_threshold, log):
                return None
        return None

    def _reclaim(
        self,
        name: str,
        stale_threshold: float,
        log: logging.Logger | logging.LoggerAdapter,
    ) -> bool:
        """Delete a stale marker while holding the store's reclaim guard.

        The age is measured again under the guard: another reclaimer may have
        replaced the old marker with a fresh one since it was first seen.
        Returns True when the marker is gone and a claim should be retried.
        """
        if not self.store.acquire_reclaim_guard(name):
            log.debug(f"Another caller is reclaiming resource '{name}'")
            return False
        try:
            age = self.store.age_seconds(name, self._clock())
            if age is None:
                return True
            if age <= stale_threshold:
                return False

            previous = self.store.read_info(name)
            holder = f"pid {previous.pid} on {previous.host}" if previous is not None else "unknown holder"
            log.warning(
                f"Reclaiming stale lock for resource '{name}' held by {holder} "
                f"({age:.0f}s old, threshold {stale_threshold:.0f}s)"
            )
            self.store.delete(name)
            return True
        finally:
            self.store.release_reclaim_guard(name)

    def _wait(self, name: str, delay: float, start: float) -> None:
        if self._cancel_event is None:
            self._sleep(delay)
            return
        if self._cancel_event.wait(delay):
            raise InterruptedWaitError(name, waited_seconds=self._clock() - start)
