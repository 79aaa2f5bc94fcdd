"""Marker store implementations.

Design principles:
- Lock state is the existence of the marker file, nothing else.
- Metadata written into the marker is informational and must never be
  treated as lock truth; an empty or unreadable marker is still a held lock.
- The store performs no retries. Timing and retry policy belong to
  ``ResourceLock``.
"""

from __future__ import annotations

import contextlib
import errno
import json
import logging
import os
import socket
import time
import uuid
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from resource_locker.core.constants import (
    MARKER_FILE_PREFIX,
    MARKER_FILE_SUFFIX,
    MARKER_METADATA_VERSION,
    RECLAIM_GUARD_STALE_SECONDS,
    RECLAIM_GUARD_SUFFIX,
)
from resource_locker.core.exceptions import StorageError

logger = logging.getLogger(__name__)


def _utcnow_iso() -> str:
    return datetime.now(UTC).isoformat()


def _write_all(fd: int, payload: bytes) -> None:
    """Write complete payload to fd, handling short writes."""
    total_written = 0
    while total_written < len(payload):
        written = os.write(fd, payload[total_written:])
        if written <= 0:
            raise OSError("short write while persisting marker metadata")
        total_written += written


@dataclass
class MarkerInfo:
    """Serializable marker metadata for diagnostics."""

    resource: str
    lock_id: str
    pid: int
    host: str
    owner: str
    created_at: str
    version: int = MARKER_METADATA_VERSION

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MarkerInfo | None:
        try:
            return cls(
                resource=str(data["resource"]),
                lock_id=str(data["lock_id"]),
                pid=int(data["pid"]),
                host=str(data["host"]),
                owner=str(data.get("owner", "")),
                created_at=str(data["created_at"]),
                version=int(data.get("version", MARKER_METADATA_VERSION)),
            )
        except (KeyError, TypeError, ValueError):
            return None

    @classmethod
    def for_current_process(cls, resource: str, owner: str = "", created_at: str | None = None) -> MarkerInfo:
        """Build metadata describing this process as the marker creator."""
        return cls(
            resource=resource,
            lock_id=str(uuid.uuid4()),
            pid=os.getpid(),
            host=socket.gethostname(),
            owner=owner,
            created_at=created_at or _utcnow_iso(),
        )

    def created_at_datetime(self) -> datetime | None:
        try:
            parsed = datetime.fromisoformat(self.created_at)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed


class MarkerStore(Protocol):
    """Storage abstraction for the per-resource marker."""

    def path_for(self, resource_name: str) -> Path:
        """Return the marker location for ``resource_name``."""

    def exists(self, resource_name: str) -> bool:
        """Return True if the marker currently exists."""

    def create(self, resource_name: str, timestamp: float) -> None:
        """Create the marker or update its modification time."""

    def create_exclusive(self, resource_name: str, info: MarkerInfo) -> bool:
        """Create the marker only if absent. Returns False when it already exists."""

    def delete(self, resource_name: str) -> bool:
        """Remove the marker. Returns whether a marker was removed."""

    def read_info(self, resource_name: str) -> MarkerInfo | None:
        """Read marker metadata, if present and parseable."""

    def age_seconds(self, resource_name: str, now: float) -> float | None:
        """Return the marker age relative to ``now``, or None if absent."""

    def acquire_reclaim_guard(self, resource_name: str) -> bool:
        """Take the exclusive right to reclaim a stale marker. Returns False if another caller holds it."""

    def release_reclaim_guard(self, resource_name: str) -> None:
        """Give up the right taken with ``acquire_reclaim_guard``."""


class FileMarkerStore:
    """Marker store backed by plain files in a shared directory.

    Each resource maps to ``<lock_dir>/lock-<resource>.lock``. The directory
    is created on first write. Resource names must already be validated
    (see ``normalize_resource_name``); the store only guards against names
    that would escape ``lock_dir``.

    Args:
        lock_dir: Shared directory reachable by every caller
    """

    name = "file"

    def __init__(self, lock_dir: str | Path):
        self.lock_dir = Path(lock_dir)

    def __repr__(self) -> str:
        return f"FileMarkerStore(lock_dir={str(self.lock_dir)!r})"

    def path_for(self, resource_name: str) -> Path:
        if not resource_name or os.path.basename(resource_name) != resource_name or resource_name in (".", ".."):
            raise StorageError("Resource name is not a plain file name", path=resource_name, operation="path_for")
        return self.lock_dir / f"{MARKER_FILE_PREFIX}{resource_name}{MARKER_FILE_SUFFIX}"

    def _ensure_dir(self) -> None:
        try:
            self.lock_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(
                "Cannot create lock directory", path=str(self.lock_dir), operation="mkdir", original_error=e
            ) from e

    def exists(self, resource_name: str) -> bool:
        path = self.path_for(resource_name)
        try:
            os.stat(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            if e.errno == errno.ENOTDIR:
                return False
            raise StorageError("Cannot check marker", path=str(path), operation="exists", original_error=e) from e
        return True

    def create(self, resource_name: str, timestamp: float) -> None:
        self._ensure_dir()
        path = self.path_for(resource_name)
        try:
            fd = os.open(str(path), os.O_CREAT | os.O_WRONLY, 0o644)
            os.close(fd)
            os.utime(path, (timestamp, timestamp))
        except OSError as e:
            raise StorageError("Cannot create marker", path=str(path), operation="create", original_error=e) from e

    def create_exclusive(self, resource_name: str, info: MarkerInfo) -> bool:
        self._ensure_dir()
        path = self.path_for(resource_name)
        try:
            fd = os.open(str(path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        except OSError as e:
            raise StorageError("Cannot claim marker", path=str(path), operation="create", original_error=e) from e

        try:
            payload = (json.dumps(info.to_dict(), sort_keys=True) + "\n").encode("utf-8")
            _write_all(fd, payload)
            os.fsync(fd)
        except OSError as e:
            # The marker itself is the lock; metadata is best-effort.
            logger.debug(f"Claimed {path} but could not write holder metadata: {e}")
        finally:
            with contextlib.suppress(OSError):
                os.close(fd)
        return True

    def delete(self, resource_name: str) -> bool:
        path = self.path_for(resource_name)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError("Cannot delete marker", path=str(path), operation="delete", original_error=e) from e
        return True

    def read_info(self, resource_name: str) -> MarkerInfo | None:
        path = self.path_for(resource_name)
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            return None

        if not isinstance(data, dict):
            return None
        return MarkerInfo.from_dict(data)

    def age_seconds(self, resource_name: str, now: float) -> float | None:
        path = self.path_for(resource_name)
        try:
            mtime = os.stat(path).st_mtime
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError("Cannot stat marker", path=str(path), operation="stat", original_error=e) from e

        # A later touch (mtime) counts as renewal of the recorded creation time.
        reference = mtime
        info = self.read_info(resource_name)
        if info is not None:
            created = info.created_at_datetime()
            if created is not None:
                reference = max(reference, created.timestamp())
        return max(0.0, now - reference)

    def _guard_path(self, resource_name: str) -> Path:
        marker = self.path_for(resource_name)
        return marker.with_name(f"{marker.name}{RECLAIM_GUARD_SUFFIX}")

    def acquire_reclaim_guard(self, resource_name: str) -> bool:
        """Exclusively create ``lock-<name>.lock.reclaim``.

        Only the guard holder may delete a stale marker. A guard older than
        ``RECLAIM_GUARD_STALE_SECONDS`` belongs to a crashed reclaimer; it is
        removed and the reclaim is left to a later poll.
        """
        self._ensure_dir()
        path = self._guard_path(resource_name)
        try:
            fd = os.open(str(path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            self._clear_abandoned_guard(path)
            return False
        except OSError as e:
            raise StorageError(
                "Cannot create reclaim guard", path=str(path), operation="create", original_error=e
            ) from e
        with contextlib.suppress(OSError):
            os.close(fd)
        return True

    def release_reclaim_guard(self, resource_name: str) -> None:
        path = self._guard_path(resource_name)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageError(
                "Cannot remove reclaim guard", path=str(path), operation="delete", original_error=e
            ) from e

    @staticmethod
    def _clear_abandoned_guard(path: Path) -> None:
        try:
            age = time.time() - os.stat(path).st_mtime
        except OSError:
            return
        if age > RECLAIM_GUARD_STALE_SECONDS:
            logger.warning(f"Removing abandoned reclaim guard {path} ({age:.0f}s old)")
            with contextlib.suppress(OSError):
                path.unlink()


def is_process_running(pid: int) -> bool:
    """Return True if ``pid`` names a live process on this host."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
        return True
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OSError as e:
        return e.errno == errno.EPERM
