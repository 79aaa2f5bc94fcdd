"""Locking subsystem for cross-process coordination over a shared filesystem.

This package keeps marker storage (``backends``) separate from the
acquisition protocol (``manager``) so callers use one stable API.
"""

from resource_locker.core.locks.backends import FileMarkerStore, MarkerInfo, MarkerStore
from resource_locker.core.locks.manager import BackoffSchedule, LockHandle, LockState, ResourceLock

__all__ = [
    "BackoffSchedule",
    "FileMarkerStore",
    "LockHandle",
    "LockState",
    "MarkerInfo",
    "MarkerStore",
    "ResourceLock",
]
