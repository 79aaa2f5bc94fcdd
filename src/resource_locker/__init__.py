"""
resource-locker - Filesystem-coordinated locks for concurrent builds

Serializes build steps that share a named resource (a device, a test node,
a deployment target) using marker files in a shared directory, with no
central lock server.
"""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING, Any

from resource_locker.core.version import __version__

_EXPORTS = {
    "ResourceLock": "resource_locker.core.locks.manager",
    "LockHandle": "resource_locker.core.locks.manager",
    "BackoffSchedule": "resource_locker.core.locks.manager",
    "FileMarkerStore": "resource_locker.core.locks.backends",
    "LockConfig": "resource_locker.core.config",
    "BackoffConfig": "resource_locker.core.config",
    "ResourceLockWrapper": "resource_locker.wrapper",
    "Environment": "resource_locker.wrapper",
    "ResourceLockError": "resource_locker.core.exceptions",
    "LockTimeoutError": "resource_locker.core.exceptions",
    "StorageError": "resource_locker.core.exceptions",
    "BuildAbortedError": "resource_locker.core.exceptions",
    "main": "resource_locker.cli.main",
}

__all__ = ["__version__", *_EXPORTS]

if TYPE_CHECKING:
    from resource_locker.cli.main import main
    from resource_locker.core.config import BackoffConfig, LockConfig
    from resource_locker.core.exceptions import BuildAbortedError, LockTimeoutError, ResourceLockError, StorageError
    from resource_locker.core.locks.backends import FileMarkerStore
    from resource_locker.core.locks.manager import BackoffSchedule, LockHandle, ResourceLock
    from resource_locker.wrapper import Environment, ResourceLockWrapper


def __getattr__(name: str) -> Any:
    if name in _EXPORTS:
        module = importlib.import_module(_EXPORTS[name])
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
