"""Core module - Foundation components for resource-locker.

This module provides the basic building blocks used throughout the package:
- Version information
- Custom exceptions
- Configuration dataclasses
- Constants and defaults
"""

from resource_locker.core.version import __version__

from resource_locker.core.exceptions import (
    ResourceLockError,
    ConfigurationError,
    InvalidResourceNameError,
    LockTimeoutError,
    StorageError,
    InterruptedWaitError,
    BuildAbortedError,
)

from resource_locker.core.config import (
    BackoffConfig,
    LockConfig,
    LogConfig,
    LockerConfig,
    load_env_overrides,
    normalize_resource_name,
    normalize_timeout,
)

from resource_locker.core.constants import (
    DEFAULT_RESOURCE_NAME,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_INITIAL_BACKOFF_SECONDS,
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_MAX_BACKOFF_SECONDS,
    DEFAULT_STALE_MULTIPLIER,
    ENV_VAR_MAPPING,
)

__all__ = [
    # Version
    '__version__',
    # Exceptions
    'ResourceLockError',
    'ConfigurationError',
    'InvalidResourceNameError',
    'LockTimeoutError',
    'StorageError',
    'InterruptedWaitError',
    'BuildAbortedError',
    # Config
    'BackoffConfig',
    'LockConfig',
    'LogConfig',
    'LockerConfig',
    'load_env_overrides',
    'normalize_resource_name',
    'normalize_timeout',
    # Constants
    'DEFAULT_RESOURCE_NAME',
    'DEFAULT_TIMEOUT_SECONDS',
    'DEFAULT_INITIAL_BACKOFF_SECONDS',
    'DEFAULT_BACKOFF_MULTIPLIER',
    'DEFAULT_MAX_BACKOFF_SECONDS',
    'DEFAULT_STALE_MULTIPLIER',
    'ENV_VAR_MAPPING',
]
