"""Constants and default values for resource-locker.

This module centralizes the named defaults used throughout the package.
Nothing here is mutated at runtime; callers inject these values through
the configuration dataclasses in ``resource_locker.core.config``.
"""

import re
import tempfile

# ==================== RESOURCE DEFAULTS ====================

DEFAULT_RESOURCE_NAME: str = "node"
DEFAULT_TIMEOUT_SECONDS: int = 15 * 60  # 15 minutes

# Allowed resource names map 1:1 to marker file names
RESOURCE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
RESOURCE_NAME_MAX_LENGTH: int = 128

# ==================== BACKOFF DEFAULTS ====================

DEFAULT_INITIAL_BACKOFF_SECONDS: float = 5.0
DEFAULT_BACKOFF_MULTIPLIER: float = 1.2
DEFAULT_MAX_BACKOFF_SECONDS: float = 15.0

# ==================== MARKER STORE ====================

MARKER_FILE_PREFIX: str = "lock-"
MARKER_FILE_SUFFIX: str = ".lock"
MARKER_METADATA_VERSION: int = 1
RECLAIM_GUARD_SUFFIX: str = ".reclaim"
# A reclaim guard outliving this is left over from a crashed reclaimer
RECLAIM_GUARD_STALE_SECONDS: float = 60.0


def default_lock_dir() -> str:
    """Return the shared directory used for marker files when none is configured."""
    return tempfile.gettempdir()


# ==================== STALE LOCK RECOVERY ====================

# 0 disables reclaiming; markers then live until explicitly released.
DEFAULT_STALE_MULTIPLIER: float = 0.0

# ==================== LOGGING DEFAULTS ====================

LOG_FILE_MAX_BYTES: int = 10 * 1024 * 1024  # 10MB max per log file
LOG_FILE_BACKUP_COUNT: int = 5  # Number of backup log files to keep
VALID_LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# ==================== ENVIRONMENT ====================

# Environment variable names mapped to LockConfig fields
ENV_VAR_MAPPING: dict[str, str] = {
    "resource_name": "RESOURCE_LOCK_NAME",
    "timeout_seconds": "RESOURCE_LOCK_TIMEOUT",
    "lock_dir": "RESOURCE_LOCK_DIR",
    "stale_multiplier": "RESOURCE_LOCK_STALE_MULTIPLIER",
}

# ==================== EXIT CODES ====================

EXIT_SUCCESS: int = 0
EXIT_ERROR: int = 1
EXIT_TIMEOUT: int = 2
