"""Configuration dataclasses for resource-locker.

These dataclasses centralize all configuration options for type safety
and easy testing. They can be created from command-line arguments, from
environment variables (optionally loaded from a ``.env`` file), or used
directly in code.
"""

from __future__ import annotations

import argparse
import logging
import math
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from dotenv import find_dotenv, load_dotenv

from resource_locker.core.constants import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_INITIAL_BACKOFF_SECONDS,
    DEFAULT_MAX_BACKOFF_SECONDS,
    DEFAULT_RESOURCE_NAME,
    DEFAULT_STALE_MULTIPLIER,
    DEFAULT_TIMEOUT_SECONDS,
    ENV_VAR_MAPPING,
    LOG_FILE_BACKUP_COUNT,
    LOG_FILE_MAX_BYTES,
    RESOURCE_NAME_MAX_LENGTH,
    RESOURCE_NAME_PATTERN,
    default_lock_dir,
)
from resource_locker.core.exceptions import ConfigurationError, InvalidResourceNameError


def normalize_resource_name(resource_name: str | None, default: str = DEFAULT_RESOURCE_NAME) -> str:
    """Trim a resource name, substitute the default when blank, and validate it.

    Args:
        resource_name: Caller-supplied name (may be None, empty or padded)
        default: Name used when nothing usable was supplied

    Returns:
        The normalized resource name

    Raises:
        InvalidResourceNameError: If the name contains characters that are
            not safe in a marker file name
    """
    name = (resource_name or "").strip()
    if not name:
        name = default
    if len(name) > RESOURCE_NAME_MAX_LENGTH:
        raise InvalidResourceNameError(name, details=f"longer than {RESOURCE_NAME_MAX_LENGTH} characters")
    if not RESOURCE_NAME_PATTERN.match(name):
        raise InvalidResourceNameError(
            name,
            details="use letters, digits, '.', '_' or '-' and start with a letter or digit",
        )
    return name


def normalize_timeout(timeout_seconds: float | None, default: float = DEFAULT_TIMEOUT_SECONDS) -> float:
    """Return ``timeout_seconds``, or ``default`` when it is missing or not positive."""
    if timeout_seconds is None or not math.isfinite(timeout_seconds) or timeout_seconds <= 0:
        return default
    return timeout_seconds


@dataclass(frozen=True)
class BackoffConfig:
    """Configuration for the polling backoff between claim attempts.

    Attributes:
        initial_seconds: First sleep after a failed claim (default: 5.0)
        multiplier: Growth factor applied after every sleep (default: 1.2)
        max_seconds: Cap applied to each individual sleep (default: 15.0)
    """

    initial_seconds: float = DEFAULT_INITIAL_BACKOFF_SECONDS
    multiplier: float = DEFAULT_BACKOFF_MULTIPLIER
    max_seconds: float = DEFAULT_MAX_BACKOFF_SECONDS

    def __post_init__(self) -> None:
        if self.initial_seconds < 0:
            raise ConfigurationError("Backoff initial delay cannot be negative", field="initial_seconds")
        if self.multiplier < 1:
            raise ConfigurationError("Backoff multiplier must be >= 1", field="multiplier")
        if self.max_seconds < self.initial_seconds:
            raise ConfigurationError(
                "Backoff max delay must be >= initial delay",
                field="max_seconds",
                details=f"max_seconds={self.max_seconds} < initial_seconds={self.initial_seconds}",
            )


@dataclass(frozen=True)
class LockConfig:
    """Configuration for one resource lock.

    Attributes:
        resource_name: Logical resource to protect (default: "node")
        timeout_seconds: Acquisition deadline; values <= 0 mean the default (900)
        lock_dir: Shared directory holding marker files (default: system temp dir)
        stale_multiplier: Reclaim markers older than this multiple of the timeout.
            0 (the default) never reclaims.
        backoff: Polling backoff settings
    """

    resource_name: str = DEFAULT_RESOURCE_NAME
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    lock_dir: str = field(default_factory=default_lock_dir)
    stale_multiplier: float = DEFAULT_STALE_MULTIPLIER
    backoff: BackoffConfig = field(default_factory=BackoffConfig)

    def normalized(self) -> LockConfig:
        """Return a copy with default substitution and validation applied."""
        if self.stale_multiplier < 0:
            raise ConfigurationError("Stale multiplier cannot be negative", field="stale_multiplier")
        return replace(
            self,
            resource_name=normalize_resource_name(self.resource_name),
            timeout_seconds=normalize_timeout(self.timeout_seconds),
            lock_dir=self.lock_dir or default_lock_dir(),
        )


@dataclass
class LogConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level string (default: "INFO")
        log_format: "text" or "json"
        log_file: Optional path of a rotating log file
        file_max_bytes: Maximum size per log file (default: 10MB)
        file_backup_count: Number of backup log files (default: 5)
    """

    level: str = "INFO"
    log_format: str = "text"
    log_file: str | None = None
    file_max_bytes: int = LOG_FILE_MAX_BYTES
    file_backup_count: int = LOG_FILE_BACKUP_COUNT


@dataclass
class LockerConfig:
    """Master configuration for a resource-locker invocation.

    Attributes:
        lock: Lock configuration
        log: Logging configuration
        quiet: Suppress non-error console output
        progress: Show a progress bar while waiting for a lock
    """

    lock: LockConfig = field(default_factory=LockConfig)
    log: LogConfig = field(default_factory=LogConfig)
    quiet: bool = False
    progress: bool = False

    @classmethod
    def from_args(cls, args: argparse.Namespace, env: Mapping[str, str] | None = None) -> LockerConfig:
        """Create configuration from parsed command-line arguments.

        Values given on the command line win over environment overrides,
        which win over the built-in defaults.
        """
        base = load_env_overrides(env)
        source_env = env if env is not None else os.environ

        def _pick(name: str, fallback: Any) -> Any:
            value = getattr(args, name, None)
            return fallback if value is None else value

        lock = replace(
            base,
            resource_name=_pick("resource", base.resource_name),
            timeout_seconds=_pick("timeout", base.timeout_seconds),
            lock_dir=_pick("lock_dir", base.lock_dir),
            stale_multiplier=_pick("stale_multiplier", base.stale_multiplier),
        )
        return cls(
            lock=lock,
            log=LogConfig(
                level=getattr(args, "log_level", None) or source_env.get("LOG_LEVEL", "INFO"),
                log_format=getattr(args, "log_format", None) or "text",
                log_file=getattr(args, "log_file", None),
            ),
            quiet=bool(getattr(args, "quiet", False)),
            progress=bool(getattr(args, "progress", False)),
        )


def _parse_env_numeric(value: str | None, cast: Callable[[str], Any]) -> Any | None:
    """Parse an environment value, returning None when invalid."""
    if value is None:
        return None
    try:
        parsed = cast(value)
    except (TypeError, ValueError):
        return None
    if isinstance(parsed, float) and not math.isfinite(parsed):
        return None
    return parsed


def load_env_overrides(env: Mapping[str, str] | None = None, *, use_dotenv: bool = True) -> LockConfig:
    """Build a LockConfig from environment variables.

    When ``env`` is None the process environment is used, after loading a
    ``.env`` file from the working directory (existing variables are not
    overridden). Invalid numeric values are ignored with a warning.

    Args:
        env: Explicit mapping to read instead of ``os.environ``
        use_dotenv: Load ``.env`` before reading the process environment

    Returns:
        LockConfig with environment overrides applied over the defaults
    """
    logger = logging.getLogger(__name__)
    if env is None:
        if use_dotenv:
            dotenv_path = find_dotenv(usecwd=True)
            if dotenv_path and load_dotenv(dotenv_path):
                logger.debug(f"Loaded environment overrides from {dotenv_path}")
        env = os.environ

    overrides: dict[str, Any] = {}

    name_var = ENV_VAR_MAPPING["resource_name"]
    if env.get(name_var):
        overrides["resource_name"] = env[name_var]

    dir_var = ENV_VAR_MAPPING["lock_dir"]
    if env.get(dir_var):
        overrides["lock_dir"] = env[dir_var]

    timeout_var = ENV_VAR_MAPPING["timeout_seconds"]
    parsed_timeout = _parse_env_numeric(env.get(timeout_var), float)
    if parsed_timeout is not None:
        overrides["timeout_seconds"] = parsed_timeout
    elif timeout_var in env:
        logger.warning(
            f"Ignoring invalid {timeout_var}={env.get(timeout_var)!r}; using default {DEFAULT_TIMEOUT_SECONDS}"
        )

    stale_var = ENV_VAR_MAPPING["stale_multiplier"]
    parsed_stale = _parse_env_numeric(env.get(stale_var), float)
    if parsed_stale is not None and parsed_stale >= 0:
        overrides["stale_multiplier"] = parsed_stale
    elif stale_var in env:
        logger.warning(
            f"Ignoring invalid {stale_var}={env.get(stale_var)!r}; using default {DEFAULT_STALE_MULTIPLIER}"
        )

    return LockConfig(**overrides)
