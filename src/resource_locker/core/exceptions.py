"""Custom exceptions for resource-locker.

All exception classes carry enough context (resource, path, timing) to
produce a clear operator-facing message without consulting the logs.
"""


class ResourceLockError(Exception):
    """Base exception for all resource-locker errors."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ConfigurationError(ResourceLockError):
    """Exception raised for invalid configuration values.

    Examples:
        - Non-numeric timeout in the environment
        - Negative backoff settings
        - Unusable lock directory
    """

    def __init__(self, message: str, field: str | None = None, details: str | None = None):
        self.field = field
        super().__init__(message, details)


class InvalidResourceNameError(ConfigurationError):
    """Raised when a resource name cannot be mapped safely to a marker file.

    Names are restricted to letters, digits, dot, underscore and hyphen and
    must start with a letter or digit. They are rejected rather than rewritten
    so that two distinct names never share a marker.
    """

    def __init__(self, resource_name: str, details: str | None = None):
        self.resource_name = resource_name
        super().__init__(f"Invalid resource name {resource_name!r}", field="resource_name", details=details)


class LockTimeoutError(ResourceLockError, TimeoutError):
    """Raised when a resource lock could not be obtained before the deadline.

    Attributes:
        resource_name: Resource that stayed locked
        timeout_seconds: Configured acquisition timeout
        waited_seconds: Wall-clock time spent polling
        attempts: Number of claim attempts made
    """

    def __init__(
        self,
        resource_name: str,
        timeout_seconds: float,
        waited_seconds: float = 0.0,
        attempts: int = 0,
    ):
        self.resource_name = resource_name
        self.timeout_seconds = timeout_seconds
        self.waited_seconds = waited_seconds
        self.attempts = attempts
        message = f"Timed out trying to obtain lock for resource '{resource_name}'"
        details = f"waited {waited_seconds:.1f}s of {timeout_seconds}s over {attempts} attempt(s)"
        super().__init__(message, details)


class StorageError(ResourceLockError, OSError):
    """Exception raised when the shared marker storage fails.

    Wraps permission problems, missing mounts and other I/O failures with the
    marker path and the operation that was running.
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        operation: str | None = None,
        original_error: Exception | None = None,
    ):
        self.path = path
        self.operation = operation
        self.original_error = original_error
        details = str(original_error) if original_error is not None else None
        super().__init__(message, details)

    def __str__(self) -> str:
        parts = [self.message]
        if self.operation:
            parts.append(f"during {self.operation}")
        if self.path:
            parts.append(self.path)
        if self.details:
            parts.append(self.details)
        return " - ".join(parts)


class InterruptedWaitError(ResourceLockError):
    """Raised when a backoff sleep is cancelled before the lock was obtained."""

    def __init__(self, resource_name: str, waited_seconds: float = 0.0):
        self.resource_name = resource_name
        self.waited_seconds = waited_seconds
        super().__init__(
            f"Wait for resource '{resource_name}' was cancelled",
            f"after {waited_seconds:.1f}s",
        )


class BuildAbortedError(ResourceLockError):
    """Raised by the build wrapper when the protected unit of work must not run."""

    def __init__(self, message: str, resource_name: str | None = None, cause: Exception | None = None):
        self.resource_name = resource_name
        self.cause = cause
        details = str(cause) if cause is not None else None
        super().__init__(message, details)
