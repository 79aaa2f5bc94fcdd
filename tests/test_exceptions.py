"""Tests for the exception hierarchy and operator-facing messages"""

import pytest

from resource_locker.core.exceptions import (
    BuildAbortedError,
    ConfigurationError,
    InterruptedWaitError,
    InvalidResourceNameError,
    LockTimeoutError,
    ResourceLockError,
    StorageError,
)


@pytest.mark.parametrize(
    "error",
    [
        ConfigurationError("bad"),
        InvalidResourceNameError("a/b"),
        LockTimeoutError("printer", 900),
        StorageError("Cannot claim marker"),
        InterruptedWaitError("printer"),
        BuildAbortedError("Timed out trying to obtain lock..."),
    ],
)
def test_all_errors_share_base_class(error):
    assert isinstance(error, ResourceLockError)


def test_message_with_and_without_details():
    assert str(ResourceLockError("Lock failed")) == "Lock failed"
    assert str(ResourceLockError("Lock failed", details="disk full")) == "Lock failed: disk full"


def test_lock_timeout_is_a_builtin_timeout():
    error = LockTimeoutError("printer", 10, waited_seconds=10.02, attempts=3)

    assert isinstance(error, TimeoutError)
    assert str(error) == "Timed out trying to obtain lock for resource 'printer': waited 10.0s of 10s over 3 attempt(s)"


def test_storage_error_is_an_os_error_with_context():
    cause = PermissionError(13, "Permission denied")
    error = StorageError("Cannot claim marker", path="/locks/lock-printer.lock", operation="create", original_error=cause)

    assert isinstance(error, OSError)
    assert error.original_error is cause
    assert str(error) == "Cannot claim marker - during create - /locks/lock-printer.lock - [Errno 13] Permission denied"


def test_storage_error_can_be_caught_as_os_error():
    with pytest.raises(OSError):
        raise StorageError("Cannot delete marker", operation="delete")


def test_invalid_resource_name_is_a_configuration_error():
    error = InvalidResourceNameError("../etc", details="must not contain '/'")

    assert isinstance(error, ConfigurationError)
    assert error.field == "resource_name"
    assert str(error) == "Invalid resource name '../etc': must not contain '/'"


def test_interrupted_wait_reports_elapsed_time():
    error = InterruptedWaitError("printer", waited_seconds=12.345)

    assert str(error) == "Wait for resource 'printer' was cancelled: after 12.3s"


def test_build_aborted_keeps_cause():
    cause = LockTimeoutError("printer", 600)
    error = BuildAbortedError("Timed out trying to obtain lock...", resource_name="printer", cause=cause)

    assert error.cause is cause
    assert error.resource_name == "printer"
    assert str(error).startswith("Timed out trying to obtain lock...: Timed out trying to obtain lock for resource")
