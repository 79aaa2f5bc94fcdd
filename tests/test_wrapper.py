"""Tests for the build-host wrapper"""

import logging
import time
from unittest.mock import MagicMock

import pytest

from resource_locker.core.config import LockConfig
from resource_locker.core.exceptions import BuildAbortedError, LockTimeoutError, StorageError
from resource_locker.wrapper import Environment, ResourceLockWrapper


@pytest.fixture
def wrapper_factory(make_lock, lock_dir):
    def _make(resource_name=None, timeout_seconds=0, **lock_overrides):
        lock = make_lock(**lock_overrides)
        return ResourceLockWrapper(resource_name, timeout_seconds, config=LockConfig(lock_dir=str(lock_dir)), lock=lock)

    return _make


class TestSetUpTearDown:
    def test_set_up_holds_marker_until_tear_down(self, wrapper_factory, store):
        environment = wrapper_factory("printer", 10).set_up()

        assert isinstance(environment, Environment)
        assert environment.resource_name == "printer"
        assert store.exists("printer")

        assert environment.tear_down() is True
        assert not store.exists("printer")

    def test_tear_down_twice_is_harmless(self, wrapper_factory):
        environment = wrapper_factory("printer", 10).set_up()

        assert environment.tear_down() is True
        assert environment.tear_down() is False

    def test_tear_down_reports_already_cleared_marker(self, wrapper_factory, store):
        environment = wrapper_factory("printer", 10).set_up()
        store.delete("printer")

        assert environment.tear_down() is False

    def test_tear_down_turns_storage_error_into_warning(self, wrapper_factory, caplog):
        environment = wrapper_factory("printer", 10).set_up()
        environment.lock.store.delete = MagicMock(
            side_effect=StorageError("Cannot delete marker", path="lock-printer.lock", operation="delete")
        )

        with caplog.at_level(logging.WARNING):
            assert environment.tear_down() is False

        assert "Could not release resource 'printer'" in caplog.text

    def test_timeout_aborts_build(self, wrapper_factory, store, fake_clock):
        store.create("printer", time.time())
        wrapper = wrapper_factory("printer", 10)

        with pytest.raises(BuildAbortedError) as exc_info:
            wrapper.set_up()

        assert str(exc_info.value).startswith("Timed out trying to obtain lock...")
        assert exc_info.value.resource_name == "printer"
        assert isinstance(exc_info.value.cause, LockTimeoutError)
        assert fake_clock.elapsed == pytest.approx(10)

    def test_storage_error_is_not_turned_into_abort(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        wrapper = ResourceLockWrapper("printer", 10, config=LockConfig(lock_dir=str(blocker)))

        with pytest.raises(StorageError):
            wrapper.set_up()


class TestDefaults:
    def test_blank_name_and_zero_timeout_use_defaults(self, lock_dir):
        wrapper = ResourceLockWrapper("", 0, config=LockConfig(lock_dir=str(lock_dir)))

        assert wrapper.resource_name == "node"
        assert wrapper.timeout_seconds == 900

    def test_config_defaults_are_used_when_arguments_are_blank(self, lock_dir):
        config = LockConfig(resource_name="emulator", timeout_seconds=60, lock_dir=str(lock_dir))

        wrapper = ResourceLockWrapper(None, -1, config=config)

        assert wrapper.resource_name == "emulator"
        assert wrapper.timeout_seconds == 60

    def test_arguments_win_over_config(self, lock_dir):
        config = LockConfig(resource_name="emulator", timeout_seconds=60, lock_dir=str(lock_dir))

        wrapper = ResourceLockWrapper("printer", 5, config=config)

        assert wrapper.resource_name == "printer"
        assert wrapper.timeout_seconds == 5


class TestRun:
    def test_run_returns_work_result_and_releases(self, wrapper_factory, store):
        def _work():
            assert store.exists("printer")
            return "labels printed"

        assert wrapper_factory("printer", 10).run(_work) == "labels printed"
        assert not store.exists("printer")

    def test_run_releases_when_work_fails(self, wrapper_factory, store):
        def _work():
            raise ValueError("paper jam")

        with pytest.raises(ValueError, match="paper jam"):
            wrapper_factory("printer", 10).run(_work)
        assert not store.exists("printer")

    def test_release_problem_does_not_mask_work_exception(self, wrapper_factory):
        wrapper = wrapper_factory("printer", 10)
        wrapper.lock.store.delete = MagicMock(side_effect=StorageError("Cannot delete marker", operation="delete"))

        def _work():
            raise ValueError("paper jam")

        with pytest.raises(ValueError, match="paper jam"):
            wrapper.run(_work)

    def test_work_never_runs_on_timeout(self, wrapper_factory, store):
        store.create("printer", time.time())
        work = MagicMock()

        with pytest.raises(BuildAbortedError):
            wrapper_factory("printer", 10).run(work)

        work.assert_not_called()
        assert store.exists("printer")

    def test_serialized_builds_hand_off_the_resource(self, wrapper_factory, store):
        order = []
        first = wrapper_factory("printer", 10)
        second = wrapper_factory("printer", 10)

        first.run(lambda: order.append("first"))
        second.run(lambda: order.append("second"))

        assert order == ["first", "second"]
        assert not store.exists("printer")
