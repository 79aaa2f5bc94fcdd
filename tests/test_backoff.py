"""Tests for the polling backoff schedule"""

import itertools

import pytest

from resource_locker.core.config import BackoffConfig
from resource_locker.core.exceptions import ConfigurationError
from resource_locker.core.locks.manager import BackoffSchedule


def test_default_schedule_grows_by_twenty_percent():
    assert BackoffSchedule().take(7) == pytest.approx([5.0, 6.0, 7.2, 8.64, 10.368, 12.4416, 14.92992])


def test_default_schedule_caps_at_fifteen_seconds():
    intervals = BackoffSchedule().take(12)

    assert intervals[7:] == pytest.approx([15.0] * 5)
    assert max(intervals) == 15.0


def test_schedule_is_deterministic():
    assert BackoffSchedule().take(20) == BackoffSchedule().take(20)


def test_schedule_is_unbounded():
    intervals = list(itertools.islice(BackoffSchedule(), 10_000))

    assert len(intervals) == 10_000
    assert intervals[-1] == 15.0


def test_custom_configuration():
    schedule = BackoffSchedule(BackoffConfig(initial_seconds=1, multiplier=2, max_seconds=5))

    assert schedule.take(5) == [1, 2, 4, 5, 5]


def test_constant_backoff_with_unit_multiplier():
    assert BackoffSchedule(BackoffConfig(initial_seconds=2, multiplier=1, max_seconds=2)).take(3) == [2, 2, 2]


def test_take_zero_returns_empty_list():
    assert BackoffSchedule().take(0) == []


class TestBackoffConfigValidation:
    def test_negative_initial_delay_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            BackoffConfig(initial_seconds=-1)
        assert exc_info.value.field == "initial_seconds"

    def test_shrinking_multiplier_rejected(self):
        with pytest.raises(ConfigurationError, match="multiplier"):
            BackoffConfig(multiplier=0.5)

    def test_cap_below_initial_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            BackoffConfig(initial_seconds=10, max_seconds=5)
        assert exc_info.value.field == "max_seconds"
        assert "max_seconds=5" in str(exc_info.value)
