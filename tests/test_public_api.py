"""Tests that the public import surface stays stable"""

import subprocess
import sys

import pytest

import resource_locker
from resource_locker.core.colors import ConsoleColors


class TestPublicImports:
    @pytest.mark.parametrize("name", [n for n in resource_locker.__all__ if n != "__version__"])
    def test_lazy_exports_resolve(self, name):
        assert getattr(resource_locker, name) is not None

    def test_unknown_attribute_raises(self):
        with pytest.raises(AttributeError):
            resource_locker.NotAThing  # noqa: B018

    def test_version_matches_core(self):
        from resource_locker.core import __version__

        assert resource_locker.__version__ == __version__

    def test_core_package_exports(self):
        from resource_locker.core import (
            DEFAULT_RESOURCE_NAME,
            DEFAULT_TIMEOUT_SECONDS,
            LockConfig,
            LockTimeoutError,
        )

        assert DEFAULT_RESOURCE_NAME == "node"
        assert DEFAULT_TIMEOUT_SECONDS == 900
        assert LockConfig
        assert LockTimeoutError

    def test_locks_package_exports(self):
        from resource_locker.core.locks import FileMarkerStore, LockState, ResourceLock

        assert FileMarkerStore
        assert ResourceLock
        assert LockState.ACQUIRED.value == "acquired"


def test_module_entry_point_runs(tmp_path):
    """python -m resource_locker dispatches to the CLI"""
    result = subprocess.run(
        [sys.executable, "-m", "resource_locker", "status", "--no-color", "--lock-dir", str(tmp_path), "-r", "printer"],
        capture_output=True,
        text=True,
        check=False,
    )

    assert result.returncode == 0
    assert "Resource 'printer': FREE" in result.stdout


class TestConsoleColors:
    def test_disabled_colors_leave_text_unchanged(self, monkeypatch):
        monkeypatch.setattr(ConsoleColors, "_enabled", False)

        assert ConsoleColors.success("ok") == "ok"
        assert ConsoleColors.error("bad") == "bad"

    def test_enabled_colors_wrap_text(self, monkeypatch):
        monkeypatch.setattr(ConsoleColors, "_enabled", True)

        colored = ConsoleColors.warning("careful")

        assert colored != "careful"
        assert ConsoleColors.strip(colored) == "careful"
        assert ConsoleColors.status(True, "FREE") == ConsoleColors.success("FREE")

    def test_no_color_environment_disables(self, monkeypatch):
        monkeypatch.setattr(ConsoleColors, "_enabled", True)
        monkeypatch.setenv("NO_COLOR", "1")

        ConsoleColors.configure()

        assert ConsoleColors.is_enabled() is False
