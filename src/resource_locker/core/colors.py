"""Console colors for resource-locker CLI output.

Provides ANSI color codes for terminal output with auto-detection
of TTY support and Windows compatibility.
"""

import os
import re
import sys


class ConsoleColors:
    """ANSI color codes for terminal output.

    Auto-detects TTY support and handles Windows compatibility.
    """
    GREEN = '\033[92m'
    RED = '\033[91m'
    YELLOW = '\033[93m'
    CYAN = '\033[96m'
    BOLD = '\033[1m'
    DIM = '\033[90m'  # Bright black / dark gray for dimmed text
    RESET = '\033[0m'
    ANSI_ESCAPE = re.compile(r'\033\[[0-9;]*m')

    # Disable colors if not a TTY or on Windows without ANSI support
    _enabled = sys.stdout.isatty() and (os.name != 'nt' or bool(os.environ.get('TERM')))

    @classmethod
    def configure(cls, no_color: bool = False) -> None:
        """Apply the color policy for this process (``--no-color`` or ``NO_COLOR``)."""
        if no_color or os.environ.get('NO_COLOR'):
            cls._enabled = False

    @classmethod
    def is_enabled(cls) -> bool:
        """Check if colors are enabled."""
        return cls._enabled

    @classmethod
    def _wrap(cls, color: str, text: str) -> str:
        if cls._enabled:
            return f"{color}{text}{cls.RESET}"
        return text

    @classmethod
    def success(cls, text: str) -> str:
        """Format text as success (green)"""
        return cls._wrap(cls.GREEN, text)

    @classmethod
    def error(cls, text: str) -> str:
        """Format text as error (red)"""
        return cls._wrap(cls.RED, text)

    @classmethod
    def warning(cls, text: str) -> str:
        """Format text as warning (yellow)"""
        return cls._wrap(cls.YELLOW, text)

    @classmethod
    def info(cls, text: str) -> str:
        """Format text as info (cyan)"""
        return cls._wrap(cls.CYAN, text)

    @classmethod
    def bold(cls, text: str) -> str:
        return cls._wrap(cls.BOLD, text)

    @classmethod
    def dim(cls, text: str) -> str:
        return cls._wrap(cls.DIM, text)

    @classmethod
    def status(cls, success: bool, text: str) -> str:
        """Format text based on success/failure status"""
        return cls.success(text) if success else cls.error(text)

    @classmethod
    def strip(cls, text: str) -> str:
        """Remove ANSI escape codes from ``text``."""
        return cls.ANSI_ESCAPE.sub('', text)
