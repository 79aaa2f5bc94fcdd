"""CLI module - Command-line interface components."""

from resource_locker.cli.main import main
from resource_locker.cli.parser import build_parser, parse_arguments

__all__ = [
    "build_parser",
    "main",
    "parse_arguments",
]
