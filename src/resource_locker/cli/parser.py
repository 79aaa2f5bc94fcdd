"""CLI argument parsing for resource-locker."""

from __future__ import annotations

import argparse

from resource_locker.core.version import __version__

_EPILOG = """
Examples:
  # Run a command while holding the default "node" lock
  resource-locker run -- make deploy

  # Named resource with a 10 minute timeout
  resource-locker run --resource printer --timeout 600 -- ./print_labels.sh

  # Take the lock in one build step and give it up in a later one
  resource-locker acquire --resource emulator
  resource-locker release --resource emulator

  # Inspect or manually clear a stuck lock
  resource-locker status --resource printer --format json
  resource-locker clear --resource printer

  # Reclaim markers older than 4x the timeout (left by crashed builds)
  resource-locker run --resource printer --stale-multiplier 4 -- ./job.sh

Environment:
  RESOURCE_LOCK_NAME, RESOURCE_LOCK_TIMEOUT, RESOURCE_LOCK_DIR,
  RESOURCE_LOCK_STALE_MULTIPLIER and LOG_LEVEL provide defaults for the
  matching options. A .env file in the working directory is loaded first.
"""


def _positive_or_zero_float(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a number, got '{value}'") from None
    if parsed < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {parsed}")
    return parsed


def _timeout_seconds(value: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected seconds, got '{value}'") from None


def _build_common_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)

    lock_group = common.add_argument_group("lock options")
    lock_group.add_argument(
        "-r",
        "--resource",
        default=None,
        help="Resource name to lock (default: node)",
    )
    lock_group.add_argument(
        "--lock-dir",
        default=None,
        help="Shared directory holding lock markers (default: system temp directory)",
    )
    lock_group.add_argument(
        "--stale-multiplier",
        type=_positive_or_zero_float,
        default=None,
        help="Reclaim markers older than this multiple of the timeout; 0 disables (default: 0)",
    )
    lock_group.add_argument(
        "--owner",
        default="",
        help="Label recorded in the lock marker for diagnostics",
    )

    output_group = common.add_argument_group("output options")
    output_group.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        default=None,
        help="Logging level (default: LOG_LEVEL environment variable or INFO)",
    )
    output_group.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log output format (default: text)",
    )
    output_group.add_argument("--log-file", default=None, help="Also write logs to this rotating file")
    output_group.add_argument("-q", "--quiet", action="store_true", help="Only print warnings and errors")
    output_group.add_argument("--no-color", action="store_true", help="Disable colored output")
    return common


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser."""
    parser = argparse.ArgumentParser(
        prog="resource-locker",
        description="Serialize builds around a named resource using lock files on shared storage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=_EPILOG,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    common = _build_common_parser()
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    def _add_timeout(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "-t",
            "--timeout",
            type=_timeout_seconds,
            default=None,
            help="Seconds to wait for the lock; <= 0 means the default of 900",
        )
        sub.add_argument(
            "--progress",
            action="store_true",
            help="Show a progress bar while waiting for the lock",
        )

    run_parser = subparsers.add_parser(
        "run",
        parents=[common],
        help="Run a command while holding the lock",
        description="Acquire the lock, run COMMAND, then release the lock.",
    )
    _add_timeout(run_parser)
    run_parser.add_argument(
        "cmd",
        nargs=argparse.REMAINDER,
        metavar="-- COMMAND",
        help="Command (and arguments) to run while the lock is held",
    )

    acquire_parser = subparsers.add_parser(
        "acquire",
        parents=[common],
        help="Take the lock and leave it held",
        description="Take the lock and exit, leaving the marker in place until 'release'.",
    )
    _add_timeout(acquire_parser)
    acquire_parser.add_argument(
        "--no-wait",
        action="store_true",
        help="Try once and fail immediately if the resource is locked",
    )

    subparsers.add_parser(
        "release",
        parents=[common],
        aliases=["clear"],
        help="Give up (or manually clear) the lock",
        description="Delete the lock marker. Succeeds when the marker is already absent.",
    )

    status_parser = subparsers.add_parser(
        "status",
        parents=[common],
        help="Show whether the resource is locked",
    )
    status_parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        dest="output_format",
        help="Status output format (default: text)",
    )

    return parser


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments"""
    args = build_parser().parse_args(argv)
    if args.command == "clear":
        args.command = "release"
    if args.command == "run":
        cmd = list(args.cmd or [])
        if cmd and cmd[0] == "--":
            cmd = cmd[1:]
        args.cmd = cmd
    return args
