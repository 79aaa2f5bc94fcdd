"""CLI entrypoint for resource-locker."""

from __future__ import annotations

import argparse
import contextlib
import json
import logging
import signal
import subprocess
import sys
import threading
from collections.abc import Callable, Iterator

from tqdm import tqdm

from resource_locker.core.colors import ConsoleColors
from resource_locker.core.config import LockerConfig
from resource_locker.core.constants import EXIT_ERROR, EXIT_SUCCESS, EXIT_TIMEOUT
from resource_locker.core.exceptions import (
    InterruptedWaitError,
    LockTimeoutError,
    ResourceLockError,
)
from resource_locker.core.locks.manager import ResourceLock, WaitCallback
from resource_locker.core.logging import flush_logging_handlers, setup_logging
from resource_locker.cli.parser import parse_arguments

EXIT_INTERRUPTED = 130
EXIT_COMMAND_NOT_FOUND = 127


def _print_error(msg: str) -> None:
    """Print a coloured error message to stderr."""
    print(ConsoleColors.error(f"ERROR: {msg}"), file=sys.stderr)


@contextlib.contextmanager
def _cancel_on_sigterm(on_signal: Callable[[], None] | None = None) -> Iterator[threading.Event]:
    """Yield an event that is set when the process receives SIGTERM.

    Build hosts abort jobs with SIGTERM. While waiting, the event cancels the
    backoff sleep; ``on_signal`` lets a caller also stop work already started.
    """
    cancel_event = threading.Event()
    if threading.current_thread() is not threading.main_thread():
        yield cancel_event
        return

    def _handler(signum, frame) -> None:
        del signum, frame
        cancel_event.set()
        if on_signal is not None:
            on_signal()

    previous = signal.signal(signal.SIGTERM, _handler)
    try:
        yield cancel_event
    finally:
        signal.signal(signal.SIGTERM, previous)


@contextlib.contextmanager
def _wait_progress(config: LockerConfig, resource_name: str) -> Iterator[WaitCallback | None]:
    """Yield an ``on_wait`` callback that drives a tqdm bar, or None when disabled."""
    if not config.progress or config.quiet:
        yield None
        return

    timeout = config.lock.normalized().timeout_seconds
    with tqdm(
        total=timeout,
        desc=f"Waiting for '{resource_name}'",
        unit="s",
        bar_format="{l_bar}{bar}| {n:.0f}/{total:.0f}s [{elapsed}]",
        leave=False,
        file=sys.stderr,
    ) as pbar:

        def _on_wait(attempt: int, delay: float, remaining: float) -> None:
            del remaining
            pbar.set_postfix_str(f"attempt {attempt}")
            pbar.update(min(delay, max(0.0, pbar.total - pbar.n)))

        yield _on_wait


def _build_lock(
    config: LockerConfig,
    args: argparse.Namespace,
    logger: logging.Logger,
    cancel_event: threading.Event | None = None,
    on_wait: WaitCallback | None = None,
) -> ResourceLock:
    return ResourceLock(
        config.lock,
        owner=getattr(args, "owner", "") or "",
        logger=logger,
        cancel_event=cancel_event,
        on_wait=on_wait,
    )


def _run_command(config: LockerConfig, args: argparse.Namespace, logger: logging.Logger) -> int:
    if not args.cmd:
        _print_error("No command given. Usage: resource-locker run [options] -- COMMAND [ARGS...]")
        return EXIT_ERROR

    resource_name = config.lock.normalized().resource_name
    children: list[subprocess.Popen] = []

    def _terminate_children() -> None:
        for child in children:
            if child.poll() is None:
                child.terminate()

    with _cancel_on_sigterm(_terminate_children) as cancel_event, _wait_progress(config, resource_name) as on_wait:
        lock = _build_lock(config, args, logger, cancel_event, on_wait)
        with lock.hold() as handle:
            logger.debug(f"Running {args.cmd!r} while holding '{handle.resource_name}'")
            try:
                child = subprocess.Popen(args.cmd)
            except FileNotFoundError:
                _print_error(f"Command not found: {args.cmd[0]}")
                return EXIT_COMMAND_NOT_FOUND
            except PermissionError:
                _print_error(f"Command is not executable: {args.cmd[0]}")
                return EXIT_COMMAND_NOT_FOUND
            children.append(child)
            if cancel_event.is_set():
                # SIGTERM arrived before the child was registered
                _terminate_children()
            returncode = child.wait()

    if cancel_event.is_set():
        _print_error(f"Terminated while running {args.cmd[0]} (exit code {returncode})")
        return EXIT_INTERRUPTED
    return returncode


def _acquire(config: LockerConfig, args: argparse.Namespace, logger: logging.Logger) -> int:
    resource_name = config.lock.normalized().resource_name
    with _cancel_on_sigterm() as cancel_event, _wait_progress(config, resource_name) as on_wait:
        lock = _build_lock(config, args, logger, cancel_event, on_wait)
        if args.no_wait:
            handle = lock.try_acquire()
            if handle is None:
                _print_error(f"Resource '{resource_name}' is locked")
                return EXIT_TIMEOUT
        else:
            handle = lock.acquire()
    if not config.quiet:
        print(ConsoleColors.success(f"Holding resource '{handle.resource_name}' ({handle.marker_path})"))
    return EXIT_SUCCESS


def _release(config: LockerConfig, args: argparse.Namespace, logger: logging.Logger) -> int:
    lock = _build_lock(config, args, logger)
    removed = lock.release_resource()
    if not config.quiet:
        name = lock.config.resource_name
        if removed:
            print(ConsoleColors.success(f"Released resource '{name}'"))
        else:
            print(ConsoleColors.warning(f"Resource '{name}' was not locked"))
    return EXIT_SUCCESS


def _format_status_text(snapshot: dict) -> str:
    state = ConsoleColors.status(not snapshot["held"], "FREE" if not snapshot["held"] else "HELD")
    lines = [
        f"Resource '{snapshot['resource']}': {state}",
        f"  Marker: {snapshot['marker_path']}",
    ]
    if snapshot["held"]:
        age = snapshot.get("age_seconds")
        if age is not None:
            lines.append(f"  Age:    {age:.0f}s")
        holder = snapshot.get("holder")
        if holder:
            owner = f" ({holder['owner']})" if holder.get("owner") else ""
            lines.append(f"  Holder: pid {holder['pid']} on {holder['host']}{owner} since {holder['created_at']}")
            if snapshot.get("holder_alive") is False:
                lines.append(ConsoleColors.warning("  Holder process is no longer running; 'clear' removes the marker"))
        else:
            lines.append(ConsoleColors.dim("  Holder: unknown (marker has no metadata)"))
    return "\n".join(lines)


def _status(config: LockerConfig, args: argparse.Namespace, logger: logging.Logger) -> int:
    lock = _build_lock(config, args, logger)
    snapshot = lock.describe()
    if args.output_format == "json":
        print(json.dumps(snapshot, indent=2, default=str))
    else:
        print(_format_status_text(snapshot))
    return EXIT_SUCCESS


_COMMANDS = {
    "run": _run_command,
    "acquire": _acquire,
    "release": _release,
    "status": _status,
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the script"""
    args = parse_arguments(argv)
    ConsoleColors.configure(no_color=getattr(args, "no_color", False))

    try:
        config = LockerConfig.from_args(args)
        log_level = "WARNING" if config.quiet and args.log_level is None else config.log.level
        logger = setup_logging(
            log_level,
            config.log.log_format,
            config.log.log_file,
            max_bytes=config.log.file_max_bytes,
            backup_count=config.log.file_backup_count,
        )
        return _COMMANDS[args.command](config, args, logger)
    except LockTimeoutError as e:
        _print_error(str(e))
        return EXIT_TIMEOUT
    except InterruptedWaitError as e:
        _print_error(str(e))
        return EXIT_INTERRUPTED
    except ResourceLockError as e:
        _print_error(str(e))
        return EXIT_ERROR
    except KeyboardInterrupt:
        _print_error("Interrupted")
        return EXIT_INTERRUPTED
    finally:
        flush_logging_handlers(logging.getLogger("resource_locker"))


if __name__ == "__main__":
    sys.exit(main())
