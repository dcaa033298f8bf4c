"""Command-line interface for dir-q queues."""

from __future__ import annotations

import sys

# Path is evaluated at runtime by cyclopts to build the option converters.
from pathlib import Path  # noqa: TC003

import cyclopts

from dir_q import __version__
from dir_q.cli.helpers import (
    configure_logging,
    edit_bytes,
    format_stats,
    read_stdin_bytes,
    wait_for_message,
    write_stdout_bytes,
)
from dir_q.config import default_base_dir, default_umask, parse_umask
from dir_q.core import DirQueue
from dir_q.errors import DirQueueError

# Main CLI application
app = cyclopts.App(
    name="dirq",
    help="Directory queues (hardlink-claimed, broker-less).",
    version=__version__,
    version_flags=["--version", "-V"],
)


def _open_queue(
    base_dir: Path | None, umask: str | None, *, verbose: bool
) -> DirQueue:
    """Configure logging and open the queue selected by the common options."""
    configure_logging(verbose=verbose)
    mask = parse_umask(umask) if umask is not None else default_umask()
    return DirQueue(base_dir or default_base_dir(), mask)


@app.default
def main_help() -> None:
    """Show help message when no command is specified."""
    app.parse_args(["--help"])


@app.command
def add(
    *,
    base_dir: Path | None = None,
    umask: str | None = None,
    verbose: bool = False,
) -> int:
    """Read stdin, enqueue it as one message.

    Args:
        base_dir: Queue root (overrides DIRQ_DIR and XDG_STATE_HOME).
        umask: Octal permission mask for created files (overrides DIRQ_UMASK).
        verbose: Log queue operations to stderr.

    Returns:
        Exit code (0 on success).

    """
    with _open_queue(base_dir, umask, verbose=verbose) as queue:
        name = queue.produce(read_stdin_bytes())
    sys.stdout.write(name + "\n")
    return 0


@app.command
def put(
    *,
    base_dir: Path | None = None,
    umask: str | None = None,
    verbose: bool = False,
) -> int:
    """Open $EDITOR, enqueue the saved text as one message.

    Args:
        base_dir: Queue root (overrides DIRQ_DIR and XDG_STATE_HOME).
        umask: Octal permission mask for created files (overrides DIRQ_UMASK).
        verbose: Log queue operations to stderr.

    Returns:
        Exit code (0 on success).

    """
    with _open_queue(base_dir, umask, verbose=verbose) as queue:
        body = edit_bytes()
        name = queue.produce(body)
    sys.stdout.write(name + "\n")
    return 0


@app.command
def get(
    *,
    block: bool = False,
    poll: float = 0.2,
    base_dir: Path | None = None,
    umask: str | None = None,
    verbose: bool = False,
) -> int:
    """Consume one message and write it to stdout.

    Args:
        block: Poll until a message exists.
        poll: Polling interval in seconds when --block is used.
        base_dir: Queue root (overrides DIRQ_DIR and XDG_STATE_HOME).
        umask: Octal permission mask for created files (overrides DIRQ_UMASK).
        verbose: Log queue operations to stderr.

    Returns:
        Exit code (0 if a message was consumed, 1 if the queue is empty).

    """
    with _open_queue(base_dir, umask, verbose=verbose) as queue:
        payload = wait_for_message(queue, block=block, poll=poll)
    if payload is None:
        return 1
    write_stdout_bytes(payload)
    return 0


@app.command
def drain(
    *,
    null: bool = False,
    base_dir: Path | None = None,
    umask: str | None = None,
    verbose: bool = False,
) -> int:
    """Consume every message currently queued and write them to stdout.

    Args:
        null: Terminate each message with NUL instead of a newline.
        base_dir: Queue root (overrides DIRQ_DIR and XDG_STATE_HOME).
        umask: Octal permission mask for created files (overrides DIRQ_UMASK).
        verbose: Log queue operations to stderr.

    Returns:
        Exit code (0 on success, 2 if a message could not be consumed).

    """
    terminator = b"\0" if null else b"\n"
    with _open_queue(base_dir, umask, verbose=verbose) as queue:
        for result in queue.consume():
            if result.payload is not None:
                write_stdout_bytes(result.payload + terminator)
            if result.error is not None:
                sys.stderr.write(f"dirq: {result.name}: {result.error}\n")
                return 2
    return 0


@app.command
def empty(
    *,
    base_dir: Path | None = None,
    umask: str | None = None,
    verbose: bool = False,
) -> int:
    """Report whether the queue is empty through the exit code.

    Args:
        base_dir: Queue root (overrides DIRQ_DIR and XDG_STATE_HOME).
        umask: Octal permission mask for created files (overrides DIRQ_UMASK).
        verbose: Log queue operations to stderr.

    Returns:
        Exit code (0 if empty, 1 otherwise).

    """
    with _open_queue(base_dir, umask, verbose=verbose) as queue:
        return 0 if queue.empty() else 1


@app.command
def count(
    *,
    base_dir: Path | None = None,
    umask: str | None = None,
    verbose: bool = False,
) -> int:
    """Print the number of queued messages.

    Args:
        base_dir: Queue root (overrides DIRQ_DIR and XDG_STATE_HOME).
        umask: Octal permission mask for created files (overrides DIRQ_UMASK).
        verbose: Log queue operations to stderr.

    Returns:
        Exit code (0 on success).

    """
    with _open_queue(base_dir, umask, verbose=verbose) as queue:
        total = queue.count()
    sys.stdout.write(f"{total}\n")
    return 0


@app.command
def purge(
    *,
    max_temp_life: float | None = None,
    max_lock_life: float | None = None,
    base_dir: Path | None = None,
    umask: str | None = None,
    verbose: bool = False,
) -> int:
    """Remove empty buckets and stale temporary and lock files.

    Args:
        max_temp_life: Seconds after which a temporary file is stale.
        max_lock_life: Seconds after which a lock file is stale.
        base_dir: Queue root (overrides DIRQ_DIR and XDG_STATE_HOME).
        umask: Octal permission mask for created files (overrides DIRQ_UMASK).
        verbose: Log queue operations to stderr.

    Returns:
        Exit code (0 on success).

    """
    with _open_queue(base_dir, umask, verbose=verbose) as queue:
        stats = queue.purge(max_temp_life, max_lock_life)
    sys.stdout.write(format_stats(stats) + "\n")
    return 0


def main() -> int:
    """Run the dirq CLI.

    Returns:
        Exit code.

    """
    try:
        result = app()
        return result if isinstance(result, int) else 0
    except (ValueError, RuntimeError, DirQueueError) as e:
        sys.stderr.write(f"dirq: {e}\n")
        return 2
    except KeyboardInterrupt:
        sys.stderr.write("\n")
        return 130
