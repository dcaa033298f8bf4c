"""Helper utilities for the dir-q CLI commands.

Provides editor invocation, stdin/stdout byte handling, logging setup and the
polling loop used for blocking reads.

Examples
--------
Wait up to forever for the next message::

    from dir_q.cli.helpers import wait_for_message
    from dir_q.core import DirQueue

    payload = wait_for_message(DirQueue("/srv/queue"), block=True, poll=0.5)

"""

from __future__ import annotations

import logging
import sys
import tempfile
import time
import typing as typ
from pathlib import Path

from dir_q.command_runner import EditorCommand, run_editor

if typ.TYPE_CHECKING:
    from dir_q.core import DirQueue, PurgeStats


def edit_bytes(initial: bytes = b"") -> bytes:
    """Open a scratch file in the editor and return what was saved.

    Parameters
    ----------
    initial : bytes, optional
        Initial content of the scratch file.

    Returns
    -------
    bytes
        Edited content.

    Raises
    ------
    RuntimeError
        If the editor exits with a non-zero status.

    """
    with tempfile.NamedTemporaryFile(
        "wb", delete=False, prefix="dirq.", suffix=".txt"
    ) as tf:
        path = Path(tf.name)
        tf.write(initial)

    try:
        command = EditorCommand.from_environment()
        result = run_editor(command, path)
        if not result.ok:
            msg = (
                f"editor exited with status {result.exit_code}: "
                f"{' '.join(command.argv(path))}"
            )
            raise RuntimeError(msg)
        return path.read_bytes()
    finally:
        path.unlink(missing_ok=True)


def read_stdin_bytes() -> bytes:
    """Read all of stdin as raw bytes.

    Returns
    -------
    bytes
        Stdin content.

    """
    return sys.stdin.buffer.read()


def write_stdout_bytes(data: bytes) -> None:
    """Write raw bytes to stdout and flush."""
    sys.stdout.buffer.write(data)
    sys.stdout.buffer.flush()


def wait_for_message(
    queue: DirQueue,
    *,
    block: bool,
    poll: float,
) -> bytes | None:
    """Consume one message, optionally polling until one exists.

    Parameters
    ----------
    queue : DirQueue
        Queue handle.
    block : bool
        Whether to poll until a message exists.
    poll : float
        Poll interval in seconds when blocking.

    Returns
    -------
    bytes | None
        Consumed payload, or None when no message is available.

    Raises
    ------
    ValueError
        If ``poll`` is not positive while blocking.

    """
    if block and poll <= 0:
        msg = f"poll interval must be positive, got {poll}"
        raise ValueError(msg)
    while True:
        payload = queue.consume_one()
        if payload is not None:
            return payload
        if not block:
            return None
        time.sleep(poll)


def configure_logging(*, verbose: bool) -> None:
    """Send library log records to stderr at DEBUG or WARNING level."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="dirq: %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def format_stats(stats: PurgeStats) -> str:
    """Render purge statistics as a single line."""
    return (
        f"removed {stats.buckets} empty buckets, "
        f"{stats.temps} temporary files, {stats.locks} locks"
    )
