"""Environment-derived defaults for the dir-q command line.

The queue itself takes every setting explicitly; only the CLI consults the
environment, through the helpers here.
"""

from __future__ import annotations

import os
from pathlib import Path

ENV_DIR = "DIRQ_DIR"
ENV_UMASK = "DIRQ_UMASK"


def default_base_dir() -> Path:
    """Get default queue directory.

    Respects the DIRQ_DIR environment variable, then XDG_STATE_HOME,
    then falls back to ~/.local/state/dir-q.

    Returns:
        Path to the queue root.

    """
    if p := os.environ.get(ENV_DIR):
        return Path(p).expanduser()
    if p := os.environ.get("XDG_STATE_HOME"):
        return Path(p).expanduser() / "dir-q"
    return Path.home() / ".local" / "state" / "dir-q"


def parse_umask(raw: str | None) -> int | None:
    """Parse an octal permission mask such as ``"022"`` or ``"0o027"``.

    Args:
        raw: The text to parse. None or blank means "not set".

    Returns:
        The mask, or None when not set.

    Raises:
        ValueError: If the text is not an octal number.

    """
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw.strip().removeprefix("0o"), 8)
    except ValueError as e:
        msg = f"umask is not an octal number: {raw!r}"
        raise ValueError(msg) from e


def default_umask() -> int | None:
    """Get the default permission mask from DIRQ_UMASK.

    Returns:
        The mask, or None to keep the process umask.

    """
    return parse_umask(os.environ.get(ENV_UMASK))
