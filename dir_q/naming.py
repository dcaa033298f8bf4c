"""Bucket and entry naming for directory queues.

Buckets are directories named after the creation time truncated to the queue
granularity; entries are files named after the creation time down to the
microsecond plus a random nibble. Both are fixed-width lowercase hexadecimal,
so lexical order roughly follows chronological order and protocol files can be
told apart from anything else living in the tree.

Examples
--------
Build the names used for a new element::

    import time

    from dir_q.naming import bucket_name, entry_name

    now = time.time()
    path = f"{bucket_name(now, 60)}/{entry_name(now)}"

"""

from __future__ import annotations

import re
import secrets

BUCKET_PATTERN = re.compile(r"[0-9a-f]{8}")
ENTRY_PATTERN = re.compile(r"[0-9a-f]{14}")

TEMP_SUFFIX = ".tmp"
LOCK_SUFFIX = ".lck"

_SECONDS_MASK = 0xFFFFFFFF


def bucket_name(now: float, granularity: int = 1) -> str:
    """Return the bucket directory name for a point in time.

    Parameters
    ----------
    now : float
        Seconds since the epoch.
    granularity : int, optional
        Width of a bucket's time window in seconds.

    Returns
    -------
    str
        Eight lowercase hex digits.

    Raises
    ------
    ValueError
        If ``granularity`` is not positive.

    """
    if granularity < 1:
        msg = f"granularity must be positive, got {granularity}"
        raise ValueError(msg)
    seconds = int(now)
    seconds -= seconds % granularity
    return f"{seconds & _SECONDS_MASK:08x}"


def entry_name(now: float) -> str:
    """Return a new entry file name for a point in time.

    The name is the seconds (8 digits), the microseconds (5 digits) and one
    random digit. Two producers hitting the same microsecond in the same
    bucket collide with probability 1/16; callers creating files under this
    name must use an exclusive create and draw a new name on ``EEXIST``.

    Parameters
    ----------
    now : float
        Seconds since the epoch.

    Returns
    -------
    str
        Fourteen lowercase hex digits.

    """
    seconds = int(now)
    micros = int((now - seconds) * 1_000_000) % 1_000_000
    return f"{seconds & _SECONDS_MASK:08x}{micros:05x}{secrets.randbelow(16):01x}"


def temp_name(now: float) -> str:
    """Return a name for a payload that is still being written."""
    return entry_name(now) + TEMP_SUFFIX


def lock_name(entry: str) -> str:
    """Return the lock file name that claims ``entry``."""
    return entry + LOCK_SUFFIX


def is_bucket_name(name: str) -> bool:
    """Check whether ``name`` is a bucket directory name."""
    return BUCKET_PATTERN.fullmatch(name) is not None


def is_entry_name(name: str) -> bool:
    """Check whether ``name`` is a published entry name."""
    return ENTRY_PATTERN.fullmatch(name) is not None


def is_temp_name(name: str) -> bool:
    """Check whether ``name`` is a temporary file left by a producer."""
    return name.endswith(TEMP_SUFFIX)


def is_lock_name(name: str) -> bool:
    """Check whether ``name`` is a lock file left by a consumer."""
    return name.endswith(LOCK_SUFFIX)
