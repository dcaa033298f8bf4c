"""Pytest configuration and fixtures for dir-q tests."""

from __future__ import annotations

import os
import time
import typing as typ

# Path is used at runtime in fixture annotations.
from pathlib import Path  # noqa: TC003

import pytest

from dir_q.core import DirQueue


@pytest.fixture
def tmp_queue_dir(tmp_path: Path) -> Path:
    """Provide a path for a queue root that does not exist yet.

    Parameters
    ----------
    tmp_path : Path
        pytest ``tmp_path`` fixture.

    Returns
    -------
    Path
        Path to the queue root.

    """
    return tmp_path / "queue"


@pytest.fixture
def queue(tmp_queue_dir: Path) -> DirQueue:
    """Provide a DirQueue rooted in temporary storage.

    Parameters
    ----------
    tmp_queue_dir : Path
        Temporary queue root fixture.

    Returns
    -------
    DirQueue
        Queue handle for testing.

    """
    return DirQueue(tmp_queue_dir)


def _make_file(path: Path, *, age: float = 0.0, data: bytes = b"") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    if age:
        stamp = time.time() - age
        os.utime(path, (stamp, stamp))
    return path


@pytest.fixture
def make_file() -> typ.Callable[..., Path]:
    """Provide a factory creating files whose mtime lies ``age`` seconds back.

    Returns
    -------
    Callable[..., Path]
        ``make_file(path, *, age=0.0, data=b"")``.

    """
    return _make_file
