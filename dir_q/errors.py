"""Exceptions raised by dir-q."""

from __future__ import annotations


class DirQueueError(Exception):
    """Base exception for all directory queue errors."""


class ConfigurationError(DirQueueError, ValueError):
    """Raised when a queue root or its options cannot be used."""


class QueueIOError(DirQueueError, OSError):
    """Raised when a filesystem operation on the queue tree fails.

    Wraps the underlying :class:`OSError`, keeping its ``errno`` and
    ``filename`` so callers can inspect the cause, and records which queue
    operation was being attempted.

    Parameters
    ----------
    operation : str
        Short label of the failed step, e.g. ``"link"`` or ``"read"``.
    error : OSError
        The original error.

    """

    def __init__(self, operation: str, error: OSError) -> None:
        self.operation = operation
        reason = error.strerror or str(error)
        super().__init__(error.errno, f"{operation} failed: {reason}", error.filename)
