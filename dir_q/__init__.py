"""dir-q: broker-less queues stored in a directory tree.

Producers and consumers in any number of processes share a queue through
nothing but a directory: entries are published by hardlink and claimed by
hardlink, and stale leftovers are reclaimed by purge.
"""

from __future__ import annotations

import logging

from dir_q.config import default_base_dir
from dir_q.core import ConsumeResult, DirQueue, PurgeStats
from dir_q.errors import ConfigurationError, DirQueueError, QueueIOError

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
__all__ = [
    "ConfigurationError",
    "ConsumeResult",
    "DirQueue",
    "DirQueueError",
    "PurgeStats",
    "QueueIOError",
    "__version__",
    "default_base_dir",
]
