"""Core directory queue implementation for dir-q.

Provides a broker-less queue stored as a two-level directory tree. Producers
publish a payload by writing a temporary file and hardlinking it to an entry
name; consumers claim an entry by hardlinking it to a lock name, which only one
process can do. All coordination goes through the filesystem, so any number of
processes (on any hosts sharing the filesystem) can use the same root.

Layout::

    <root>/<bucket>/<entry>        published payload
    <root>/<bucket>/<entry>.lck    claim held by a consumer
    <root>/<bucket>/<name>.tmp     payload still being written
"""

from __future__ import annotations

import dataclasses
import errno
import logging
import os
import time
import typing as typ
from pathlib import Path

from dir_q import naming
from dir_q.errors import ConfigurationError, QueueIOError

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import types

logger = logging.getLogger(__name__)

DEFAULT_GRANULARITY = 1
DEFAULT_MAX_TEMP_LIFE = 300.0
DEFAULT_MAX_LOCK_LIFE = 600.0
MAX_NAME_ATTEMPTS = 16

# rmdir reports a non-empty directory with either code depending on platform.
_NOT_EMPTY = frozenset({errno.ENOTEMPTY, errno.EEXIST})
_CREATE_FLAGS = os.O_WRONLY | os.O_CREAT | os.O_EXCL


def _check_life(label: str, value: float) -> float:
    """Validate a maximum age in seconds."""
    if value < 0:
        msg = f"{label} must not be negative, got {value}"
        raise ConfigurationError(msg)
    return float(value)


@dataclasses.dataclass(frozen=True)
class ConsumeResult:
    """Outcome of consuming one claimed entry.

    Attributes:
        name: Element name as ``"<bucket>/<entry>"`` (just the bucket, or an
            empty string, when listing the tree failed).
        payload: Entry contents, or None if they could not be read.
        error: Failure that ended the traversal, if any.

    """

    name: str
    payload: bytes | None = None
    error: QueueIOError | None = None

    @property
    def ok(self) -> bool:
        """Whether the entry was read and removed without error."""
        return self.error is None


@dataclasses.dataclass
class PurgeStats:
    """Counts of what a purge removed."""

    buckets: int = 0
    temps: int = 0
    locks: int = 0


class DirQueue:
    """Directory-backed queue handle.

    The handle only carries configuration; it holds no open files and no
    process-wide state, so any number of handles (in any number of processes)
    may share a root.

    Args:
        root: Directory owning the queue tree. Created if absent.
        umask: Permission mask for created files and directories. None keeps
            the process umask.
        granularity: Width in seconds of the time window grouped in a bucket.
        max_temp_life: Default age in seconds after which purge deletes a
            temporary file.
        max_lock_life: Default age in seconds after which purge deletes a lock
            file, making its entry claimable again.

    Raises:
        ConfigurationError: If the root or an option is unusable.
        QueueIOError: If the root directory cannot be created.

    """

    def __init__(
        self,
        root: Path | str,
        umask: int | None = None,
        *,
        granularity: int = DEFAULT_GRANULARITY,
        max_temp_life: float = DEFAULT_MAX_TEMP_LIFE,
        max_lock_life: float = DEFAULT_MAX_LOCK_LIFE,
    ) -> None:
        """Validate options and create the queue root."""
        if not os.fspath(root):
            msg = "queue root is empty"
            raise ConfigurationError(msg)
        if umask is not None and not 0 <= umask <= 0o777:
            msg = f"umask must be between 0 and 0o777, got {umask:#o}"
            raise ConfigurationError(msg)
        if granularity < 1:
            msg = f"granularity must be positive, got {granularity}"
            raise ConfigurationError(msg)

        self.root = Path(root)
        self.umask = umask
        self.granularity = granularity
        self.max_temp_life = _check_life("max_temp_life", max_temp_life)
        self.max_lock_life = _check_life("max_lock_life", max_lock_life)

        if self.root.exists() and not self.root.is_dir():
            msg = f"queue root is not a directory: {self.root}"
            raise ConfigurationError(msg)
        self._make_dir(self.root, parents=True)

    def __repr__(self) -> str:
        """Return a debugging representation."""
        return f"{type(self).__name__}({str(self.root)!r})"

    def __enter__(self) -> typ.Self:
        """Return the handle itself."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: types.TracebackType | None,
    ) -> None:
        """Close the handle."""
        self.close()

    def close(self) -> None:
        """Release held resources.

        A handle holds nothing between calls, so this only exists for
        symmetry with other queue APIs and may be called any number of times.
        """

    @property
    def _dir_mode(self) -> int:
        return 0o777 if self.umask is None else 0o777 & ~self.umask

    @property
    def _file_mode(self) -> int:
        return 0o666 if self.umask is None else 0o666 & ~self.umask

    def _make_dir(self, path: Path, *, parents: bool = False) -> None:
        """Create a directory, treating an existing one as success."""
        try:
            path.mkdir(mode=self._dir_mode, parents=parents)
        except FileExistsError:
            return
        except OSError as e:
            raise QueueIOError("mkdir", e) from e
        if self.umask is None:
            return
        # mkdir applies the process umask on top of ours.
        try:
            path.chmod(self._dir_mode)
        except FileNotFoundError:
            # Purged while still empty; the next create brings it back.
            return
        except OSError as e:
            raise QueueIOError("chmod", e) from e

    # Producer

    def produce(self, payload: bytes) -> str:
        """Publish a payload as a new entry.

        The payload is written to a temporary file first and only becomes
        visible to consumers once it is complete and hardlinked under its
        entry name.

        Args:
            payload: Raw bytes to enqueue. May be empty.

        Returns:
            The element name, ``"<bucket>/<entry>"``.

        Raises:
            TypeError: If the payload is a str.
            QueueIOError: If the entry could not be written or published.

        """
        if isinstance(payload, str):
            msg = "payload must be bytes, not str"
            raise TypeError(msg)
        bucket = naming.bucket_name(time.time(), self.granularity)
        bucket_dir = self.root / bucket
        self._make_dir(bucket_dir)
        temp_path = self._write_temp(bucket_dir, payload)
        entry = self._publish(bucket_dir, temp_path)
        name = f"{bucket}/{entry}"
        logger.debug("Published %s (%d bytes)", name, len(payload))
        return name

    def _create_temp(self, bucket_dir: Path) -> tuple[int, Path]:
        """Exclusively create a fresh temporary file in a bucket."""
        last_error: OSError = FileExistsError(
            errno.EEXIST, "no free temporary name", str(bucket_dir)
        )
        for _ in range(MAX_NAME_ATTEMPTS):
            path = bucket_dir / naming.temp_name(time.time())
            try:
                fd = os.open(path, _CREATE_FLAGS, self._file_mode)
            except FileExistsError as e:
                last_error = e
            except FileNotFoundError as e:
                # A concurrent purge removed the bucket while it was empty.
                last_error = e
                self._make_dir(bucket_dir)
            except OSError as e:
                raise QueueIOError("open", e) from e
            else:
                return fd, path
        raise QueueIOError("open", last_error) from last_error

    def _write_temp(self, bucket_dir: Path, payload: bytes) -> Path:
        """Write the payload durably to a temporary file."""
        fd, path = self._create_temp(bucket_dir)
        try:
            with os.fdopen(fd, "wb") as f:
                if self.umask is not None:
                    os.fchmod(f.fileno(), self._file_mode)
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            self._discard(path)
            raise QueueIOError("write", e) from e
        return path

    def _publish(self, bucket_dir: Path, temp_path: Path) -> str:
        """Hardlink a complete temporary file to a new entry name."""
        last_error: OSError = FileExistsError(
            errno.EEXIST, "no free entry name", str(bucket_dir)
        )
        for _ in range(MAX_NAME_ATTEMPTS):
            entry = naming.entry_name(time.time())
            try:
                os.link(temp_path, bucket_dir / entry)
            except FileExistsError as e:
                last_error = e
                continue
            except OSError as e:
                self._discard(temp_path)
                raise QueueIOError("link", e) from e
            try:
                os.unlink(temp_path)
            except OSError as e:
                # The entry is already visible; purge collects the leftover.
                logger.warning(
                    "Published %s/%s but could not remove %s: %s",
                    bucket_dir.name,
                    entry,
                    temp_path,
                    e,
                )
            return entry
        self._discard(temp_path)
        raise QueueIOError("link", last_error) from last_error

    @staticmethod
    def _discard(path: Path) -> None:
        """Remove an unpublished temporary file, leaving it to purge on failure."""
        try:
            os.unlink(path)
        except OSError as e:
            logger.debug("Could not remove %s: %s", path, e)

    # Traversal

    def _list_buckets(self) -> list[str]:
        """Return bucket directory names under the root."""
        try:
            with os.scandir(self.root) as it:
                names = [
                    d.name
                    for d in it
                    if naming.is_bucket_name(d.name) and d.is_dir(follow_symlinks=False)
                ]
        except OSError as e:
            raise QueueIOError("list", e) from e
        return sorted(names)

    def _list_files(
        self, bucket: str, predicate: cabc.Callable[[str], bool]
    ) -> list[str]:
        """Return names of files in a bucket accepted by ``predicate``.

        A bucket removed since it was listed has no files.
        """
        try:
            with os.scandir(self.root / bucket) as it:
                names = [
                    f.name
                    for f in it
                    if predicate(f.name) and f.is_file(follow_symlinks=False)
                ]
        except FileNotFoundError:
            return []
        except OSError as e:
            raise QueueIOError("list", e) from e
        return sorted(names)

    def _list_entries(self, bucket: str) -> list[str]:
        return self._list_files(bucket, naming.is_entry_name)

    def _claim(self, path: Path) -> bool:
        """Try to lock an entry for this consumer.

        Returns:
            True if the lock was created, False if another consumer already
            holds it or already consumed the entry.

        """
        lock_path = path.with_name(naming.lock_name(path.name))
        try:
            os.link(path, lock_path)
        except (FileExistsError, FileNotFoundError):
            return False
        except OSError as e:
            raise QueueIOError("lock", e) from e
        # The link keeps the entry's mtime; restamp it so purge ages the claim.
        try:
            os.utime(lock_path)
        except OSError as e:
            raise QueueIOError("lock", e) from e
        return True

    @staticmethod
    def _read(path: Path) -> bytes:
        try:
            with path.open("rb") as f:
                return f.read()
        except OSError as e:
            raise QueueIOError("read", e) from e

    @staticmethod
    def _release(path: Path) -> None:
        """Delete a consumed entry, then its lock."""
        for target in (path, path.with_name(naming.lock_name(path.name))):
            try:
                os.unlink(target)
            except OSError as e:
                raise QueueIOError("unlink", e) from e

    def _consume_entry(self, bucket: str, entry: str) -> ConsumeResult | None:
        """Claim, read and remove one entry.

        Returns:
            None if the entry was claimed by someone else, otherwise the
            result of consuming it.

        """
        name = f"{bucket}/{entry}"
        path = self.root / bucket / entry
        try:
            if not self._claim(path):
                return None
            payload = self._read(path)
        except QueueIOError as e:
            return ConsumeResult(name, error=e)
        try:
            self._release(path)
        except QueueIOError as e:
            return ConsumeResult(name, payload, e)
        logger.debug("Consumed %s (%d bytes)", name, len(payload))
        return ConsumeResult(name, payload)

    # Consumer

    def consume(self) -> cabc.Iterator[ConsumeResult]:
        """Consume every claimable entry found by one walk of the tree.

        The walk is lazy: each entry is claimed only when the next result is
        requested, and stopping early leaves the remaining entries alone.
        Entries published after the walk passed their bucket are not seen;
        call again to pick them up.

        Yields:
            One result per consumed entry. A result carrying an error ends
            the sequence.

        """
        try:
            buckets = self._list_buckets()
        except QueueIOError as e:
            yield ConsumeResult("", error=e)
            return
        for bucket in buckets:
            try:
                entries = self._list_entries(bucket)
            except QueueIOError as e:
                yield ConsumeResult(bucket, error=e)
                return
            for entry in entries:
                result = self._consume_entry(bucket, entry)
                if result is None:
                    continue
                yield result
                if not result.ok:
                    return

    def consume_one(self) -> bytes | None:
        """Consume the first claimable entry.

        Returns:
            The payload, or None if nothing could be claimed.

        Raises:
            QueueIOError: If listing, claiming, reading or removing failed.

        """
        for result in self.consume():
            if result.error is not None:
                raise result.error
            return result.payload
        return None

    def empty(self) -> bool:
        """Check whether the queue holds no entries.

        Entries currently claimed by a consumer still count. Nothing is
        claimed or modified.

        Raises:
            QueueIOError: If the tree cannot be listed.

        """
        return not any(self._list_entries(bucket) for bucket in self._list_buckets())

    def count(self) -> int:
        """Return the number of entries in the queue, claimed or not.

        Raises:
            QueueIOError: If the tree cannot be listed.

        """
        return sum(len(self._list_entries(bucket)) for bucket in self._list_buckets())

    # Purge

    def purge(
        self,
        max_temp_life: float | None = None,
        max_lock_life: float | None = None,
    ) -> PurgeStats:
        """Remove empty buckets and stale temporary and lock files.

        Entries are never touched. Deleting a stale lock makes its entry
        claimable again.

        Args:
            max_temp_life: Age in seconds past which a temporary file is
                deleted. Defaults to the handle's setting.
            max_lock_life: Age in seconds past which a lock file is deleted.
                Defaults to the handle's setting.

        Returns:
            What was removed.

        Raises:
            ConfigurationError: If a lifetime is negative.
            QueueIOError: If a directory or file could not be inspected or
                removed.

        """
        temp_life = (
            self.max_temp_life
            if max_temp_life is None
            else _check_life("max_temp_life", max_temp_life)
        )
        lock_life = (
            self.max_lock_life
            if max_lock_life is None
            else _check_life("max_lock_life", max_lock_life)
        )
        now = time.time()
        stats = PurgeStats()
        for bucket in self._list_buckets():
            bucket_dir = self.root / bucket
            if self._remove_if_empty(bucket_dir):
                stats.buckets += 1
                continue
            for name in self._list_files(bucket, naming.is_temp_name):
                if self._remove_if_older(bucket_dir / name, now - temp_life):
                    stats.temps += 1
            for name in self._list_files(bucket, naming.is_lock_name):
                if self._remove_if_older(bucket_dir / name, now - lock_life):
                    stats.locks += 1
        logger.debug(
            "Purged %s: %d buckets, %d temporary files, %d locks",
            self.root,
            stats.buckets,
            stats.temps,
            stats.locks,
        )
        return stats

    @staticmethod
    def _remove_if_empty(bucket_dir: Path) -> bool:
        """Remove a bucket if it is empty.

        Returns:
            True if the bucket was removed by this call.

        """
        try:
            os.rmdir(bucket_dir)
        except OSError as e:
            if e.errno in _NOT_EMPTY or e.errno == errno.ENOENT:
                return False
            raise QueueIOError("rmdir", e) from e
        logger.debug("Removed empty bucket %s", bucket_dir.name)
        return True

    @staticmethod
    def _remove_if_older(path: Path, deadline: float) -> bool:
        """Delete a file last modified before ``deadline``.

        Returns:
            True if the file was deleted by this call.

        """
        try:
            mtime = os.stat(path, follow_symlinks=False).st_mtime
        except FileNotFoundError:
            return False
        except OSError as e:
            raise QueueIOError("stat", e) from e
        if mtime >= deadline:
            return False
        try:
            os.unlink(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise QueueIOError("unlink", e) from e
        logger.debug("Removed stale %s/%s", path.parent.name, path.name)
        return True
