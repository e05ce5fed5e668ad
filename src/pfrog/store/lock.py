"""Per-part exclusive locks over the shared store directory."""

from __future__ import annotations

import fcntl
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from pfrog.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


@contextmanager
def part_lock(lock_path: Path) -> Iterator[None]:
    """Hold an exclusive ``flock`` on ``lock_path`` for the duration of the context.

    The call blocks until the lock is granted; there is no timeout. The kernel
    drops the lock if the holding process dies, and the ``finally`` clause
    drops it on every exit path of the caller's critical section.
    """
    try:
        handle = lock_path.open("a+b")
    except OSError as exc:
        raise StoreUnavailableError(f"cannot open lock file {lock_path}: {exc}") from exc
    with handle:
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            logger.debug("Waiting for lock %s", lock_path)
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            except OSError as exc:
                raise StoreUnavailableError(f"cannot lock {lock_path}: {exc}") from exc
        except OSError as exc:
            raise StoreUnavailableError(f"cannot lock {lock_path}: {exc}") from exc
        logger.debug("Acquired lock %s", lock_path)
        try:
            yield
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
            logger.debug("Released lock %s", lock_path)


class KeyedLocks:
    """In-process counterpart of ``part_lock`` keyed by (board, part)."""

    def __init__(self) -> None:
        self._locks: dict[tuple[str, str], threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, key: tuple[str, str]) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, board: str, part: str) -> Iterator[None]:
        lock = self._lock_for((board, part))
        with lock:
            yield
