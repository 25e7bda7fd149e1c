"""Named cross-process publish lock.

A lease is a :class:`filelock.FileLock` on ``<lock_dir>/<name>.lock``. The
wait is bounded; the lock is released on every exit path of the protected
region.
"""

from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator

from filelock import FileLock, Timeout

from merge_warden.core.errors import LockTimeout

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 15 * 60.0

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]+")

__all__ = [
    "DEFAULT_LOCK_TIMEOUT",
    "lock_path_for",
    "named_lock",
    "with_exclusive_lock",
]


def lock_path_for(name: str, lock_dir: Path) -> Path:
    """Map a lock name to a file path inside ``lock_dir``."""
    safe = _UNSAFE_CHARS_RE.sub("_", name).strip("._") or "default"
    return Path(lock_dir) / f"{safe}.lock"


def _acquire(name: str, lock_dir: Path, timeout: float) -> FileLock:
    if timeout < 0:
        # filelock waits forever on a negative timeout.
        logger.warning("Negative lock timeout %g treated as 0", timeout)
        timeout = 0.0
    path = lock_path_for(name, lock_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(str(path), timeout=timeout)

    logger.info("Waiting up to %gs for publish lock '%s'", timeout, name)
    try:
        lock.acquire()
    except Timeout as exc:
        raise LockTimeout(name, timeout) from exc
    logger.info("Acquired publish lock '%s'", name)
    return lock


def _release(lock: FileLock, name: str) -> None:
    lock.release()
    logger.info("Released publish lock '%s'", name)


@contextmanager
def named_lock(name: str, lock_dir: Path, timeout: float = DEFAULT_LOCK_TIMEOUT) -> Iterator[None]:
    """Hold the named lock for the duration of the ``with`` block.

    Raises:
        LockTimeout: If the lock is not acquired within ``timeout`` seconds.
    """
    lock = _acquire(name, lock_dir, timeout)
    try:
        yield
    finally:
        _release(lock, name)


def with_exclusive_lock(
    name: str,
    lock_dir: Path,
    timeout: float,
    body: Callable[[], None],
) -> bool:
    """Run ``body`` once while holding the named lock.

    Returns False without running ``body`` when the lock cannot be acquired
    within ``timeout``. Exceptions raised by ``body`` propagate after the lock
    has been released.
    """
    try:
        lock = _acquire(name, lock_dir, timeout)
    except LockTimeout as exc:
        logger.warning("%s", exc)
        return False

    try:
        body()
    finally:
        _release(lock, name)
    return True
