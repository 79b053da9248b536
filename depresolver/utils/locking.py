"""Cross-process locking of repository and cache directories.

Resolvers running in different processes may write into the same cache. Every
writer holds an exclusive lock on ``<directory>/.depresolver.lock`` while it
works. On POSIX platforms this uses ``fcntl.flock``; elsewhere it falls back
to an ``O_CREAT | O_EXCL`` lock file.
"""

import logging
import os
import time
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, TypeVar

from depresolver.config.schema import get_resolver_config

logger = logging.getLogger("depresolver.utils.locking")

LOCK_FILE_NAME = ".depresolver.lock"

T = TypeVar("T")

try:
    import fcntl

    _HAS_FCNTL = True
except ImportError:
    fcntl = None
    _HAS_FCNTL = False


@contextmanager
def directory_lock(
    directory: Path,
    on_wait: Optional[Callable[[], None]] = None,
    timeout: Optional[float] = None,
    poll_interval: float = 0.1,
) -> Iterator[Path]:
    """Hold an exclusive lock on ``directory`` for the duration of the block.

    The directory is created when it does not exist. ``on_wait`` is called
    once, only when another process already holds the lock.

    Args:
        directory: Directory to lock.
        on_wait: Callback invoked before blocking.
        timeout: Maximum wait for the lock-file fallback (seconds), the
            configured ``lock_timeout`` when None.
        poll_interval: Sleep interval between lock-file retries.

    Yields:
        The locked directory.

    Raises:
        TimeoutError: If the fallback lock cannot be acquired within timeout.
    """
    directory.mkdir(parents=True, exist_ok=True)
    lock_path = directory / LOCK_FILE_NAME

    if _HAS_FCNTL:
        fd = os.open(str(lock_path), os.O_CREAT | os.O_RDWR)
        try:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                if on_wait is not None:
                    on_wait()
                fcntl.flock(fd, fcntl.LOCK_EX)
            logger.debug("Locked %s", directory)
            try:
                yield directory
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
                logger.debug("Unlocked %s", directory)
        finally:
            os.close(fd)
        return

    if timeout is None:
        timeout = get_resolver_config().lock_timeout
    start = time.time()
    waited = False
    while True:
        try:
            fd = os.open(str(lock_path), os.O_CREAT | os.O_EXCL | os.O_RDWR)
            break
        except FileExistsError as lock_err:
            if not waited:
                waited = True
                if on_wait is not None:
                    on_wait()
            if time.time() - start > timeout:
                logger.error("Timeout acquiring directory lock: %s", lock_path)
                raise TimeoutError(f"Timeout acquiring directory lock: {lock_path}") from lock_err
            time.sleep(poll_interval)

    try:
        yield directory
    finally:
        os.close(fd)
        try:
            os.unlink(lock_path)
        except FileNotFoundError:
            pass


def with_directory_lock(
    directory: Path,
    on_wait: Optional[Callable[[], None]],
    action: Callable[[], T],
) -> T:
    """Run ``action`` while holding the lock on ``directory``."""
    with directory_lock(directory, on_wait):
        return action()


def lock_order(directories: Iterable[Path]) -> List[Path]:
    """Canonical, deduplicated and sorted form of ``directories``."""
    return sorted({Path(d).expanduser().absolute().resolve() for d in directories})


@contextmanager
def directories_lock(
    directories: Iterable[Path],
    on_wait: Optional[Callable[[Path], None]] = None,
) -> Iterator[List[Path]]:
    """Lock several directories at once.

    Locks are always taken in sorted order so that two processes locking
    overlapping sets cannot deadlock.

    Args:
        directories: Directories to lock, duplicates allowed.
        on_wait: Called with the directory about to be waited for.

    Yields:
        The locked directories in locking order.
    """
    ordered = lock_order(directories)
    with ExitStack() as stack:
        for directory in ordered:
            callback = None
            if on_wait is not None:
                callback = (lambda d=directory: on_wait(d))
            stack.enter_context(directory_lock(directory, callback))
        yield ordered


__all__ = [
    "LOCK_FILE_NAME",
    "directory_lock",
    "with_directory_lock",
    "lock_order",
    "directories_lock",
]
