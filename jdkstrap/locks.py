"""Cross-process exclusive locking of a filesystem path.

A lock on ``path`` is an OS advisory lock on the sibling file
``<path>.lock``. Threads of the same process are first serialized
through a small pool of striped in-process mutexes keyed by the
canonical path string, so the OS lock is only contended between
processes.
"""

from __future__ import annotations

import os
import sys
import threading
import time
from contextlib import ExitStack
from pathlib import Path
from typing import IO, Any, List, Optional

from .constants import LOCK_SUFFIX

if sys.platform == "win32":  # pragma: no cover
    import msvcrt
else:
    import fcntl

_STRIPES = 16
_PROCESS_LOCKS: List[threading.Lock] = [threading.Lock() for _ in range(_STRIPES)]


def canonical_path(path: Path) -> str:
    return os.path.normcase(str(Path(path).expanduser().resolve(strict=False)))


def _mutex_for(path: Path) -> threading.Lock:
    return _PROCESS_LOCKS[hash(canonical_path(path)) % _STRIPES]


def lock_file_path(path: Path) -> Path:
    path = Path(path)
    return path.parent / f"{path.name}{LOCK_SUFFIX}"


def _lock_file(handle: IO[Any]) -> None:
    if sys.platform == "win32":  # pragma: no cover
        handle.seek(0)
        while True:
            try:
                msvcrt.locking(handle.fileno(), msvcrt.LK_LOCK, 1)
                return
            except OSError:
                # LK_LOCK gives up after ~10s; keep blocking like flock does
                time.sleep(0.1)
    fcntl.flock(handle.fileno(), fcntl.LOCK_EX)


def _unlock_file(handle: IO[Any]) -> None:
    if sys.platform == "win32":  # pragma: no cover
        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
        return
    fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


class PathLock:
    """Exclusive lock on ``path``, usable as a context manager.

    Acquisition takes, in order, the in-process mutex, the parent
    directories, the lock file handle and the OS lock; :meth:`release`
    undoes them in reverse. If any step fails the earlier ones are undone
    before the error propagates.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.lock_path = lock_file_path(self.path)
        self._stack: Optional[ExitStack] = None

    @property
    def held(self) -> bool:
        return self._stack is not None

    def acquire(self) -> "PathLock":
        if self._stack is not None:
            raise RuntimeError(f"lock on {self.path} is already held by this object")
        stack = ExitStack()
        try:
            mutex = _mutex_for(self.path)
            mutex.acquire()
            stack.callback(mutex.release)
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            handle = open(self.lock_path, "a+b")
            stack.callback(handle.close)
            _lock_file(handle)
            stack.callback(_unlock_file, handle)
        except BaseException:
            stack.close()
            raise
        self._stack = stack
        return self

    def release(self) -> None:
        stack, self._stack = self._stack, None
        if stack is not None:
            stack.close()

    def __enter__(self) -> "PathLock":
        return self.acquire()

    def __exit__(self, *exc: Any) -> None:
        self.release()


def acquire(path: Path) -> PathLock:
    return PathLock(path).acquire()
