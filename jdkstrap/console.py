"""Console helpers for jdkstrap."""

from __future__ import annotations

import sys
from contextlib import contextmanager
from typing import Iterator

_LOG_TO_STDERR = False
_LOG_SILENCED = False
_LOG_VERBOSE = False


def configure_console(*, quiet: bool = False, stderr: bool = False, verbose: bool = False) -> None:
    global _LOG_TO_STDERR, _LOG_SILENCED, _LOG_VERBOSE
    if stderr:
        _LOG_TO_STDERR = True
    if quiet:
        _LOG_SILENCED = True
    if verbose:
        _LOG_VERBOSE = True


def log(message: str) -> None:
    if _LOG_SILENCED:
        return
    stream = sys.stderr if _LOG_TO_STDERR else sys.stdout
    print(f"[jdkstrap] {message}", file=stream)


def log_error(message: str) -> None:
    print(f"[jdkstrap] {message}", file=sys.stderr)


def log_debug(message: str) -> None:
    if not _LOG_VERBOSE or _LOG_SILENCED:
        return
    print(f"[jdkstrap] {message}", file=sys.stderr)


def flush() -> None:
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.flush()
        except (OSError, ValueError):
            pass


@contextmanager
def logs_to_stderr() -> Iterator[None]:
    global _LOG_TO_STDERR
    previous = _LOG_TO_STDERR
    _LOG_TO_STDERR = True
    try:
        yield
    finally:
        _LOG_TO_STDERR = previous
