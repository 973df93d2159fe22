"""External process execution with concurrent stdout/stderr draining."""

from __future__ import annotations

import os
import subprocess
import threading
from pathlib import Path
from typing import IO, List, Mapping, Optional, Sequence, Union

from .console import log_debug
from .errors import CommandFailure, LaunchFailure
from .utils import format_cli_command, redact_cli_args


class _StreamReader(threading.Thread):
    def __init__(self, stream: IO[bytes], name: str) -> None:
        super().__init__(name=name, daemon=True)
        self._stream = stream
        self._chunks: List[bytes] = []

    def run(self) -> None:
        try:
            for chunk in iter(lambda: self._stream.read(64 * 1024), b""):
                self._chunks.append(chunk)
        finally:
            self._stream.close()

    def text(self) -> str:
        return b"".join(self._chunks).decode("utf-8", "replace")


def run_command(
    args: Sequence[Union[str, os.PathLike]],
    *,
    cwd: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> str:
    """Run ``args`` to completion and return its stdout.

    Both output streams are drained by their own reader thread so a child
    that fills the stderr pipe while we block on stdout cannot deadlock.
    Raises :class:`LaunchFailure` if the process cannot start and
    :class:`CommandFailure` if it exits non-zero.
    """
    argv = [str(part) for part in args]
    log_debug(f"exec {format_cli_command(redact_cli_args(argv))}")
    try:
        proc = subprocess.Popen(
            argv,
            cwd=str(cwd) if cwd is not None else None,
            env=dict(env) if env is not None else None,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except OSError as exc:
        raise LaunchFailure(redact_cli_args(argv), exc) from exc

    assert proc.stdout is not None and proc.stderr is not None
    out_reader = _StreamReader(proc.stdout, "stdout-reader")
    err_reader = _StreamReader(proc.stderr, "stderr-reader")
    out_reader.start()
    err_reader.start()
    try:
        out_reader.join()
        err_reader.join()
        exit_code = proc.wait()
    except KeyboardInterrupt:
        proc.terminate()
        proc.wait()
        raise

    stdout = out_reader.text()
    stderr = err_reader.text()
    if exit_code != 0:
        raise CommandFailure(redact_cli_args(argv), exit_code, stdout, stderr)
    return stdout
