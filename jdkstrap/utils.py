"""Shared utility helpers for jdkstrap."""

from __future__ import annotations

import shlex
import tempfile
from pathlib import Path
from typing import List, Sequence

from .errors import JdkstrapError

_SECRET_FLAGS = {"-storepass", "-keypass", "-srcstorepass", "-deststorepass"}


def format_cli_command(argv: Sequence[str]) -> str:
    return shlex.join(str(part) for part in argv)


def redact_cli_args(argv: Sequence[str]) -> List[str]:
    """Mask values that follow keytool password flags."""
    result: List[str] = []
    hide_next = False
    for part in argv:
        value = str(part)
        if hide_next:
            result.append("***")
            hide_next = False
            continue
        result.append(value)
        if value in _SECRET_FLAGS:
            hide_next = True
    return result


def write_text_to_tempfile(
    text: str,
    *,
    prefix: str = "",
    suffix: str = "",
    description: str = "temporary file",
) -> Path:
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            delete=False,
            prefix=prefix,
            suffix=suffix,
        ) as handle:
            handle.write(text)
            return Path(handle.name)
    except OSError as exc:
        raise JdkstrapError(f"failed to persist {description}: {exc}") from exc


def remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except OSError:
        pass
