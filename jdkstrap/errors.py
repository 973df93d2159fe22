"""Exception types raised by jdkstrap."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Sequence


class JdkstrapError(Exception):
    """Raised for user-facing failures; the message is shown as-is."""


class ConfigError(JdkstrapError):
    pass


class LaunchFailure(JdkstrapError):
    """The external process could not be started at all."""

    def __init__(self, args: Sequence[str], cause: OSError) -> None:
        self.args_list = list(args)
        self.cause = cause
        super().__init__(f"Failed to run command '{' '.join(self.args_list)}': {cause}")


class CommandFailure(JdkstrapError):
    """The external process ran and exited non-zero."""

    def __init__(self, args: Sequence[str], exit_code: int, stdout: str, stderr: str) -> None:
        self.args_list = list(args)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            f"Failed to run command '{' '.join(self.args_list)}'. "
            f"Failed with exit code {exit_code}. Error output:\n\n{stderr}\n\n"
            f"Standard Output:\n\n{stdout}"
        )


class UnsupportedPlatform(JdkstrapError):
    def __init__(self, os_name: str, detail: str = "") -> None:
        self.os_name = os_name
        message = f"operating system '{os_name}' is not supported"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class UnsupportedCombination(JdkstrapError):
    def __init__(self, distribution: str, os_name: str, arch: Optional[str] = None) -> None:
        self.distribution = distribution
        self.os_name = os_name
        self.arch = arch
        target = os_name if arch is None else f"{os_name}/{arch}"
        super().__init__(f"{distribution} does not publish JDKs for {target}")


class InvalidVersion(JdkstrapError, ValueError):
    def __init__(self, distribution: str, version: str, expected: str) -> None:
        self.distribution = distribution
        self.version = version
        super().__init__(f"invalid {distribution} version '{version}': expected {expected}")


class NoTruststoreFound(JdkstrapError):
    def __init__(self, candidates: Iterable[Path]) -> None:
        self.candidates = [Path(c) for c in candidates]
        joined = ", ".join(str(c) for c in self.candidates)
        super().__init__(
            f"Could not find system truststore at any of [{joined}] in order to load CA certs"
        )


class JavaHomeNotFound(JdkstrapError):
    def __init__(self, root: Path) -> None:
        self.root = root
        super().__init__(f"Failed to find java home in {root}")


class DownloadError(JdkstrapError):
    pass


class ArchiveError(JdkstrapError):
    pass
