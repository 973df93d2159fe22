"""Operating system and architecture vocabulary."""

from __future__ import annotations

import platform
import subprocess
from enum import Enum
from functools import lru_cache
from typing import List, Type, TypeVar

from .errors import UnsupportedPlatform

E = TypeVar("E", bound="UiNamedEnum")


class UiNamedEnum(Enum):
    """Enum whose external name is the member name lower-cased with dashes."""

    @property
    def ui_name(self) -> str:
        return self.name.lower().replace("_", "-")

    def __str__(self) -> str:
        return self.ui_name

    @classmethod
    def ui_names(cls) -> List[str]:
        return [member.ui_name for member in cls]

    @classmethod
    def from_ui_name(cls: Type[E], value: str) -> E:
        normalized = (value or "").strip().lower()
        for member in cls:
            if member.ui_name == normalized:
                return member
        raise ValueError(
            f"Cannot convert {value} into a {cls.__name__}. Options are: {cls.ui_names()}."
        )


class Os(UiNamedEnum):
    MACOS = "macos"
    LINUX_GLIBC = "linux-glibc"
    LINUX_MUSL = "linux-musl"
    WINDOWS = "windows"

    @property
    def is_linux(self) -> bool:
        return self in (Os.LINUX_GLIBC, Os.LINUX_MUSL)


class Arch(UiNamedEnum):
    X86 = "x86"
    X86_64 = "x86-64"
    AARCH64 = "aarch64"


def normalize_arch(machine: str) -> Arch:
    value = (machine or "").lower()
    if value in {"x86_64", "x64", "amd64"}:
        return Arch.X86_64
    if value in {"arm", "arm64", "aarch64"}:
        return Arch.AARCH64
    if value in {"x86", "i386", "i686"}:
        return Arch.X86
    raise UnsupportedPlatform(platform.system(), f"cannot get architecture for {machine}")


def libc_from_ldd_output(output: str) -> Os:
    lowered = (output or "").lower()
    if "glibc" in lowered or "gnu libc" in lowered:
        return Os.LINUX_GLIBC
    if "musl" in lowered:
        return Os.LINUX_MUSL
    raise UnsupportedPlatform(
        "linux", f"cannot work out libc used by this OS. ldd output was: {lowered.strip()}"
    )


def _ldd_version_output() -> str:
    # musl's ldd exits 1 and prints to stderr on --version, so both streams are kept
    try:
        proc = subprocess.run(
            ["ldd", "--version"],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=5,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise UnsupportedPlatform("linux", f"failed to run ldd: {exc}") from exc
    output = f"{proc.stdout or ''}\n{proc.stderr or ''}"
    if proc.returncode not in (0, 1):
        raise UnsupportedPlatform(
            "linux", f"ldd exited with code {proc.returncode}. Output: {output.strip()}"
        )
    return output


def normalize_os(system: str) -> Os:
    system_lower = (system or "").lower()
    if system_lower.startswith("darwin") or system_lower.startswith("mac"):
        return Os.MACOS
    if system_lower.startswith("windows"):
        return Os.WINDOWS
    if system_lower.startswith("linux"):
        return libc_from_ldd_output(_ldd_version_output())
    raise UnsupportedPlatform(system)


@lru_cache()
def current_os() -> Os:
    return normalize_os(platform.system())


@lru_cache()
def current_arch() -> Arch:
    return normalize_arch(platform.machine())


def java_binary_name(os_name: Os) -> str:
    return "java.exe" if os_name is Os.WINDOWS else "java"


def keytool_binary_name(os_name: Os) -> str:
    return "keytool.exe" if os_name is Os.WINDOWS else "keytool"
