"""Per-vendor mapping from a JDK release to a download path."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional, Protocol, Tuple

from .errors import InvalidVersion, JdkstrapError, UnsupportedCombination
from .platforms import Arch, Os
from .spec import JdkDistributionName, JdkRelease


class Extension(Enum):
    ZIP = "zip"
    TAR_GZ = "tar.gz"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class JdkPath:
    filename: str
    extension: Extension

    @property
    def relative_url(self) -> str:
        return f"{self.filename}.{self.extension.value}"


class JdkDistribution(Protocol):
    name: JdkDistributionName

    def default_base_url(self) -> str:
        ...

    def path(self, release: JdkRelease) -> JdkPath:
        ...


def _archive_extension(os_name: Os) -> Extension:
    return Extension.ZIP if os_name is Os.WINDOWS else Extension.TAR_GZ


def _lookup(
    table: Mapping, key, distribution: JdkDistributionName, release: JdkRelease
) -> str:
    try:
        return table[key]
    except KeyError:
        raise UnsupportedCombination(
            distribution.ui_name, release.os.ui_name, release.arch.ui_name
        ) from None


# --- Azul Zulu ---------------------------------------------------------------

# https://docs.azul.com/core/zulu-openjdk/versioning-and-naming
ZULU_BUNDLE_FLAGS = frozenset({"ea", "embvm", "cp1", "cp2", "cp3", "c2", "criu", "cr", "crac"})


@dataclass(frozen=True)
class ZuluVersionSplit:
    zulu_version: str
    java_version: str


def combine_zulu_versions(zulu_version: str, java_version: str) -> str:
    return f"{zulu_version}-{java_version}"


def split_zulu_version(combined_version: str) -> ZuluVersionSplit:
    """Split ``<zulu>[-<flag>...]-<java>`` into its two versions."""
    parts = combined_version.split("-")
    if len(parts) < 2:
        raise InvalidVersion(
            JdkDistributionName.AZUL_ZULU.ui_name,
            combined_version,
            "<zuluVersion>-<javaVersion> (e.g. 11.56.19-11.0.15)",
        )
    end_of_flags = 1
    while end_of_flags < len(parts) and parts[end_of_flags] in ZULU_BUNDLE_FLAGS:
        end_of_flags += 1
    if end_of_flags == len(parts):
        raise InvalidVersion(
            JdkDistributionName.AZUL_ZULU.ui_name,
            combined_version,
            "a java version after the zulu version and bundle flags",
        )
    return ZuluVersionSplit(
        zulu_version="-".join(parts[:end_of_flags]),
        java_version="-".join(parts[end_of_flags:]),
    )


class AzulZuluDistribution:
    name = JdkDistributionName.AZUL_ZULU

    _OS = {
        Os.MACOS: "macosx",
        Os.LINUX_GLIBC: "linux",
        Os.LINUX_MUSL: "linux_musl",
        Os.WINDOWS: "win",
    }
    _ARCH = {Arch.X86: "i686", Arch.X86_64: "x64", Arch.AARCH64: "aarch64"}

    def default_base_url(self) -> str:
        return "https://cdn.azul.com/zulu/bin"

    def path(self, release: JdkRelease) -> JdkPath:
        split = split_zulu_version(release.version)
        os_part = _lookup(self._OS, release.os, self.name, release)
        arch_part = _lookup(self._ARCH, release.arch, self.name, release)
        return JdkPath(
            filename=f"zulu{split.zulu_version}-ca-jdk{split.java_version}-{os_part}_{arch_part}",
            extension=_archive_extension(release.os),
        )


# --- Amazon Corretto ----------------------------------------------------------


class AmazonCorrettoDistribution:
    name = JdkDistributionName.AMAZON_CORRETTO

    _OS = {
        Os.MACOS: "macosx",
        Os.LINUX_GLIBC: "linux",
        Os.LINUX_MUSL: "alpine-linux",
        Os.WINDOWS: "windows",
    }
    _ARCH = {Arch.X86: "i386", Arch.X86_64: "x64", Arch.AARCH64: "aarch64"}

    def default_base_url(self) -> str:
        return "https://corretto.aws"

    def path(self, release: JdkRelease) -> JdkPath:
        os_part = _lookup(self._OS, release.os, self.name, release)
        arch_part = _lookup(self._ARCH, release.arch, self.name, release)
        version = release.version
        return JdkPath(
            filename=(
                f"downloads/resources/{version}/amazon-corretto-{version}-{os_part}-{arch_part}"
            ),
            extension=_archive_extension(release.os),
        )


# --- GraalVM CE -----------------------------------------------------------------


@dataclass(frozen=True)
class GraalVersionSplit:
    java_version: str
    graal_version: str


def split_graal_version(combined_version: str) -> GraalVersionSplit:
    java_version, sep, graal_version = combined_version.partition(".")
    if not sep:
        raise InvalidVersion(
            JdkDistributionName.GRAALVM_CE.ui_name,
            combined_version,
            "`javaVersion.graalVersion` (e.g. 17.21.2.0 -> java 17, graal 21.2.0)",
        )
    return GraalVersionSplit(java_version=java_version, graal_version=graal_version)


class GraalVmCeDistribution:
    name = JdkDistributionName.GRAALVM_CE

    _OS = {Os.MACOS: "darwin", Os.LINUX_GLIBC: "linux", Os.WINDOWS: "windows"}
    _ARCH = {Arch.X86_64: "amd64", Arch.AARCH64: "aarch64"}

    def default_base_url(self) -> str:
        return "https://github.com/graalvm/graalvm-ce-builds/releases/download"

    def path(self, release: JdkRelease) -> JdkPath:
        split = split_graal_version(release.version)
        os_part = _lookup(self._OS, release.os, self.name, release)
        arch_part = _lookup(self._ARCH, release.arch, self.name, release)
        graal = split.graal_version
        return JdkPath(
            filename=f"vm-{graal}/graalvm-ce-java{split.java_version}-{os_part}-{arch_part}-{graal}",
            extension=_archive_extension(release.os),
        )


# --- OpenJDK early access ---------------------------------------------------------

_EA_FORMAT = (
    "`javaMajorVersion+earlyAccessMajorVersion[-earlyAccessMinorVersion]` "
    "(e.g. 24-loom+7-60)"
)


@dataclass(frozen=True)
class EarlyAccessVersion:
    project_name: str
    java_major_version: str
    early_access_major_version: str
    early_access_minor_version: Optional[str] = None

    @property
    def full_jdk_version(self) -> str:
        suffix = f"-{self.early_access_minor_version}" if self.early_access_minor_version else ""
        return f"{self.java_major_version}+{self.early_access_major_version}{suffix}"


def parse_early_access_version(full_version: str) -> EarlyAccessVersion:
    """Parse versions such as ``24-ea+17`` or ``24-loom+7-60``.

    The project name is the suffix of the major version, except that plain
    ``ea`` builds are published under ``jdk<major>``.
    """
    distribution = JdkDistributionName.JAVA_EA.ui_name
    parts = full_version.split("+")
    if len(parts) != 2:
        raise InvalidVersion(distribution, full_version, _EA_FORMAT)

    java_major_version, build = parts
    major_parts = java_major_version.split("-")
    if len(major_parts) != 2 or not all(major_parts):
        raise InvalidVersion(
            distribution, full_version, "javaMajorVersion of the form `jvmVersion-projectName`"
        )
    jvm_version, project_name = major_parts
    if project_name == "ea":
        project_name = f"jdk{jvm_version}"

    build_parts = build.split("-")
    if not build_parts[0] or len(build_parts) > 2:
        raise InvalidVersion(distribution, full_version, _EA_FORMAT)

    return EarlyAccessVersion(
        project_name=project_name,
        java_major_version=java_major_version,
        early_access_major_version=build_parts[0],
        early_access_minor_version=build_parts[1] if len(build_parts) > 1 else None,
    )


class JavaEarlyAccessDistribution:
    name = JdkDistributionName.JAVA_EA

    _OS = {Os.MACOS: "macos", Os.LINUX_GLIBC: "linux", Os.WINDOWS: "windows"}
    _ARCH = {Arch.X86_64: "x64", Arch.AARCH64: "aarch64"}

    def default_base_url(self) -> str:
        return "https://download.java.net/java/early_access"

    def path(self, release: JdkRelease) -> JdkPath:
        ea_version = parse_early_access_version(release.version)
        os_part = _lookup(self._OS, release.os, self.name, release)
        arch_part = _lookup(self._ARCH, release.arch, self.name, release)
        if release.os is Os.WINDOWS and release.arch is Arch.AARCH64:
            raise UnsupportedCombination(self.name.ui_name, release.os.ui_name, release.arch.ui_name)

        prefix = f"{ea_version.project_name}/{ea_version.early_access_major_version}"
        if ea_version.java_major_version.endswith("-ea"):
            # plain EA builds live under an extra GPL directory
            prefix = f"{prefix}/GPL"
        return JdkPath(
            filename=f"{prefix}/openjdk-{ea_version.full_jdk_version}_{os_part}-{arch_part}_bin",
            extension=_archive_extension(release.os),
        )


# --- registry -----------------------------------------------------------------------


def default_strategies() -> Tuple[JdkDistribution, ...]:
    return (
        AzulZuluDistribution(),
        AmazonCorrettoDistribution(),
        GraalVmCeDistribution(),
        JavaEarlyAccessDistribution(),
    )


class JdkDistributions:
    """Registry of distribution strategies and their effective base URLs."""

    def __init__(
        self,
        strategies: Optional[Tuple[JdkDistribution, ...]] = None,
        base_url_overrides: Optional[Mapping[JdkDistributionName, str]] = None,
    ) -> None:
        self._strategies: Dict[JdkDistributionName, JdkDistribution] = {
            strategy.name: strategy for strategy in (strategies or default_strategies())
        }
        self._base_urls: Dict[JdkDistributionName, str] = dict(base_url_overrides or {})

    def names(self) -> List[JdkDistributionName]:
        return list(self._strategies)

    def get(self, name: JdkDistributionName) -> JdkDistribution:
        try:
            return self._strategies[name]
        except KeyError:
            available = ", ".join(n.ui_name for n in self._strategies)
            raise JdkstrapError(
                f"Could not find JDK distribution {name}. Available: [{available}]"
            ) from None

    def base_url(self, name: JdkDistributionName) -> str:
        override = self._base_urls.get(name)
        if override:
            return override.rstrip("/")
        return self.get(name).default_base_url().rstrip("/")

    def download_url(self, name: JdkDistributionName, release: JdkRelease) -> Tuple[str, JdkPath]:
        jdk_path = self.get(name).path(release)
        return f"{self.base_url(name)}/{jdk_path.relative_url}", jdk_path
