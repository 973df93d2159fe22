"""Value types naming a JDK installation and its content hash."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, Mapping, Tuple, Union

from .errors import JdkstrapError
from .platforms import Arch, Os, UiNamedEnum


class JdkDistributionName(UiNamedEnum):
    AZUL_ZULU = "azul-zulu"
    AMAZON_CORRETTO = "amazon-corretto"
    GRAALVM_CE = "graalvm-ce"
    JAVA_EA = "java-ea"


@dataclass(frozen=True)
class JdkRelease:
    version: str
    os: Os
    arch: Arch


@dataclass(frozen=True)
class CaCerts:
    """Alias -> certificate file, always held in lexicographic alias order."""

    entries: Tuple[Tuple[str, Path], ...] = ()

    @classmethod
    def from_mapping(cls, certs: Mapping[str, Union[str, Path]]) -> "CaCerts":
        return cls(tuple(sorted((str(alias), Path(path)) for alias, path in certs.items())))

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.entries))
        if ordered != self.entries:
            object.__setattr__(self, "entries", ordered)

    def __iter__(self) -> Iterator[Tuple[str, Path]]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def as_dict(self) -> Dict[str, Path]:
        return dict(self.entries)

    def combined_in_sorted_order(self) -> str:
        parts = []
        for alias, cert_file in self.entries:
            try:
                content = cert_file.read_text(encoding="utf-8")
            except OSError as exc:
                raise JdkstrapError(f"Failed to read file {cert_file}: {exc}") from exc
            parts.append(f"{alias}: {content}\n")
        return "".join(parts)


@dataclass(frozen=True)
class JdkSpec:
    distribution: JdkDistributionName
    release: JdkRelease
    ca_certs: CaCerts = field(default_factory=CaCerts)

    def info_block(self) -> str:
        return "\n".join(
            [
                f"Distribution: {self.distribution.ui_name}",
                f"Version: {self.release.version}",
                f"Os: {self.release.os.ui_name}",
                f"Arch: {self.release.arch.ui_name}",
                f"CaCerts: {self.ca_certs.combined_in_sorted_order()}",
            ]
        )

    def consistent_short_hash(self) -> str:
        digest = hashlib.sha256(self.info_block().encode("utf-8")).digest()
        # first 8 bytes as an unsigned, unpadded hex number
        return format(int.from_bytes(digest[:8], "big"), "x")

    def install_dir_name(self) -> str:
        return (
            f"{self.distribution.ui_name}-{self.release.version}-{self.consistent_short_hash()}"
        )
