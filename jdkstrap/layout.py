"""Single-value configuration files read by the shell bootstrapper.

Every file holds exactly one value followed by a newline. Writers always
append the newline; readers always strip surrounding whitespace.

The writers back ``jdkstrap resolve --gradle-dir`` and ``jdkstrap certs
mark``, and are the library API for build tools that generate the same
tree. The readers are what ``setup`` and those build tools consume.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

from .constants import (
    CERTS_DIR,
    DOWNLOAD_URL_FILENAME,
    JDKS_DIR,
    LOCAL_PATH_FILENAME,
    SERIAL_NUMBER_SUFFIX,
)
from .errors import JdkstrapError
from .platforms import Arch, Os


@dataclass(frozen=True)
class JdkConfig:
    download_url: str
    local_path: str


def write_value_file(path: Path, value: str) -> None:
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(value.strip() + "\n", encoding="utf-8")
    except OSError as exc:
        raise JdkstrapError(f"Failed to write {path}: {exc}") from exc


def read_value_file(path: Path) -> str:
    path = Path(path)
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise JdkstrapError(f"Failed to read {path}: {exc}") from exc


def jdk_config_dir(gradle_dir: Path, java_version: str, os_name: Os, arch: Arch) -> Path:
    return Path(gradle_dir) / JDKS_DIR / java_version / os_name.ui_name / arch.ui_name


def write_jdk_config(
    gradle_dir: Path,
    java_version: str,
    os_name: Os,
    arch: Arch,
    config: JdkConfig,
) -> Path:
    directory = jdk_config_dir(gradle_dir, java_version, os_name, arch)
    write_value_file(directory / DOWNLOAD_URL_FILENAME, config.download_url)
    write_value_file(directory / LOCAL_PATH_FILENAME, config.local_path)
    return directory


def read_jdk_config(
    gradle_dir: Path, java_version: str, os_name: Os, arch: Arch
) -> Optional[JdkConfig]:
    directory = jdk_config_dir(gradle_dir, java_version, os_name, arch)
    url_file = directory / DOWNLOAD_URL_FILENAME
    local_file = directory / LOCAL_PATH_FILENAME
    if not url_file.exists() or not local_file.exists():
        return None
    return JdkConfig(
        download_url=read_value_file(url_file),
        local_path=read_value_file(local_file),
    )


def certs_dir(gradle_dir: Path) -> Path:
    return Path(gradle_dir) / CERTS_DIR


def write_cert_serials(directory: Path, serial_by_alias: Mapping[str, str]) -> None:
    for alias, serial in sorted(serial_by_alias.items()):
        write_value_file(Path(directory) / f"{alias}{SERIAL_NUMBER_SUFFIX}", str(serial))


def read_cert_serials(directory: Path) -> Dict[str, str]:
    """Map serial number -> alias from the marker files in ``directory``.

    The alias is the file name up to its first ``.``. A missing directory
    means no certificates were requested.
    """
    directory = Path(directory)
    if not directory.exists():
        return {}
    if not directory.is_dir():
        raise JdkstrapError(f"Certificates path {directory} is not a directory")
    alias_by_serial: Dict[str, str] = {}
    for entry in sorted(directory.iterdir()):
        if not entry.is_file():
            continue
        alias = entry.name.split(".", 1)[0]
        if not alias:
            continue
        alias_by_serial[read_value_file(entry)] = alias
    return alias_by_serial
