"""Exactly-once materialization of JDK trees under a shared storage root."""

from __future__ import annotations

import os
import shutil
import uuid
from pathlib import Path
from typing import Callable, List, Optional

from .archives import extract_archive
from .certs import CaResources, Certificate
from .console import log, log_debug
from .constants import IN_PROGRESS_MARKER
from .distributions import JdkDistributions
from .downloads import download_archive
from .errors import JavaHomeNotFound, JdkstrapError
from .locks import PathLock
from .platforms import Os, current_os, java_binary_name
from .spec import CaCerts, JdkSpec

Fetcher = Callable[[str, Path], Path]


def in_progress_path(final_path: Path) -> Path:
    suffix = uuid.uuid4().hex[:8]
    return final_path.parent / f"{final_path.name}{IN_PROGRESS_MARKER}{suffix}"


def find_java_home(root: Path, os_name: Optional[Os] = None) -> Path:
    """Return the directory two levels above the first real ``bin/java`` under ``root``.

    Symlinked ``java`` binaries are ignored: macOS bundles carry a shallow
    ``bin/java`` link into ``Contents/Home`` whose parent is not the JDK home.
    """
    binary = java_binary_name(os_name or current_os())
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        if binary not in filenames or os.path.basename(dirpath) != "bin":
            continue
        candidate = Path(dirpath) / binary
        if candidate.is_symlink() or not candidate.is_file():
            continue
        return candidate.parent.parent
    raise JavaHomeNotFound(root)


def publish_directory(source: Path, final_path: Path) -> bool:
    """Rename ``source`` onto ``final_path``; False if another writer got there first."""
    try:
        os.rename(source, final_path)
    except OSError as exc:
        if final_path.exists():
            return False
        raise JdkstrapError(f"Could not move {source} to {final_path}: {exc}") from exc
    return True


def certificates_from_files(ca_certs: CaCerts) -> List[Certificate]:
    certs = []
    for alias, cert_file in ca_certs:
        try:
            content = cert_file.read_text(encoding="utf-8")
        except OSError as exc:
            raise JdkstrapError(f"Failed to read certificate {alias} from {cert_file}: {exc}") from exc
        certs.append(Certificate(alias=alias, content=content))
    return certs


class JdkManager:
    """Installs JDKs named by a :class:`JdkSpec` into ``storage_root``.

    Each install is built in a private ``.in-progress-`` sibling and then
    published with a single rename, so concurrent installers of the same
    spec never observe a half-written tree and need no shared lock.
    """

    def __init__(
        self,
        storage_root: Path,
        distributions: JdkDistributions,
        ca_resources: CaResources,
        *,
        fetcher: Fetcher = download_archive,
    ) -> None:
        self.storage_root = Path(storage_root)
        self.distributions = distributions
        self.ca_resources = ca_resources
        self.fetcher = fetcher

    def jdk_path(self, spec: JdkSpec) -> Path:
        return self.storage_root / spec.install_dir_name()

    def downloads_dir(self, spec: JdkSpec) -> Path:
        return self.storage_root / "downloads" / spec.distribution.ui_name

    def jdk(self, spec: JdkSpec) -> Path:
        final_path = self.jdk_path(spec).absolute()
        label = f"{spec.distribution.ui_name} {spec.release.version} ({spec.consistent_short_hash()})"
        log_debug(f"requested JDK {label}")
        if final_path.exists():
            log_debug(f"JDK {label} has already been unpacked")
            return final_path

        log(f"Preparing to install JDK {label} into {final_path}")
        url, jdk_path = self.distributions.download_url(spec.distribution, spec.release)
        archive = self.fetcher(url, self.downloads_dir(spec))

        temp_path = in_progress_path(final_path)
        try:
            log_debug(f"unpacking {archive} into {temp_path}")
            extract_archive(archive, temp_path, jdk_path.extension)
            java_home = find_java_home(temp_path, spec.release.os)

            certs = certificates_from_files(spec.ca_certs)
            for cert in certs:
                log(f"Installing certificate {cert.alias} into JDK {label}")
            self.ca_resources.import_certificates(certs, java_home)

            log_debug(f"moving JDK home {java_home} to {final_path}")
            if not publish_directory(java_home, final_path):
                log(f"JDK {label} was installed concurrently, using {final_path}")
            return final_path
        except OSError as exc:
            raise JdkstrapError(f"Failed to install JDK {label} into {final_path}: {exc}") from exc
        finally:
            if temp_path.exists():
                shutil.rmtree(temp_path, ignore_errors=True)


def copy_jdk_locked(
    source: Path,
    destination: Path,
    *,
    prepare: Optional[Callable[[Path], object]] = None,
) -> bool:
    """Copy the JDK at ``source`` to ``destination`` unless it is already there.

    The copy happens under a :class:`PathLock` on ``destination`` and goes
    through an ``.in-progress-`` sibling that ``prepare`` may modify before
    it is renamed into place. Returns True only for the caller that copied.
    """
    source = Path(source)
    destination = Path(destination).absolute()
    with PathLock(destination):
        if destination.exists():
            log(f"JDK installation '{destination}' already exists")
            return False
        temp_path = in_progress_path(destination)
        try:
            log(f"Copying JDK from {source} into {destination}")
            shutil.copytree(source, temp_path, symlinks=True)
            if prepare is not None:
                prepare(temp_path)
            if not publish_directory(temp_path, destination):
                return False
        except (OSError, shutil.Error) as exc:
            raise JdkstrapError(f"Failed to copy JDK from {source} to {destination}: {exc}") from exc
        finally:
            if temp_path.exists():
                shutil.rmtree(temp_path, ignore_errors=True)
    return True
