import os
import sys
import tarfile
import threading
from pathlib import Path
from typing import List

import pytest

from jdkstrap.certs import CaResources
from jdkstrap.distributions import JdkDistributions
from jdkstrap.errors import JavaHomeNotFound
from jdkstrap.manager import JdkManager, copy_jdk_locked, find_java_home
from jdkstrap.platforms import Arch, Os
from jdkstrap.spec import CaCerts, JdkDistributionName, JdkRelease, JdkSpec

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX keytool scripts")

ZULU_URL = "https://cdn.azul.com/zulu/bin/zulu17.44.53-ca-jdk17.0.8.1-linux_x64.tar.gz"


class CountingFetcher:
    def __init__(self, archive: Path, before_return=None) -> None:
        self.archive = archive
        self.before_return = before_return
        self.calls: List[tuple] = []
        self._lock = threading.Lock()

    def __call__(self, url: str, directory: Path) -> Path:
        with self._lock:
            self.calls.append((url, directory))
        if self.before_return is not None:
            self.before_return()
        return self.archive


def zulu_spec(ca_certs: CaCerts = CaCerts()) -> JdkSpec:
    return JdkSpec(
        distribution=JdkDistributionName.AZUL_ZULU,
        release=JdkRelease(version="17.44.53-17.0.8.1", os=Os.LINUX_GLIBC, arch=Arch.X86_64),
        ca_certs=ca_certs,
    )


def make_manager(storage: Path, fetcher) -> JdkManager:
    return JdkManager(
        storage,
        JdkDistributions(),
        CaResources(Os.LINUX_GLIBC),
        fetcher=fetcher,
    )


def leftovers(storage: Path) -> List[str]:
    return sorted(p.name for p in storage.iterdir() if ".in-progress-" in p.name)


def test_find_java_home_ignores_shallow_symlink(tmp_path: Path):
    real_home = tmp_path / "jdk-17.jdk" / "Contents" / "Home"
    (real_home / "bin").mkdir(parents=True)
    (real_home / "bin" / "java").write_text("#!/bin/sh\n")
    (tmp_path / "bin").mkdir()
    os.symlink(real_home / "bin" / "java", tmp_path / "bin" / "java")

    assert find_java_home(tmp_path, Os.MACOS) == real_home


def test_find_java_home_requires_bin_java(tmp_path: Path):
    (tmp_path / "jdk" / "lib").mkdir(parents=True)
    (tmp_path / "jdk" / "java").write_text("not in bin")
    with pytest.raises(JavaHomeNotFound, match="Failed to find java home"):
        find_java_home(tmp_path, Os.LINUX_GLIBC)


def test_jdk_installs_once_and_reuses_existing_path(tmp_path: Path, make_jdk_archive):
    storage = tmp_path / "storage"
    fetcher = CountingFetcher(make_jdk_archive())
    manager = make_manager(storage, fetcher)
    spec = zulu_spec()

    first = manager.jdk(spec)
    second = manager.jdk(spec)

    assert first == second == (storage / spec.install_dir_name()).absolute()
    assert (first / "bin" / "java").is_file()
    assert fetcher.calls == [(ZULU_URL, storage / "downloads" / "azul-zulu")]
    assert leftovers(storage) == []


def test_jdk_bakes_in_certificates_before_publishing(
    tmp_path: Path, make_jdk_archive, make_cert, imported_aliases
):
    cert_file = tmp_path / "corp.pem"
    cert_file.write_bytes(make_cert(77))
    storage = tmp_path / "storage"
    manager = make_manager(storage, CountingFetcher(make_jdk_archive()))

    path = manager.jdk(zulu_spec(CaCerts.from_mapping({"corp": cert_file})))

    assert imported_aliases(path) == ["corp"]
    assert "-import" in (path / "keytool.log").read_text()


def test_concurrent_installs_converge_on_one_tree(tmp_path: Path, make_jdk_archive):
    storage = tmp_path / "storage"
    barrier = threading.Barrier(6, timeout=10)
    fetcher = CountingFetcher(make_jdk_archive(), before_return=barrier.wait)
    manager = make_manager(storage, fetcher)
    spec = zulu_spec()
    results: List[Path] = []
    errors: List[BaseException] = []

    def install() -> None:
        try:
            results.append(manager.jdk(spec))
        except BaseException as exc:
            errors.append(exc)

    threads = [threading.Thread(target=install) for _ in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    assert len(results) == 6
    assert len(set(results)) == 1
    assert len(fetcher.calls) == 6
    assert leftovers(storage) == []
    installed = [p for p in storage.iterdir() if p.name.startswith("azul-zulu-")]
    assert installed == [results[0]]


def test_losing_the_rename_race_adopts_the_winner(tmp_path: Path, make_jdk_archive):
    storage = tmp_path / "storage"
    spec = zulu_spec()
    final_path = storage / spec.install_dir_name()

    def other_installer_finishes() -> None:
        (final_path / "bin").mkdir(parents=True)
        (final_path / "bin" / "java").write_text("winner")

    manager = make_manager(storage, CountingFetcher(make_jdk_archive(), other_installer_finishes))

    assert manager.jdk(spec) == final_path.absolute()
    assert (final_path / "bin" / "java").read_text() == "winner"
    assert leftovers(storage) == []


def test_failed_install_leaves_no_partial_state(tmp_path: Path, tar_entry):
    archive = tmp_path / "no-java.tar.gz"
    with tarfile.open(archive, "w:gz") as tf:
        tar_entry(tf, "jdk/README", data=b"nothing to run")
    storage = tmp_path / "storage"
    manager = make_manager(storage, CountingFetcher(archive))
    spec = zulu_spec()

    with pytest.raises(JavaHomeNotFound):
        manager.jdk(spec)

    assert not (storage / spec.install_dir_name()).exists()
    assert leftovers(storage) == []


def test_copy_jdk_locked_copies_once(tmp_path: Path, make_jdk_tree):
    source = make_jdk_tree(tmp_path / "source")
    os.symlink("java", source / "bin" / "java-link")
    destination = tmp_path / "jdks" / "installed"
    prepared: List[Path] = []

    assert copy_jdk_locked(source, destination, prepare=prepared.append) is True
    assert copy_jdk_locked(source, destination, prepare=prepared.append) is False

    assert len(prepared) == 1
    assert ".in-progress-" in prepared[0].name
    assert (destination / "bin" / "java").is_file()
    assert (destination / "bin" / "java-link").is_symlink()
    assert not [p for p in destination.parent.iterdir() if ".in-progress-" in p.name]
