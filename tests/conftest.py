from __future__ import annotations

import base64
import datetime
import io
import os
import stat
import tarfile
from pathlib import Path
from typing import Callable, Dict, Optional

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

import jdkstrap.console as console

FAKE_KEYTOOL = """#!/bin/sh
home="$(cd "$(dirname "$0")/.." && pwd)"
echo "$@" >> "$home/keytool.log"
mode=""
alias=""
prev=""
for arg in "$@"; do
  if [ "$prev" = "-alias" ]; then alias="$arg"; fi
  case "$arg" in
    -list) mode=list ;;
    -import) mode=import ;;
  esac
  prev="$arg"
done
if [ "$mode" = "list" ]; then
  if grep -qx "$alias" "$home/aliases.txt" 2>/dev/null; then
    echo "$alias, trustedCertEntry"
    exit 0
  fi
  echo "keytool error: java.lang.Exception: Alias <$alias> does not exist"
  exit 1
fi
if [ "$mode" = "import" ]; then
  echo "$alias" >> "$home/aliases.txt"
  echo "Certificate was added to keystore"
fi
"""

FAKE_JAVA = "#!/bin/sh\necho 'openjdk version \"17\"'\n"


@pytest.fixture(autouse=True)
def reset_console(monkeypatch):
    monkeypatch.setattr(console, "_LOG_TO_STDERR", False)
    monkeypatch.setattr(console, "_LOG_SILENCED", False)
    monkeypatch.setattr(console, "_LOG_VERBOSE", False)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    for name in list(os.environ):
        if name.startswith("JDKSTRAP_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("JDKSTRAP_CONFIG", str(tmp_path / "no-config.toml"))


def _write_executable(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def build_jdk_tree(root: Path) -> Path:
    """Lay out a minimal JDK: bin/java, a scripted bin/keytool and a cacerts file."""
    _write_executable(root / "bin" / "java", FAKE_JAVA)
    _write_executable(root / "bin" / "keytool", FAKE_KEYTOOL)
    cacerts = root / "lib" / "security" / "cacerts"
    cacerts.parent.mkdir(parents=True, exist_ok=True)
    cacerts.write_bytes(b"")
    return root


def read_imported_aliases(jdk_root: Path) -> list:
    aliases = jdk_root / "aliases.txt"
    if not aliases.exists():
        return []
    return aliases.read_text(encoding="utf-8").split()


@pytest.fixture
def imported_aliases() -> Callable[[Path], list]:
    return read_imported_aliases


@pytest.fixture
def make_jdk_tree() -> Callable[[Path], Path]:
    return build_jdk_tree


@pytest.fixture
def make_jdk_archive(tmp_path) -> Callable[..., Path]:
    def _make(name: str = "jdk.tar.gz", top_dir: str = "jdk-17.0.8") -> Path:
        tree = tmp_path / f"tree-{name}" / top_dir
        build_jdk_tree(tree)
        archive = tmp_path / name
        with tarfile.open(archive, "w:gz") as tf:
            tf.add(tree, arcname=top_dir)
        return archive

    return _make


def add_tar_entry(
    tf: tarfile.TarFile,
    name: str,
    *,
    data: bytes = b"",
    kind: bytes = tarfile.REGTYPE,
    linkname: str = "",
    mode: int = 0o644,
) -> None:
    info = tarfile.TarInfo(name)
    info.type = kind
    info.mode = mode
    info.linkname = linkname
    info.size = len(data) if kind == tarfile.REGTYPE else 0
    tf.addfile(info, io.BytesIO(data) if kind == tarfile.REGTYPE else None)


@pytest.fixture
def tar_entry() -> Callable[..., None]:
    return add_tar_entry


def _certificate(
    serial: int,
    common_name: str,
    *,
    with_key_ids: bool = False,
) -> x509.Certificate:
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(serial)
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=3650))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
    )
    if with_key_ids:
        builder = builder.add_extension(
            x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False
        ).add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(key.public_key()), critical=False
        )
    return builder.sign(key, hashes.SHA256())


@pytest.fixture
def make_cert() -> Callable[..., bytes]:
    """PEM bytes of a self-signed CA certificate with the given serial."""

    def _make(serial: int, common_name: Optional[str] = None) -> bytes:
        cert = _certificate(serial, common_name or f"Test CA {serial}")
        return cert.public_bytes(serialization.Encoding.PEM)

    return _make


@pytest.fixture
def make_duplicate_extension_cert() -> Callable[[int], bytes]:
    """PEM bytes of a certificate carrying two SubjectKeyIdentifier extensions."""

    def _make(serial: int) -> bytes:
        cert = _certificate(serial, f"Broken CA {serial}", with_key_ids=True)
        der = cert.public_bytes(serialization.Encoding.DER)
        # rewrite the AuthorityKeyIdentifier OID (2.5.29.35) as SubjectKeyIdentifier (2.5.29.14)
        tampered = der.replace(bytes.fromhex("0603551d23"), bytes.fromhex("0603551d0e"))
        assert tampered != der
        body = base64.b64encode(tampered).decode("ascii")
        lines = [body[i : i + 64] for i in range(0, len(body), 64)]
        pem = "\n".join(["-----BEGIN CERTIFICATE-----", *lines, "-----END CERTIFICATE-----", ""])
        return pem.encode("ascii")

    return _make


@pytest.fixture
def write_serials() -> Callable[[Path, Dict[str, str]], Path]:
    def _write(directory: Path, serial_by_alias: Dict[str, str]) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        for alias, serial in serial_by_alias.items():
            (directory / f"{alias}.serial-number").write_text(f"{serial}\n", encoding="utf-8")
        return directory

    return _write
