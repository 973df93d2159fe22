"""System trust store extraction and JDK trust store import."""

from __future__ import annotations

import base64
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from .commands import run_command
from .console import log, log_debug, log_error
from .constants import KEYSTORE_PASSWORD, LINUX_CA_BUNDLE_CANDIDATES, MACOS_KEYCHAINS
from .errors import CommandFailure, JdkstrapError, NoTruststoreFound
from .platforms import Os, current_os, keytool_binary_name
from .utils import remove_quietly, write_text_to_tempfile

CommandRunner = Callable[..., str]

_PEM_BLOCK = re.compile(
    # an unterminated block must not swallow the certificate after it
    rb"-----BEGIN CERTIFICATE-----(?:(?!-----BEGIN ).)*?-----END CERTIFICATE-----",
    re.DOTALL,
)
_PEM_BEGIN = "-----BEGIN CERTIFICATE-----"
_PEM_END = "-----END CERTIFICATE-----"


@dataclass(frozen=True)
class ParsedCertificate:
    serial_number: int
    der: bytes
    subject: str = ""

    def to_pem(self) -> str:
        return encode_pem(self.der)


@dataclass(frozen=True)
class Certificate:
    """A certificate chosen for import, under the alias it will be stored as."""

    alias: str
    content: str


@dataclass(frozen=True)
class SystemCertificates:
    data: bytes = b""
    unsupported_os: Optional[Os] = None

    @property
    def supported(self) -> bool:
        return self.unsupported_os is None


@dataclass(frozen=True)
class CertificateSelection:
    found: List[Certificate] = field(default_factory=list)
    missing_aliases: List[str] = field(default_factory=list)


class ImportOutcome(Enum):
    IMPORTED = "imported"
    ALREADY_PRESENT = "already-present"
    UNSUPPORTED_OS = "unsupported-os"


def encode_pem(der: bytes) -> str:
    body = base64.b64encode(der).decode("ascii")
    lines = [body[i : i + 64] for i in range(0, len(body), 64)]
    return "\n".join([_PEM_BEGIN, *lines, _PEM_END])


def _load_checked(loader: Callable[[bytes], x509.Certificate], data: bytes) -> x509.Certificate:
    """Load a certificate and force the lazily-parsed fields we rely on.

    cryptography defers extension parsing, so strictness problems such as
    duplicate extensions only surface when ``extensions`` is read.
    """
    cert = loader(data)
    version = cert.version
    extensions = cert.extensions
    if version is x509.Version.v1 and len(extensions) > 0:
        raise ValueError("no more data allowed for version 1 certificate")
    return cert


def _parsed(cert: x509.Certificate) -> ParsedCertificate:
    try:
        subject = cert.subject.rfc4514_string()
    except ValueError:
        subject = ""
    return ParsedCertificate(
        serial_number=cert.serial_number,
        der=cert.public_bytes(serialization.Encoding.DER),
        subject=subject,
    )


def parse_certificates(data: bytes) -> List[ParsedCertificate]:
    """Parse every certificate in a PEM bundle, in order.

    Text between PEM blocks is ignored. An individual certificate that a
    strict parser rejects (duplicate extensions, a v1 certificate carrying
    extensions, broken ASN.1) is skipped; the rest of the bundle is still
    returned. A bundle without PEM markers is read as a single DER
    certificate; empty input yields an empty list.
    """
    blocks = list(_PEM_BLOCK.finditer(data))
    certs: List[ParsedCertificate] = []
    if not blocks:
        stripped = data.lstrip()
        if not stripped or not stripped.startswith(b"\x30"):
            return certs
        try:
            certs.append(_parsed(_load_checked(x509.load_der_x509_certificate, stripped)))
        except (ValueError, x509.DuplicateExtension, x509.InvalidVersion) as exc:
            log_debug(f"skipping malformed certificate: {exc}")
        return certs

    for index, match in enumerate(blocks):
        try:
            cert = _load_checked(x509.load_pem_x509_certificate, match.group(0))
        except (ValueError, x509.DuplicateExtension, x509.InvalidVersion) as exc:
            log_debug(f"skipping malformed certificate #{index}: {exc}")
            continue
        certs.append(_parsed(cert))
    return certs


def select_certificates(
    parsed: Iterable[ParsedCertificate],
    alias_by_serial: Mapping[str, str],
) -> CertificateSelection:
    found: List[Certificate] = []
    matched_aliases = set()
    for cert in parsed:
        alias = alias_by_serial.get(str(cert.serial_number))
        if alias is None:
            continue
        found.append(Certificate(alias=alias, content=cert.to_pem()))
        matched_aliases.add(alias)
    missing = sorted(set(alias_by_serial.values()) - matched_aliases)
    return CertificateSelection(found=found, missing_aliases=missing)


def serial_number(pem_text: str) -> str:
    """Decimal serial number of a single PEM certificate."""
    try:
        cert = x509.load_pem_x509_certificate(pem_text.encode("utf-8"))
    except ValueError as exc:
        raise JdkstrapError(f"Could not get serial number for certificate: {exc}") from exc
    return str(cert.serial_number)


class CaResources:
    """Reads the host trust store and imports certificates into a JDK.

    ``os_name`` is the host operating system; it decides both where the
    system certificates come from and whether keytool imports are
    attempted.
    """

    def __init__(
        self,
        os_name: Optional[Os] = None,
        *,
        runner: CommandRunner = run_command,
        linux_bundles: Sequence[Path] = LINUX_CA_BUNDLE_CANDIDATES,
        macos_keychains: Sequence[Path] = MACOS_KEYCHAINS,
    ) -> None:
        self._os_name = os_name
        self._runner = runner
        self._linux_bundles = tuple(Path(p) for p in linux_bundles)
        self._macos_keychains = tuple(Path(p) for p in macos_keychains)

    @property
    def os_name(self) -> Os:
        if self._os_name is None:
            self._os_name = current_os()
        return self._os_name

    # -- system trust store ---------------------------------------------------------

    def resolve_system_certificates(self) -> SystemCertificates:
        os_name = self.os_name
        if os_name is Os.MACOS:
            return SystemCertificates(data=self._macos_system_certificates())
        if os_name.is_linux:
            return SystemCertificates(data=self._linux_system_certificates())
        return SystemCertificates(unsupported_os=os_name)

    def _macos_system_certificates(self) -> bytes:
        outputs = []
        for keychain in self._macos_keychains:
            if not keychain.exists():
                continue
            outputs.append(
                self._runner(
                    ["security", "export", "-t", "certs", "-f", "pemseq", "-k", str(keychain.absolute())]
                )
            )
        return "\n".join(outputs).encode("utf-8")

    def _linux_system_certificates(self) -> bytes:
        for candidate in self._linux_bundles:
            if candidate.exists():
                try:
                    return candidate.read_bytes()
                except OSError as exc:
                    raise JdkstrapError(f"Failed to read CA certs from {candidate}: {exc}") from exc
        raise NoTruststoreFound(self._linux_bundles)

    def system_certificates(self) -> List[ParsedCertificate]:
        resolved = self.resolve_system_certificates()
        if not resolved.supported:
            log_error(
                "Not attempting to read CA certificates from the system truststore "
                f"as OS type '{resolved.unsupported_os}' does not yet support this"
            )
            return []
        return parse_certificates(resolved.data)

    # -- JDK trust store ----------------------------------------------------------------

    def _keytool(self, jdk_root: Path) -> Path:
        return (Path(jdk_root) / "bin" / keytool_binary_name(self.os_name)).absolute()

    def alias_in_truststore(self, jdk_root: Path, alias: str) -> bool:
        cmd = [
            self._keytool(jdk_root),
            "-list",
            "-cacerts",
            "-storepass",
            KEYSTORE_PASSWORD,
            "-alias",
            alias,
        ]
        try:
            self._runner(cmd, env=_jdk_env(jdk_root))
        except CommandFailure as exc:
            marker = f"Alias <{alias}> does not exist"
            if marker.lower() in f"{exc.stdout}\n{exc.stderr}".lower():
                return False
            raise JdkstrapError(
                f"Unable to check if the certificate {alias} already exists in the truststore: {exc}"
            ) from exc
        return True

    def import_certificate(self, cert: Certificate, jdk_root: Path) -> ImportOutcome:
        if not (self.os_name is Os.MACOS or self.os_name.is_linux):
            log_error(f"Importing certificates for OS type '{self.os_name}' is not yet supported")
            return ImportOutcome.UNSUPPORTED_OS
        if self.alias_in_truststore(jdk_root, cert.alias):
            log(f"Certificate {cert.alias} already exists in the truststore, skipping...")
            return ImportOutcome.ALREADY_PRESENT

        cert_file = write_text_to_tempfile(
            cert.content,
            prefix=f"{cert.alias}-",
            suffix=".pem",
            description=f"certificate {cert.alias}",
        )
        try:
            self._runner(
                [
                    self._keytool(jdk_root),
                    "-import",
                    "-trustcacerts",
                    "-alias",
                    cert.alias,
                    "-cacerts",
                    "-storepass",
                    KEYSTORE_PASSWORD,
                    "-noprompt",
                    "-file",
                    str(cert_file),
                ],
                env=_jdk_env(jdk_root),
            )
        finally:
            remove_quietly(cert_file)
        log(f"Successfully imported CA certificate {cert.alias} into the JDK truststore")
        return ImportOutcome.IMPORTED

    def import_certificates(
        self, certs: Iterable[Certificate], jdk_root: Path
    ) -> List[Tuple[Certificate, ImportOutcome]]:
        return [(cert, self.import_certificate(cert, jdk_root)) for cert in certs]

    def maybe_import_certs(
        self, jdk_root: Path, alias_by_serial: Mapping[str, str]
    ) -> List[Tuple[Certificate, ImportOutcome]]:
        """Import the system certificates whose serials are requested."""
        if not alias_by_serial:
            log("No certificates were provided to import, skipping...")
            return []
        try:
            parsed = self.system_certificates()
        except NoTruststoreFound as exc:
            log_error(str(exc))
            parsed = []
        selection = select_certificates(parsed, alias_by_serial)
        report_missing(selection)
        return self.import_certificates(selection.found, jdk_root)


def report_missing(selection: CertificateSelection) -> None:
    if selection.missing_aliases:
        joined = ", ".join(selection.missing_aliases)
        log_error(f"Certificates with aliases '{joined}' could not be found in the system truststore")


def _jdk_env(jdk_root: Path) -> Dict[str, str]:
    env = dict(os.environ)
    env["JAVA_HOME"] = str(Path(jdk_root).absolute())
    return env
