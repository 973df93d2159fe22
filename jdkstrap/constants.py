"""Shared constants for jdkstrap."""

from __future__ import annotations

from pathlib import Path
from typing import Tuple

PACKAGE_NAME = "jdkstrap"
DEFAULT_APP_DIR_NAME = "jdkstrap"

STORAGE_ENV_VAR = "JDKSTRAP_STORAGE_DIR"
CONFIG_ENV_VAR = "JDKSTRAP_CONFIG"
BASE_URL_ENV_VAR_TEMPLATE = "JDKSTRAP_{name}_BASE_URL"

EXIT_CODE_FAILURE = 1
EXIT_CODE_USAGE = 2
EXIT_CODE_INTERRUPT = 130

HTTP_TIMEOUT_SECONDS = 30.0

# keytool defaults shared by every JDK distribution
KEYSTORE_PASSWORD = "changeit"

LINUX_CA_BUNDLE_CANDIDATES: Tuple[Path, ...] = (
    # debian/ubuntu
    Path("/etc/ssl/certs/ca-certificates.crt"),
    # rhel/centos
    Path("/etc/ssl/certs/ca-bundle.crt"),
)
MACOS_KEYCHAINS: Tuple[Path, ...] = (
    Path("/System/Library/Keychains/SystemRootCertificates.keychain"),
    Path("/Library/Keychains/System.keychain"),
)

IN_PROGRESS_MARKER = ".in-progress-"
LOCK_SUFFIX = ".lock"

JDKS_DIR = "jdks"
CERTS_DIR = "certs"
DOWNLOAD_URL_FILENAME = "download-url"
LOCAL_PATH_FILENAME = "local-path"
SERIAL_NUMBER_SUFFIX = ".serial-number"
