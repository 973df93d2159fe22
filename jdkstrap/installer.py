"""Standalone installer invoked by the shell bootstrapper."""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Optional

from .certs import CaResources
from .console import log_debug
from .errors import JdkstrapError
from .layout import read_cert_serials
from .manager import copy_jdk_locked
from .platforms import current_os, java_binary_name


def default_java_home() -> Path:
    """Locate the JDK to copy: ``JAVA_HOME`` first, then ``java`` on ``PATH``."""
    env_home = os.environ.get("JAVA_HOME")
    if env_home:
        return Path(env_home)
    java = shutil.which(java_binary_name(current_os()))
    if java is None:
        raise JdkstrapError("Could not find a JDK to copy: JAVA_HOME is unset and java is not on PATH")
    # JAVA_HOME/bin/java, following any /usr/bin style alternatives links
    return Path(java).resolve().parent.parent


def setup_jdk(
    destination: Path,
    certs_dir: Path,
    source_java_home: Optional[Path] = None,
    *,
    ca_resources: Optional[CaResources] = None,
) -> bool:
    """Install a copy of ``source_java_home`` at ``destination`` exactly once.

    Certificates listed in ``certs_dir`` (``<alias>.serial-number`` files)
    are looked up in the system trust store and imported into the copy
    before it becomes visible. Returns whether this call did the copy;
    callers that lost the race skip the import since the winner did it.
    """
    source = Path(source_java_home) if source_java_home else default_java_home()
    if not source.is_dir():
        raise JdkstrapError(f"JDK source {source} is not a directory")
    alias_by_serial = read_cert_serials(certs_dir)
    log_debug(f"requested certificates by serial: {alias_by_serial}")
    resources = ca_resources or CaResources()
    return copy_jdk_locked(
        source,
        destination,
        prepare=lambda jdk_root: resources.maybe_import_certs(jdk_root, alias_by_serial),
    )
