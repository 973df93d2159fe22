"""Unpacking of downloaded JDK archives.

Every entry is checked before it touches the disk: absolute paths,
``..`` traversal, links that point outside the destination and writes
through symlinked directories are all refused with :class:`ArchiveError`.
Symlinks inside the archive are recreated, since macOS bundles ship
``bin/java`` style links into ``Contents/Home``.
"""

from __future__ import annotations

import os
import posixpath
import re
import shutil
import stat
import tarfile
import zipfile
from pathlib import Path
from typing import IO, List, Optional

from .distributions import Extension
from .errors import ArchiveError

_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")


def _is_absolute(name: str) -> bool:
    return name.startswith("/") or bool(_DRIVE_PREFIX.match(name))


class _Extractor:
    def __init__(self, archive: Path, dest: Path) -> None:
        self.archive = archive
        self.dest = dest

    def fail(self, message: str) -> ArchiveError:
        return ArchiveError(f"{message} ({self.archive.name})")

    def entry_name(self, member: str) -> str:
        normalized = (member or "").replace("\\", "/")
        while normalized.startswith("./"):
            normalized = normalized[2:]
        if not normalized:
            return ""
        if _is_absolute(normalized):
            raise self.fail(f"archive entry contains an absolute path: {member!r}")
        parts = [part for part in normalized.split("/") if part not in {"", "."}]
        if ".." in parts:
            raise self.fail(f"archive entry attempts path traversal: {member!r}")
        return "/".join(parts)

    def directory(self, parts: List[str]) -> Path:
        current = self.dest
        for part in parts:
            current = current / part
            if current.is_symlink():
                raise self.fail(f"refusing to extract into symlinked directory {current}")
            if current.exists():
                if not current.is_dir():
                    raise self.fail(f"refusing to extract into non-directory {current}")
                continue
            current.mkdir()
        return current

    def target(self, entry: str) -> Path:
        parts = entry.split("/")
        self.directory(parts[:-1])
        target = self.dest.joinpath(*parts)
        dest_real = self.dest.resolve()
        parent_real = target.parent.resolve()
        if parent_real != dest_real and dest_real not in parent_real.parents:
            raise self.fail(f"archive entry escapes destination: {entry!r}")
        if target.is_symlink():
            raise self.fail(f"refusing to overwrite symlink {target}")
        return target

    def link_source(self, entry: str, linkname: str, *, relative_to_entry: bool) -> str:
        linkname = (linkname or "").replace("\\", "/").strip()
        if not linkname:
            raise self.fail(f"link entry {entry!r} has no target")
        if _is_absolute(linkname):
            raise self.fail(f"refusing to extract absolute link target {linkname!r}")
        base = posixpath.dirname(entry) if relative_to_entry else ""
        combined = posixpath.normpath(posixpath.join(base, linkname))
        if combined == ".." or combined.startswith("../"):
            raise self.fail(f"refusing to extract link escaping destination: {entry!r} -> {linkname!r}")
        return linkname if relative_to_entry else combined

    def symlink(self, entry: str, linkname: str) -> None:
        link_target = self.link_source(entry, linkname, relative_to_entry=True)
        target = self.target(entry)
        if target.exists():
            target.unlink()
        try:
            os.symlink(link_target, target)
        except (NotImplementedError, OSError) as exc:
            raise ArchiveError(f"failed to create symlink for {entry!r}: {exc}") from exc

    def hardlink(self, entry: str, linkname: str) -> None:
        source_entry = self.link_source(entry, linkname, relative_to_entry=False)
        source = self.dest.joinpath(*source_entry.split("/"))
        if not source.exists():
            raise self.fail(f"hardlink target missing while extracting {entry!r}")
        target = self.target(entry)
        if target.exists():
            target.unlink()
        try:
            os.link(source, target)
        except OSError as exc:
            raise ArchiveError(f"failed to create hardlink for {entry!r}: {exc}") from exc

    def regular(self, entry: str, src: IO[bytes], mode: int) -> None:
        target = self.target(entry)
        with target.open("wb") as out:
            shutil.copyfileobj(src, out)
        if mode:
            try:
                os.chmod(target, mode & 0o777)
            except OSError:
                pass

    # -- formats ---------------------------------------------------------------------

    def extract_zip(self) -> None:
        try:
            with zipfile.ZipFile(self.archive) as zf:
                for info in zf.infolist():
                    entry = self.entry_name(info.filename)
                    if not entry:
                        continue
                    if info.is_dir():
                        self.directory(entry.split("/"))
                        continue
                    mode = (info.external_attr >> 16) & 0xFFFF
                    if stat.S_ISLNK(mode):
                        self.symlink(entry, zf.read(info).decode("utf-8"))
                        continue
                    with zf.open(info, "r") as src:
                        self.regular(entry, src, mode)
        except zipfile.BadZipFile as exc:
            raise self.fail("corrupt zip archive") from exc

    def extract_tar_gz(self) -> None:
        try:
            with tarfile.open(self.archive, mode="r:gz") as tf:
                for member in tf:
                    entry = self.entry_name(member.name)
                    if not entry:
                        continue
                    if member.isdir():
                        self.directory(entry.split("/"))
                    elif member.issym():
                        self.symlink(entry, member.linkname)
                    elif member.islnk():
                        self.hardlink(entry, member.linkname)
                    elif member.isreg():
                        file_obj: Optional[IO[bytes]] = tf.extractfile(member)
                        if file_obj is None:
                            continue
                        with file_obj as src:
                            self.regular(entry, src, member.mode)
                    else:
                        raise self.fail(f"unsupported archive entry type for {entry!r}")
        except (tarfile.TarError, EOFError) as exc:
            raise self.fail("corrupt tar.gz archive") from exc


def extract_archive(archive: Path, dest: Path, extension: Extension) -> None:
    """Unpack ``archive`` (of the given format) into ``dest``."""
    archive = Path(archive)
    dest = Path(dest)
    try:
        dest.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ArchiveError(f"failed to create extraction directory {dest}: {exc}") from exc
    extractor = _Extractor(archive, dest)
    if extension is Extension.ZIP:
        extractor.extract_zip()
    elif extension is Extension.TAR_GZ:
        extractor.extract_tar_gz()
    else:
        raise ArchiveError(f"unsupported archive format {extension} for {archive.name}")
