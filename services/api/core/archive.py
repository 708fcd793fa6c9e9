"""
Zip archive extraction for project uploads.

- extraction_workspace(): unique temp dir, always removed on exit
- extract_zip(): Zip Slip protection, size caps and corrupt archive detection
- walk_extracted(): flat, sorted listing relative to the extraction root
"""
from __future__ import annotations

import io
import logging
import os
import shutil
import zipfile
import zlib
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional
from uuid import uuid4

from core.validation import UploadCandidate, make_candidate

logger = logging.getLogger(__name__)

SYSTEM_FOLDERS = {"__MACOSX"}
CHUNK = 1024 * 1024


class ArchiveError(Exception):
    """Raised when an uploaded archive cannot be safely extracted."""


class ArchiveTooLarge(ArchiveError):
    """Raised when archive members expand past the configured size limits."""


@dataclass(frozen=True)
class ExtractedEntry:
    name: str
    relative_path: str  # posix, relative to the extraction root
    full_path: Path
    size: int


def is_zip_name(filename: str | None) -> bool:
    return bool(filename) and filename.lower().endswith(".zip")


@contextmanager
def extraction_workspace(tmp_root: Path) -> Iterator[Path]:
    """Create <tmp_root>/<uuid>/ and remove it on every exit path."""
    workdir = Path(tmp_root) / uuid4().hex
    workdir.mkdir(parents=True, exist_ok=False)
    try:
        yield workdir
    finally:
        try:
            shutil.rmtree(workdir)
        except OSError as e:
            logger.error(f"Cleanup of {workdir} failed: {e}")


def _member_path(member: zipfile.ZipInfo) -> str:
    name = member.filename.replace("\\", "/")
    if ".." in name.split("/") or name.startswith("/") or os.path.isabs(name):
        raise ArchiveError(f"Malicious file path detected in archive: {member.filename}")
    if len(name) > 1 and name[1] == ":":
        raise ArchiveError(f"Malicious file path detected in archive: {member.filename}")
    return name


def _mb(n: int) -> str:
    return f"{n / (1024 * 1024):g} MB"


def extract_zip(
    data: bytes,
    dest: Path,
    max_member_bytes: Optional[int] = None,
    max_total_bytes: Optional[int] = None,
) -> int:
    """
    Extract every file member of a zip archive into `dest`.

    Sizes declared in the zip directory are checked before anything is
    written; the bytes actually decompressed are counted against the same
    limits, so a member lying about its size is cut off as well.

    Returns:
        Number of files written.

    Raises:
        ArchiveTooLarge: a member exceeds `max_member_bytes` or all members
            together exceed `max_total_bytes`.
        ArchiveError: corrupt archive, unsupported compression or unsafe member paths.
    """
    dest = Path(dest)
    dest.mkdir(parents=True, exist_ok=True)
    base = dest.resolve()
    written = 0
    total = 0

    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            members = [m for m in zf.infolist() if not m.is_dir()]
            # Check every path and declared size before writing anything
            paths = [_member_path(m) for m in members]
            declared_total = 0
            for member in members:
                if max_member_bytes is not None and member.file_size > max_member_bytes:
                    raise ArchiveTooLarge(
                        f"{member.filename}: exceeds the {_mb(max_member_bytes)} per-file limit."
                    )
                declared_total += member.file_size
            if max_total_bytes is not None and declared_total > max_total_bytes:
                raise ArchiveTooLarge(
                    f"Archive expands to more than the {_mb(max_total_bytes)} limit."
                )

            for member, rel in zip(members, paths):
                target = (base / rel).resolve()
                if base not in target.parents:
                    raise ArchiveError(f"Malicious file path detected in archive: {member.filename}")
                target.parent.mkdir(parents=True, exist_ok=True)
                size = 0
                with zf.open(member) as src, open(target, "wb") as out:
                    while True:
                        chunk = src.read(CHUNK)
                        if not chunk:
                            break
                        size += len(chunk)
                        total += len(chunk)
                        if max_member_bytes is not None and size > max_member_bytes:
                            raise ArchiveTooLarge(
                                f"{member.filename}: exceeds the {_mb(max_member_bytes)} per-file limit."
                            )
                        if max_total_bytes is not None and total > max_total_bytes:
                            raise ArchiveTooLarge(
                                f"Archive expands to more than the {_mb(max_total_bytes)} limit."
                            )
                        out.write(chunk)
                written += 1
    except (zipfile.BadZipFile, zlib.error, NotImplementedError, EOFError) as e:
        raise ArchiveError("Failed to extract archive. Ensure it is a valid .zip file.") from e

    return written


def _is_system_entry(name: str) -> bool:
    return name in SYSTEM_FOLDERS or name.startswith(".")


def walk_extracted(root: Path, skip_system_entries: bool = True) -> List[ExtractedEntry]:
    """
    Recursively list files under `root`, sorted by path.

    With `skip_system_entries`, __MACOSX/ folders and dot-entries are left out.
    """
    root = Path(root)
    entries: List[ExtractedEntry] = []

    def _walk(directory: Path) -> None:
        for item in sorted(directory.iterdir(), key=lambda p: p.name):
            if skip_system_entries and _is_system_entry(item.name):
                continue
            if item.is_dir():
                _walk(item)
            elif item.is_file():
                entries.append(
                    ExtractedEntry(
                        name=item.name,
                        relative_path=item.relative_to(root).as_posix(),
                        full_path=item,
                        size=item.stat().st_size,
                    )
                )

    _walk(root)
    return entries


def to_candidates(entries: List[ExtractedEntry]) -> List[UploadCandidate]:
    """Same order as `entries`."""
    return [make_candidate(e.name, e.size, e.relative_path) for e in entries]
