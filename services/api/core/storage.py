# services/api/core/storage.py
"""
Disk storage for uploaded files.

Layout: <upload_root>/<user_id>/<batch_id>/<relative_path>
Storage key: uploads/<user_id>/<batch_id>/<relative_path>
Public URL: /api/<storage_key>
"""
from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from fastapi import HTTPException, UploadFile

logger = logging.getLogger(__name__)

CHUNK = 1 * 1024 * 1024  # 1 MB
STORAGE_PREFIX = "uploads"

MIME_BY_EXTENSION = {
    ".md": "text/markdown",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
}


def infer_mime_type(name: str) -> str:
    ext = os.path.splitext(name)[1].lower()
    return MIME_BY_EXTENSION.get(ext, "application/octet-stream")


def build_storage_key(user_id: str, batch_id: str, relative_path: str) -> str:
    return f"{STORAGE_PREFIX}/{user_id}/{batch_id}/{relative_path}"


def public_url(storage_key: str) -> str:
    return f"/api/{storage_key}"


def _inside(base: Path, target: Path) -> bool:
    return target == base or base in target.parents


def batch_dir(upload_root: Path, user_id: str, batch_id: str) -> Path:
    return Path(upload_root).resolve() / user_id / batch_id


def _resolve_under(upload_root: Path, rel: str) -> Path:
    base = Path(upload_root).resolve()
    target = (base / rel).resolve()
    if not _inside(base, target) or target == base:
        raise HTTPException(status_code=403, detail="Access denied: path outside upload directory")
    return target


def stored_file_path(upload_root: Path, storage_key: str) -> Path:
    """Map a storage key to its absolute path, refusing keys that escape the upload root."""
    prefix = f"{STORAGE_PREFIX}/"
    if not storage_key.startswith(prefix):
        raise HTTPException(status_code=403, detail="Access denied: path outside upload directory")
    return _resolve_under(upload_root, storage_key[len(prefix):])


def _limit_detail(name: Optional[str], max_bytes: int) -> str:
    return f"{name or 'file'}: exceeds the {max_bytes // (1024 * 1024)} MB upload limit."


def check_declared_size(upload: UploadFile, max_bytes: int) -> None:
    size = getattr(upload, "size", None)
    if size is not None and size > max_bytes:
        raise HTTPException(status_code=413, detail=_limit_detail(upload.filename, max_bytes))


async def save_upload(upload: UploadFile, dest: Path, max_bytes: int) -> int:
    """
    Stream an upload to `dest`.
    - Per-file limit: max_bytes (413 when exceeded).
    - Atomic write: tmp -> replace.

    Returns:
        Number of bytes written.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp_path: Optional[Path] = None
    total = 0
    try:
        with tempfile.NamedTemporaryFile("wb", dir=dest.parent, delete=False) as tmp:
            tmp_path = Path(tmp.name)
            while True:
                chunk = await upload.read(CHUNK)
                if not chunk:
                    break
                total += len(chunk)
                if total > max_bytes:
                    raise HTTPException(status_code=413, detail=_limit_detail(upload.filename, max_bytes))
                tmp.write(chunk)
            tmp.flush()
            os.fsync(tmp.fileno())

        os.replace(tmp_path, dest)
        tmp_path = None
        return total
    finally:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)


def copy_into_storage(src: Path, dest: Path) -> int:
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(src, dest)
    return dest.stat().st_size


def remove_stored(upload_root: Path, storage_key: str) -> bool:
    """Delete a stored file. Failures are logged, not raised."""
    try:
        stored_file_path(upload_root, storage_key).unlink()
        return True
    except FileNotFoundError:
        logger.warning(f"Stored file already missing: {storage_key}")
    except (OSError, HTTPException) as e:
        logger.error(f"Error deleting file from disk: {storage_key}: {e}")
    return False


def discard_batch(upload_root: Path, user_id: str, batch_id: str) -> None:
    """Remove everything written for a batch (used when persisting fails half-way)."""
    target = batch_dir(upload_root, user_id, batch_id)
    if target.exists():
        shutil.rmtree(target, ignore_errors=True)


def resolve_public_path(upload_root: Path, requested: str) -> Path:
    """Resolve a /api/uploads/<path> request to a file under the upload root."""
    parts = [p for p in requested.replace("\\", "/").split("/") if p]
    if not parts:
        raise HTTPException(status_code=404, detail="Not Found")
    if ".." in parts:
        raise HTTPException(status_code=403, detail="Forbidden")

    target = _resolve_under(upload_root, "/".join(parts))
    if not target.is_file():
        raise HTTPException(status_code=404, detail="File not found")
    return target
