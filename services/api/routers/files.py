# services/api/routers/files.py
from __future__ import annotations

import logging
import math
from typing import Annotated, Any, Dict, List, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import JSONResponse

from core.auth import CurrentUser
from core.deps import Storage
from core.storage import (
    build_storage_key,
    check_declared_size,
    discard_batch,
    infer_mime_type,
    public_url,
    remove_stored,
    save_upload,
    stored_file_path,
)
from core.validation import (
    UploadCandidate,
    UploadMode,
    ValidationOutcome,
    make_candidate,
    validate_upload_structure,
)
from models.converters import file_from_row, is_protected
from schemas import (
    BulkDeleteIn,
    DeleteOut,
    FileListOut,
    FileOut,
    FileRenameIn,
    Pagination,
    RenameOut,
    UploadOut,
    UploadSource,
    ValidateRequest,
    ValidationOut,
)
from settings import Settings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])

Config = Annotated[Settings, Depends(get_settings)]


# ====== Helpers (shared with routers/archive.py) ======

def rejection_response(outcome: ValidationOutcome) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": outcome.reason, "rejection": outcome.rejection.value},
    )


def file_out(row: Dict[str, Any]) -> FileOut:
    return FileOut.model_validate(file_from_row(row))


def stored_relative_path(outcome: ValidationOutcome, candidate: UploadCandidate) -> str:
    """
    Path kept for a file inside its batch.

    Folder uploads keep the picked folder as the first segment; archive
    uploads drop the wrapper folder, if any.
    """
    if outcome.mode is UploadMode.ARCHIVE:
        return outcome.effective_path(candidate)
    return candidate.path


def ensure_unique_paths(paths: List[str]) -> None:
    seen = set()
    for p in paths:
        key = p.lower()
        if key in seen:
            raise HTTPException(status_code=400, detail=f"Duplicate file path in upload: '{p}'")
        seen.add(key)


def new_row(
    user_id: str,
    batch_id: str,
    candidate: UploadCandidate,
    relative_path: str,
    size: int,
    source: UploadSource,
) -> Dict[str, Any]:
    key = build_storage_key(user_id, batch_id, relative_path)
    return {
        "user_id": user_id,
        "batch_id": batch_id,
        "original_name": candidate.name,
        "relative_path": relative_path,
        "mime_type": infer_mime_type(candidate.name),
        "size": size,
        "storage_key": key,
        "url": public_url(key),
        "source": source.value,
    }


def _owned_file(storage: Storage, user_id: str, file_id: str) -> Dict[str, Any]:
    row = storage.get_file(file_id)
    if not row:
        raise HTTPException(status_code=404, detail="File not found")
    if row["user_id"] != user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return row


def _split_client_name(filename: Optional[str]) -> tuple[str, Optional[str]]:
    """Some browsers send 'folder/file.md' as the multipart filename."""
    raw = (filename or "").replace("\\", "/")
    name = raw.rsplit("/", 1)[-1]
    return name, (raw if "/" in raw else None)


# ====== Endpoints ======

@router.post("/validate", response_model=ValidationOut)
def validate_files(body: ValidateRequest, user_id: CurrentUser):
    """
    Pre-upload structure check. Nothing is stored.

    Rejections are reported in the body (`accepted: false`), not as an error status.
    """
    try:
        candidates = [make_candidate(f.name, f.size, f.relative_path) for f in body.files]
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    outcome = validate_upload_structure(candidates, body.mode)
    return ValidationOut(**outcome.to_dict())


@router.post("", response_model=UploadOut, status_code=status.HTTP_201_CREATED)
async def upload_files(
    user_id: CurrentUser,
    storage: Storage,
    settings: Config,
    files: Optional[List[UploadFile]] = File(None, alias="files[]"),
    relative_paths: Optional[List[str]] = Form(None, alias="relative_paths[]"),
    source: UploadSource = Form(UploadSource.EDITOR),
):
    """
    Upload independent Markdown files or one picked project folder.

    The whole selection is validated before anything is written; on any
    failure while storing, the batch is removed again.
    """
    uploads = files or []
    if relative_paths is not None and len(relative_paths) != len(uploads):
        raise HTTPException(
            status_code=400,
            detail=f"relative_paths has {len(relative_paths)} entries for {len(uploads)} files",
        )

    candidates: List[UploadCandidate] = []
    try:
        for i, upload in enumerate(uploads):
            check_declared_size(upload, settings.max_upload_size)
            name, path_from_name = _split_client_name(upload.filename)
            rel = relative_paths[i] if relative_paths is not None else path_from_name
            candidates.append(make_candidate(name, upload.size or 0, rel or None))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    outcome = validate_upload_structure(candidates, None)
    if not outcome.accepted:
        logger.info(f"Upload rejected for user={user_id}: {outcome.rejection.value}")
        return rejection_response(outcome)

    rel_paths = [stored_relative_path(outcome, c) for c in outcome.filtered]
    ensure_unique_paths(rel_paths)

    batch_id = str(uuid4())
    upload_root = settings.upload_root_path()
    rows: List[Dict[str, Any]] = []
    try:
        for upload, candidate, rel in zip(uploads, outcome.filtered, rel_paths):
            key = build_storage_key(user_id, batch_id, rel)
            dest = stored_file_path(upload_root, key)
            size = await save_upload(upload, dest, settings.max_upload_size)
            rows.append(new_row(user_id, batch_id, candidate, rel, size, source))
        created = storage.create_files(rows)
    except Exception:
        discard_batch(upload_root, user_id, batch_id)
        raise

    logger.info(
        f"Stored {len(created)} file(s) user={user_id} batch={batch_id} case={outcome.case_id.value}"
    )
    return UploadOut(
        batch_id=batch_id,
        case_id=outcome.case_id.value,
        files=[file_out(r) for r in created],
    )


@router.get("", response_model=FileListOut)
def list_files(
    user_id: CurrentUser,
    storage: Storage,
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=500),
    source: Optional[UploadSource] = Query(None),
):
    rows, total = storage.list_files(
        user_id,
        source=source.value if source else None,
        page=page,
        limit=limit,
    )
    return FileListOut(
        files=[file_out(r) for r in rows],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if total else 0,
        ),
    )


@router.get("/{file_id}", response_model=FileOut)
def get_file(file_id: str, user_id: CurrentUser, storage: Storage):
    return file_out(_owned_file(storage, user_id, file_id))


@router.delete("/{file_id}", response_model=DeleteOut)
def delete_file(file_id: str, user_id: CurrentUser, storage: Storage, settings: Config):
    _owned_file(storage, user_id, file_id)
    deleted = storage.delete_files(user_id, [file_id])
    for row in deleted:
        remove_stored(settings.upload_root_path(), row["storage_key"])
    return DeleteOut(deleted=len(deleted))


@router.delete("", response_model=DeleteOut)
def bulk_delete_files(body: BulkDeleteIn, user_id: CurrentUser, storage: Storage, settings: Config):
    """Ids that do not exist or belong to another user are ignored."""
    deleted = storage.delete_files(user_id, list(dict.fromkeys(body.ids)))
    upload_root = settings.upload_root_path()
    for row in deleted:
        remove_stored(upload_root, row["storage_key"])
    logger.info(f"Bulk delete user={user_id}: {len(deleted)}/{len(body.ids)} removed")
    return DeleteOut(deleted=len(deleted))


@router.patch("", response_model=RenameOut)
def rename(body: FileRenameIn, user_id: CurrentUser, storage: Storage):
    """
    Rename a file or a folder. Only the stored names and paths change;
    stored bytes and URLs stay where they are.
    """
    new_name = body.new_name.strip()
    if not new_name or new_name in (".", "..") or "/" in new_name or "\\" in new_name:
        raise HTTPException(status_code=400, detail=f"Invalid name: '{body.new_name}'")

    if is_protected(body.id, body.batch_id):
        raise HTTPException(status_code=403, detail="Default files cannot be renamed")

    if body.type == "folder":
        if not body.batch_id or not body.old_path:
            raise HTTPException(status_code=400, detail="batch_id and old_path are required to rename a folder")
        updated = storage.rename_folder(user_id, body.batch_id, body.old_path, new_name)
        if updated == 0:
            raise HTTPException(status_code=404, detail="Folder not found")
        return RenameOut(updated=updated)

    row = _owned_file(storage, user_id, body.id)
    if is_protected(row["id"], row["batch_id"]):
        raise HTTPException(status_code=403, detail="Default files cannot be renamed")
    renamed = storage.rename_file(user_id, body.id, new_name)
    return RenameOut(updated=1, file=file_out(renamed))
