# services/api/routers/archive.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Set
from uuid import uuid4

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from fastapi.responses import JSONResponse

from core.archive import (
    ArchiveError,
    ArchiveTooLarge,
    extract_zip,
    extraction_workspace,
    is_zip_name,
    to_candidates,
    walk_extracted,
)
from core.auth import CurrentUser
from core.deps import Storage
from core.references import extract_image_references, find_orphaned_images
from core.storage import (
    build_storage_key,
    check_declared_size,
    copy_into_storage,
    discard_batch,
    stored_file_path,
)
from core.validation import UploadMode, validate_upload_structure
from routers.files import (
    Config,
    ensure_unique_paths,
    file_out,
    new_row,
    rejection_response,
    stored_relative_path,
)
from schemas import UploadOut, UploadSource

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])


@router.post("/archive", response_model=UploadOut, status_code=status.HTTP_201_CREATED)
async def upload_archive(
    user_id: CurrentUser,
    storage: Storage,
    settings: Config,
    file: UploadFile = File(...),
    source: UploadSource = Form(UploadSource.EDITOR),
):
    """
    Upload a zipped project.

    Steps:
      1) read the archive (size capped)
      2) extract into a throwaway workspace (Zip Slip and size checked)
      3) validate the extracted tree in archive mode
      4) optionally reject images no Markdown file references
      5) copy into storage under a new batch and insert rows

    The workspace is removed on every exit path.
    """
    if not is_zip_name(file.filename):
        raise HTTPException(status_code=400, detail="Only .zip archives are supported.")

    max_bytes = settings.max_archive_size
    check_declared_size(file, max_bytes)
    data = await file.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"{file.filename}: exceeds the {max_bytes // (1024 * 1024)} MB archive limit.",
        )

    tmp_root = settings.tmp_dir_path()
    tmp_root.mkdir(parents=True, exist_ok=True)

    with extraction_workspace(tmp_root) as workdir:
        try:
            count = extract_zip(
                data,
                workdir,
                max_member_bytes=settings.max_upload_size,
                max_total_bytes=settings.max_extracted_size,
            )
        except ArchiveTooLarge as e:
            logger.warning(f"Archive too large for user={user_id}: {e}")
            raise HTTPException(status_code=413, detail=str(e))
        except ArchiveError as e:
            logger.warning(f"Archive rejected for user={user_id}: {e}")
            raise HTTPException(status_code=400, detail=str(e))
        logger.debug(f"Extracted {count} member(s) from {file.filename}")

        entries = walk_extracted(workdir, skip_system_entries=settings.archive_skip_system_entries)
        try:
            candidates = to_candidates(entries)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        outcome = validate_upload_structure(candidates, UploadMode.ARCHIVE)
        if not outcome.accepted:
            logger.info(f"Archive rejected for user={user_id}: {outcome.rejection.value}")
            return rejection_response(outcome)

        rel_paths = [stored_relative_path(outcome, c) for c in outcome.filtered]
        ensure_unique_paths(rel_paths)

        if settings.reject_orphaned_images:
            refs: Set[str] = set()
            images: List[str] = []
            for entry, rel in zip(entries, rel_paths):
                if "/" not in rel:
                    refs |= extract_image_references(entry.full_path.read_text(encoding="utf-8", errors="replace"))
                else:
                    images.append(rel)
            orphans = find_orphaned_images(refs, images)
            if orphans:
                return JSONResponse(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    content={
                        "detail": f"Orphaned asset found: '{orphans[0]}' is not referenced in any Markdown file.",
                        "rejection": "OrphanedImage",
                    },
                )

        batch_id = str(uuid4())
        upload_root = settings.upload_root_path()
        rows: List[Dict[str, Any]] = []
        try:
            for entry, candidate, rel in zip(entries, outcome.filtered, rel_paths):
                dest = stored_file_path(upload_root, build_storage_key(user_id, batch_id, rel))
                size = copy_into_storage(entry.full_path, dest)
                rows.append(new_row(user_id, batch_id, candidate, rel, size, source))
            created = storage.create_files(rows)
        except Exception:
            discard_batch(upload_root, user_id, batch_id)
            raise

    logger.info(
        f"Stored archive {file.filename}: {len(created)} file(s) user={user_id} "
        f"batch={batch_id} case={outcome.case_id.value}"
    )
    return UploadOut(
        batch_id=batch_id,
        case_id=outcome.case_id.value,
        files=[file_out(r) for r in created],
    )
