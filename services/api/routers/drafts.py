# services/api/routers/drafts.py
from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from core.auth import CurrentUser
from core.deps import Storage
from models.converters import draft_from_row
from schemas import DraftEnvelope, DraftIn, DraftOut, DraftSaved

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/drafts", tags=["drafts"])


def _draft_out(row) -> DraftOut:
    return DraftOut.model_validate(draft_from_row(row))


@router.get("/{file_id}", response_model=DraftEnvelope)
def get_draft(file_id: str, user_id: CurrentUser, storage: Storage):
    row = storage.get_draft(file_id, user_id)
    return DraftEnvelope(draft=_draft_out(row) if row else None)


@router.post("/{file_id}", response_model=DraftSaved)
def save_draft(file_id: str, body: DraftIn, user_id: CurrentUser, storage: Storage):
    """Create or replace the user's draft for a file they own."""
    f = storage.get_file(file_id)
    if not f or f["user_id"] != user_id:
        raise HTTPException(status_code=404, detail="File not found")

    row = storage.upsert_draft(file_id, user_id, body.content)
    return DraftSaved(draft=_draft_out(row))


@router.delete("/{file_id}")
def delete_draft(file_id: str, user_id: CurrentUser, storage: Storage):
    deleted = storage.delete_draft(file_id, user_id)
    if deleted:
        logger.debug(f"Draft discarded file={file_id} user={user_id}")
    return {"success": True}
