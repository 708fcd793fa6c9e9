# services/api/routers/uploads.py
"""
Serves stored upload bytes at /api/uploads/<user_id>/<batch_id>/<path>,
the URL recorded on every file row.
"""
from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from core.storage import infer_mime_type, resolve_public_path
from settings import Settings, get_settings

router = APIRouter(prefix="/api/uploads", tags=["uploads"])


@router.get("/{path:path}")
def serve_upload(path: str, settings: Annotated[Settings, Depends(get_settings)]):
    target = resolve_public_path(settings.upload_root_path(), path)
    return FileResponse(target, media_type=infer_mime_type(target.name))
