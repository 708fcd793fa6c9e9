from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from . import FileDraft, FileRecord

PROTECTED_ID_PREFIX = "default-"
PROTECTED_BATCH_ID = "no-batch"


def _iso(v: Any) -> str:
    """
    Convert a DB timestamp to an ISO-8601 string ('' when missing).
    """
    if v is None:
        return ""
    if isinstance(v, datetime):
        return v.isoformat()
    return str(v)


def file_from_row(row: Dict[str, Any]) -> FileRecord:
    return FileRecord(
        id=row["id"],
        user_id=row["user_id"],
        batch_id=row["batch_id"],
        filename=row["filename"],
        original_name=row["original_name"],
        relative_path=(row.get("relative_path") or None),
        mime_type=row["mime_type"],
        size=int(row.get("size") or 0),
        storage_key=row["storage_key"],
        url=row["url"],
        source=row.get("source") or "editor",
        created_at=_iso(row.get("created_at")),
        updated_at=_iso(row.get("updated_at")),
    )


def draft_from_row(row: Dict[str, Any]) -> FileDraft:
    return FileDraft(
        file_id=row["file_id"],
        user_id=row["user_id"],
        content=row.get("content") or "",
        updated_at=_iso(row.get("updated_at")),
    )


def is_protected(file_id: str, batch_id: str | None = None) -> bool:
    """Built-in sample files cannot be renamed."""
    return file_id.startswith(PROTECTED_ID_PREFIX) or batch_id == PROTECTED_BATCH_ID
