from __future__ import annotations

from typing import Optional
from pydantic import BaseModel


class FileRecord(BaseModel):
    """
    Domain model for a row of the `files` table.
    """
    id: str
    user_id: str
    batch_id: str

    # <uuid>.<ext> on the server; original_name is what the user picked
    filename: str
    original_name: str
    relative_path: Optional[str] = None

    mime_type: str
    size: int = 0
    storage_key: str
    url: str
    source: str = "editor"

    created_at: str = ""
    updated_at: str = ""


class FileDraft(BaseModel):
    """
    Domain model for an unsaved editor draft of a file (one per file and user).
    """
    file_id: str
    user_id: str
    content: str
    updated_at: str = ""
