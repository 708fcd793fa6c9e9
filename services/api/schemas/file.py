"""
Pydantic schemas for uploaded files.
"""
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from core.validation import UploadMode


class UploadSource(str, Enum):
    EDITOR = "editor"
    CONVERTER = "converter"


class CandidateIn(BaseModel):
    """One file as described by the client before upload."""
    name: str = Field(..., min_length=1, description="File name")
    size: int = Field(0, ge=0, description="Size in bytes")
    relative_path: Optional[str] = Field(
        None,
        description="Slash-separated path relative to the picked folder (folder uploads only)",
    )


class ValidateRequest(BaseModel):
    """Pre-upload structure check."""
    files: List[CandidateIn] = Field(default_factory=list)
    mode: Optional[UploadMode] = Field(
        None,
        description="independent | folder | archive. Detected from paths when omitted.",
    )


class ValidationOut(BaseModel):
    accepted: bool
    mode: UploadMode
    case_id: Optional[str] = None
    reason: Optional[str] = None
    rejection: Optional[str] = None
    stripped_root: Optional[str] = None
    files: List[str] = Field(default_factory=list, description="Accepted paths, in input order")


class FileOut(BaseModel):
    """Schema for file output."""
    id: str
    batch_id: str
    filename: str
    original_name: str
    relative_path: Optional[str] = None
    mime_type: str
    size: int
    storage_key: str
    url: str
    source: str
    created_at: str
    updated_at: str

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class FileListOut(BaseModel):
    files: List[FileOut]
    pagination: Pagination


class UploadOut(BaseModel):
    """Result of a successful upload batch."""
    batch_id: str
    case_id: str
    files: List[FileOut]


class BulkDeleteIn(BaseModel):
    ids: List[str] = Field(..., min_length=1, description="File ids to delete")


class DeleteOut(BaseModel):
    success: bool = True
    deleted: int


class FileRenameIn(BaseModel):
    """
    Rename a single file or a folder inside one upload batch.

    Folder renames need `batch_id` and `old_path` (the folder path as stored,
    e.g. 'docs' or 'docs/images').
    """
    id: str = Field(..., min_length=1)
    new_name: str = Field(..., min_length=1, max_length=255)
    type: Literal["file", "folder"] = "file"
    batch_id: Optional[str] = None
    old_path: Optional[str] = None


class RenameOut(BaseModel):
    success: bool = True
    updated: int
    file: Optional[FileOut] = None
