"""
Pydantic schemas for API request/response validation.
"""
from .file import (
    UploadSource,
    CandidateIn,
    ValidateRequest,
    ValidationOut,
    FileOut,
    Pagination,
    FileListOut,
    UploadOut,
    BulkDeleteIn,
    DeleteOut,
    FileRenameIn,
    RenameOut,
)
from .draft import DraftIn, DraftOut, DraftEnvelope, DraftSaved

__all__ = [
    "UploadSource",
    "CandidateIn",
    "ValidateRequest",
    "ValidationOut",
    "FileOut",
    "Pagination",
    "FileListOut",
    "UploadOut",
    "BulkDeleteIn",
    "DeleteOut",
    "FileRenameIn",
    "RenameOut",
    "DraftIn",
    "DraftOut",
    "DraftEnvelope",
    "DraftSaved",
]
