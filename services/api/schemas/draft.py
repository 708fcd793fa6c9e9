"""
Pydantic schemas for editor drafts.
"""
from typing import Optional
from pydantic import BaseModel, Field


class DraftIn(BaseModel):
    """Schema for saving a draft."""
    content: str = Field(..., description="Full Markdown content of the draft")


class DraftOut(BaseModel):
    file_id: str
    content: str
    updated_at: str

    class Config:
        from_attributes = True


class DraftEnvelope(BaseModel):
    """`draft` is null when the user has no draft for the file."""
    draft: Optional[DraftOut] = None


class DraftSaved(BaseModel):
    success: bool = True
    draft: DraftOut
