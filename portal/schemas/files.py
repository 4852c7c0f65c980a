"""Pydantic schemas for file endpoints."""

from datetime import datetime

from pydantic import BaseModel


class FileResponse(BaseModel):
    id: int
    original_filename: str
    mime_type: str | None
    file_size_bytes: int
    uploaded_at: datetime

    model_config = {"from_attributes": True}


class FileListResponse(BaseModel):
    items: list[FileResponse]
    total: int
