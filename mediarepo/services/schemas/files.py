# mediarepo/services/schemas/files.py
from __future__ import annotations
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class ThumbRead(BaseModel):
    url: Optional[str] = None
    width: int
    height: int
    page: Optional[int] = None
    mime_type: Optional[str] = None


class FileInfoRead(BaseModel):
    name: str
    url: str
    mime_type: str
    media_type: str
    width: Optional[int] = None
    height: Optional[int] = None
    size_bytes: Optional[int] = None
    timestamp: Optional[str] = Field(None, examples=["20240131120000"])
    dimensions: str = ""
    can_render: bool = False
    thumb: Optional[ThumbRead] = None


class ThumbBatchItem(BaseModel):
    name: str = Field(..., examples=["Example.jpg"])
    widths: List[int] = Field(..., min_length=1)


class ThumbBatchRequest(BaseModel):
    items: List[ThumbBatchItem] = Field(..., min_length=1)
    workers: Optional[int] = Field(None, ge=1, le=64)  # capped by settings.max_thumb_workers
    force: bool = False


class ThumbBatchResponse(BaseModel):
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    planned: int
    generated: int
    cached: int
    deferred: int
    skipped: int
    errors: int
    error_details: List[str] = Field(default_factory=list)
