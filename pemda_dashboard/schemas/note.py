"""Schemas for the notes API."""

from datetime import datetime
from typing import Optional, List, Dict

from pydantic import BaseModel

from .common import CamelModel, Pagination


class NoteResponse(CamelModel):
    id: int
    user_id: str
    title: str
    content: str
    category: str
    tags: List[str] = []
    is_pinned: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class NoteCreate(CamelModel):
    """Create payload. Required fields are checked by the service so the
    client gets the same 400 message whichever one is missing."""
    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    is_pinned: Optional[bool] = None


class NoteUpdate(CamelModel):
    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    is_pinned: Optional[bool] = None


class NoteListResponse(BaseModel):
    notes: List[NoteResponse]
    pagination: Pagination


class NoteMessageResponse(BaseModel):
    message: str
    note: NoteResponse


class NoteStats(CamelModel):
    total: int = 0
    by_category: Dict[str, int] = {}
