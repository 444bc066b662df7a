"""Notes API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.auth import CurrentUser, require_auth
from ..database import get_db
from ..schemas.common import MessageResponse
from ..schemas.note import (
    NoteCreate,
    NoteListResponse,
    NoteMessageResponse,
    NoteResponse,
    NoteStats,
    NoteUpdate,
)
from ..services import NoteService

router = APIRouter(prefix="/api/notes", tags=["notes"])


@router.get("", response_model=NoteListResponse)
def list_notes(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[str] = Query(None, description="Category name, or 'all'"),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_auth),
):
    """The user's notes, pinned first then most recently updated."""
    return NoteService(db).list_notes(user.id, page=page, limit=limit, category=category, search=search)


@router.get("/stats", response_model=NoteStats)
def note_stats(
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_auth),
):
    return NoteService(db).stats(user.id)


@router.get("/{note_id}", response_model=NoteResponse)
def get_note(
    note_id: int,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_auth),
):
    return NoteService(db).get_note(user.id, note_id)


@router.post("", response_model=NoteMessageResponse, status_code=201)
def create_note(
    body: NoteCreate,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_auth),
):
    note = NoteService(db).create_note(user.id, body)
    return {"message": "Note created successfully", "note": note}


@router.put("/{note_id}", response_model=NoteMessageResponse)
def update_note(
    note_id: int,
    body: NoteUpdate,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_auth),
):
    note = NoteService(db).update_note(user.id, note_id, body)
    return {"message": "Note updated successfully", "note": note}


@router.delete("/{note_id}", response_model=MessageResponse)
def delete_note(
    note_id: int,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_auth),
):
    NoteService(db).delete_note(user.id, note_id)
    return {"message": "Note deleted successfully"}
