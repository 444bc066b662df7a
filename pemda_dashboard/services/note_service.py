"""Business logic for per-user notes."""

import logging
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..exceptions import NotFoundError, ValidationError
from ..models._time import utcnow
from ..models.note import (
    Note,
    NOTE_CATEGORIES,
    DEFAULT_CATEGORY,
    MAX_TITLE_LENGTH,
    MAX_CONTENT_LENGTH,
)
from ..schemas.common import Pagination
from ..schemas.note import NoteCreate, NoteUpdate, NoteResponse

logger = logging.getLogger(__name__)


def _clean_tags(tags) -> list[str]:
    if not tags:
        return []
    return [t.strip() for t in tags if isinstance(t, str) and t.strip()]


def _check_title(title: str) -> str:
    title = title.strip()
    if not title:
        raise ValidationError("Title cannot be empty", field="title")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Title must be at most {MAX_TITLE_LENGTH} characters", field="title")
    return title


def _check_content(content: str) -> str:
    content = content.strip()
    if not content:
        raise ValidationError("Content cannot be empty", field="content")
    if len(content) > MAX_CONTENT_LENGTH:
        raise ValidationError(f"Content must be at most {MAX_CONTENT_LENGTH} characters", field="content")
    return content


def _check_category(category: Optional[str]) -> str:
    if not category:
        return DEFAULT_CATEGORY
    if category not in NOTE_CATEGORIES:
        raise ValidationError(
            f"Invalid category. Must be one of: {', '.join(NOTE_CATEGORIES)}", field="category"
        )
    return category


class NoteService:
    """Notes CRUD scoped to one owner per call."""

    def __init__(self, db: Session):
        self.db = db

    def _get_owned(self, user_id: str, note_id: int) -> Note:
        note = self.db.query(Note).filter(Note.id == note_id, Note.user_id == user_id).first()
        if note is None:
            raise NotFoundError("Note not found", resource_id=note_id)
        return note

    def list_notes(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> dict:
        query = self.db.query(Note).filter(Note.user_id == user_id)

        if category and category.lower() != "all":
            query = query.filter(Note.category == category)

        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(or_(
                func.lower(Note.title).like(pattern),
                func.lower(Note.content).like(pattern),
            ))

        total = query.count()
        notes = (
            query.order_by(Note.is_pinned.desc(), Note.updated_at.desc(), Note.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            "notes": [NoteResponse.model_validate(n) for n in notes],
            "pagination": Pagination.build(page, limit, total),
        }

    def get_note(self, user_id: str, note_id: int) -> Note:
        return self._get_owned(user_id, note_id)

    def create_note(self, user_id: str, data: NoteCreate) -> Note:
        if not data.title or not data.title.strip() or not data.content or not data.content.strip():
            raise ValidationError("Title and content are required")

        note = Note(
            user_id=user_id,
            title=_check_title(data.title),
            content=_check_content(data.content),
            category=_check_category(data.category),
            tags=_clean_tags(data.tags),
            is_pinned=bool(data.is_pinned),
        )
        self.db.add(note)
        self.db.commit()
        self.db.refresh(note)
        logger.info("Note created", extra={"user_id": user_id, "note_id": note.id})
        return note

    def update_note(self, user_id: str, note_id: int, data: NoteUpdate) -> Note:
        """Apply only the fields present in the payload."""
        note = self._get_owned(user_id, note_id)
        fields = data.model_dump(exclude_unset=True)

        if fields.get("title") is not None:
            note.title = _check_title(fields["title"])
        if fields.get("content") is not None:
            note.content = _check_content(fields["content"])
        if fields.get("category") is not None:
            note.category = _check_category(fields["category"])
        if "tags" in fields:
            note.tags = _clean_tags(fields["tags"])
        if fields.get("is_pinned") is not None:
            note.is_pinned = bool(fields["is_pinned"])

        note.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(note)
        return note

    def delete_note(self, user_id: str, note_id: int) -> None:
        note = self._get_owned(user_id, note_id)
        self.db.delete(note)
        self.db.commit()
        logger.info("Note deleted", extra={"user_id": user_id, "note_id": note_id})

    def stats(self, user_id: str) -> dict:
        total = self.db.query(func.count(Note.id)).filter(Note.user_id == user_id).scalar() or 0
        by_category = dict(
            self.db.query(Note.category, func.count(Note.id))
            .filter(Note.user_id == user_id)
            .group_by(Note.category)
            .all()
        )
        return {"total": total, "by_category": by_category}

    def delete_all_for_user(self, user_id: str) -> int:
        count = self.db.query(Note).filter(Note.user_id == user_id).delete(synchronize_session=False)
        self.db.commit()
        return count
