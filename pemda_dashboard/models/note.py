"""Note model: flat per-user notes with a category and free-form tags."""

from sqlalchemy import Column, Index, String, Text, Integer, Boolean, DateTime, JSON

from ._time import utcnow
from ..database import Base

NOTE_CATEGORIES = ("Personal", "Work", "Important", "Ideas", "Other")
DEFAULT_CATEGORY = "Other"

MAX_TITLE_LENGTH = 200
MAX_CONTENT_LENGTH = 50000


class Note(Base):
    """A user's note."""

    __tablename__ = "notes"
    __table_args__ = (
        Index("ix_notes_user_category", "user_id", "category"),
        Index("ix_notes_user_pinned", "user_id", "is_pinned"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)
    title = Column(String(MAX_TITLE_LENGTH), nullable=False)
    content = Column(Text, nullable=False)
    category = Column(String(20), nullable=False, default=DEFAULT_CATEGORY)
    tags = Column(JSON, nullable=False, default=list)
    is_pinned = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow)
