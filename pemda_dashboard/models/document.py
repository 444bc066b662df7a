"""Document model: uploaded files and the folders that hold them.

Files and folders share one self-referencing table. A row with
``parent_folder_id`` NULL sits at the user's root. Folder names are unique
per (user, parent); the service layer checks this before insert and rename.
"""

import os

from sqlalchemy import Column, Index, String, Text, Integer, BigInteger, Boolean, DateTime, ForeignKey

from ._time import utcnow
from ..database import Base

FILE = "file"
FOLDER = "folder"


class Document(Base):
    """A stored file or a folder in a user's document tree."""

    __tablename__ = "documents"
    __table_args__ = (
        Index("ix_documents_user_parent", "user_id", "parent_folder_id"),
        Index("ix_documents_user_type", "user_id", "type"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)
    type = Column(String(10), nullable=False, default=FILE)
    parent_folder_id = Column(
        Integer, ForeignKey("documents.id", ondelete="CASCADE"), nullable=True
    )
    original_name = Column(String(255), nullable=False)

    # File-only columns; NULL for folders.
    filename = Column(String(255), nullable=True)
    mime_type = Column(String(100), nullable=True)
    size = Column(BigInteger, nullable=True)
    file_url = Column(Text, nullable=True)

    verified = Column(Boolean, nullable=False, default=False)
    description = Column(String(500), nullable=True, default="")
    uploaded_at = Column(DateTime(timezone=True), default=utcnow)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def is_folder(self) -> bool:
        return self.type == FOLDER

    @property
    def extension(self) -> str:
        return os.path.splitext(self.original_name or "")[1].lower()

    @property
    def readable_size(self):
        from ..services.file_validation import format_bytes

        return None if self.is_folder else format_bytes(self.size)
