"""Pydantic schemas for API validation."""

from .common import CamelModel, Pagination, MessageResponse
from .document import (
    DocumentItem,
    DocumentListResponse,
    DocumentStats,
    FolderContents,
    FolderCreate,
    RenameRequest,
)
from .note import NoteCreate, NoteUpdate, NoteResponse, NoteListResponse, NoteStats
from .login_log import LoginLogResponse, LoginLogListResponse, LoginLogStats

__all__ = [
    "CamelModel",
    "Pagination",
    "MessageResponse",
    "DocumentItem",
    "DocumentListResponse",
    "DocumentStats",
    "FolderContents",
    "FolderCreate",
    "RenameRequest",
    "NoteCreate",
    "NoteUpdate",
    "NoteResponse",
    "NoteListResponse",
    "NoteStats",
    "LoginLogResponse",
    "LoginLogListResponse",
    "LoginLogStats",
]
