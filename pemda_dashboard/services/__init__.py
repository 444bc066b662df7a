"""Business logic services."""

from .document_service import DocumentService
from .note_service import NoteService
from .session_service import SessionService
from .profile_service import ProfileService
from .user_management_service import UserManagementService

__all__ = [
    "DocumentService",
    "NoteService",
    "SessionService",
    "ProfileService",
    "UserManagementService",
]
