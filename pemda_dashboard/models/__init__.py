"""Database models."""

from .document import Document
from .note import Note, NOTE_CATEGORIES
from .login_log import LoginLog, LoginAction

__all__ = ["Document", "Note", "NOTE_CATEGORIES", "LoginLog", "LoginAction"]
