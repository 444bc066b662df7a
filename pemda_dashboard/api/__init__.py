"""API routes."""

from .auth_routes import router as auth_router
from .documents import router as documents_router
from .notes import router as notes_router
from .logs import router as logs_router
from .sessions import router as sessions_router
from .profile import router as profile_router
from .admin_users import router as admin_users_router
from .users import router as users_router

__all__ = [
    "auth_router",
    "documents_router",
    "notes_router",
    "logs_router",
    "sessions_router",
    "profile_router",
    "admin_users_router",
    "users_router",
]
