"""LoginLog model: append-only trail of authentication and account events.

Rows are written by ``login_log_service.log_event`` and never updated.
``error_message`` holds a user-safe description only; tokens and
credentials are never stored.
"""

from enum import Enum

from sqlalchemy import Column, Index, String, Text, Integer, Boolean, DateTime, JSON

from ._time import utcnow
from ..database import Base


class LoginAction(str, Enum):
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    EMAIL_CHANGE = "EMAIL_CHANGE"
    PROFILE_UPDATE = "PROFILE_UPDATE"
    SESSION_TERMINATED = "SESSION_TERMINATED"
    TOKEN_REFRESH = "TOKEN_REFRESH"


class LoginLog(Base):
    """One audit event for one user."""

    __tablename__ = "login_logs"
    __table_args__ = (
        Index("ix_login_logs_user_timestamp", "user_id", "timestamp"),
        Index("ix_login_logs_action", "action"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False)
    action = Column(String(30), nullable=False)
    ip = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    session_id = Column(String(255), nullable=True)
    # "metadata" is reserved on declarative classes.
    event_metadata = Column("metadata", JSON, nullable=True)
    success = Column(Boolean, nullable=False, default=True)
    error_message = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow)
