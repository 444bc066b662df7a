"""Helper for writing login log entries from route handlers."""

from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session

from ..middleware.request_context import client_ip
from ..models.login_log import LoginAction
from ..services import login_log_service


def record_event(
    db: Session,
    request: Request,
    user_id: str,
    action: LoginAction,
    session_id: Optional[str] = None,
    metadata: Optional[dict] = None,
    success: bool = True,
    error_message: Optional[str] = None,
) -> None:
    """Log *action* with the caller's IP and user agent. Never raises."""
    login_log_service.log_event(
        db,
        user_id=user_id,
        action=action,
        ip=client_ip(request),
        user_agent=request.headers.get("user-agent", "Unknown"),
        session_id=session_id,
        metadata=metadata,
        success=success,
        error_message=error_message,
    )
