"""Login log service: records authentication and account events per user.

Entries are append-only. ``log_event`` is called from routes after the
primary action has succeeded (or failed) and must never turn a successful
request into an error, so it swallows and logs its own failures.

Usage:
    login_log_service.log_event(db, user_id="abc", action=LoginAction.LOGOUT,
                                ip=client_ip(request), session_id=user.session_id)
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import sqlalchemy.exc
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.login_log import LoginLog, LoginAction
from ..schemas.common import Pagination
from ..schemas.login_log import LoginLogResponse

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_DAYS = 7


def log_event(
    db: Session,
    user_id: str,
    action: LoginAction,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
    session_id: Optional[str] = None,
    metadata: Optional[dict] = None,
    success: bool = True,
    error_message: Optional[str] = None,
) -> Optional[LoginLog]:
    """Append a login log entry. Never raises."""
    try:
        entry = LoginLog(
            user_id=user_id,
            action=LoginAction(action).value,
            ip=ip,
            user_agent=user_agent,
            session_id=session_id,
            event_metadata=metadata or {},
            success=success,
            error_message=error_message,
        )
        db.add(entry)
        db.commit()
        return entry
    except (sqlalchemy.exc.SQLAlchemyError, ValueError) as e:
        logger.warning("Failed to write login log: %s", e, extra={"user_id": user_id, "action": str(action)})
        db.rollback()
        return None


def user_history(
    db: Session,
    user_id: str,
    page: int = 1,
    limit: int = 20,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    action: Optional[str] = None,
) -> dict:
    """Paginated history for one user, newest first. Date bounds are inclusive."""
    query = db.query(LoginLog).filter(LoginLog.user_id == user_id)
    if from_date:
        query = query.filter(LoginLog.timestamp >= from_date)
    if to_date:
        query = query.filter(LoginLog.timestamp <= to_date)
    if action:
        query = query.filter(LoginLog.action == action)

    total = query.count()
    rows = (
        query.order_by(LoginLog.timestamp.desc(), LoginLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "logs": [LoginLogResponse.model_validate(row) for row in rows],
        "pagination": Pagination.build(page, limit, total),
    }


def stats(db: Session, user_id: str) -> dict:
    """Totals for the dashboard: all entries, last week, and per action."""
    total = db.query(func.count(LoginLog.id)).filter(LoginLog.user_id == user_id).scalar() or 0

    since = datetime.now(timezone.utc) - timedelta(days=RECENT_ACTIVITY_DAYS)
    recent = (
        db.query(func.count(LoginLog.id))
        .filter(LoginLog.user_id == user_id, LoginLog.timestamp >= since)
        .scalar()
        or 0
    )

    by_action = dict(
        db.query(LoginLog.action, func.count(LoginLog.id))
        .filter(LoginLog.user_id == user_id)
        .group_by(LoginLog.action)
        .all()
    )

    return {"total": total, "recent_activity": recent, "by_action": by_action}


def purge_older_than(db: Session, days: int) -> int:
    """Delete entries older than *days*. Returns count of deleted rows.

    Skipped when days <= 0 (keep forever). Never raises.
    """
    if days <= 0:
        return 0

    cutoff = datetime.now(timezone.utc) - timedelta(days=days)
    try:
        count = db.query(LoginLog).filter(LoginLog.timestamp < cutoff).delete(synchronize_session=False)
        db.commit()
        return count
    except sqlalchemy.exc.SQLAlchemyError as e:
        logger.warning("Failed to purge login logs: %s", e)
        db.rollback()
        return 0
