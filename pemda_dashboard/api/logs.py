"""Login log API: the signed-in user's own audit trail."""

from datetime import datetime, time, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.auth import CurrentUser, require_auth
from ..database import get_db
from ..exceptions import ValidationError
from ..models.login_log import LoginAction
from ..schemas.login_log import LoginLogListResponse, LoginLogStats
from ..services import login_log_service

router = APIRouter(prefix="/api/logs", tags=["logs"])


def _parse_bound(value: Optional[str], field: str, end_of_day: bool = False) -> Optional[datetime]:
    """Parse an ISO date or datetime into an aware UTC datetime. Naive input is UTC.

    A bare date as the upper bound covers that whole day.
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"Invalid date: {value}", field=field)

    if len(text) == 10 and end_of_day:
        parsed = datetime.combine(parsed.date(), time.max)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@router.get("", response_model=LoginLogListResponse)
def list_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    from_date: Optional[str] = Query(None, alias="fromDate"),
    to_date: Optional[str] = Query(None, alias="toDate"),
    action: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_auth),
):
    """Paginated login history, newest first."""
    if action and action not in LoginAction.__members__:
        raise ValidationError(f"Unknown action: {action}", field="action")

    return login_log_service.user_history(
        db,
        user.id,
        page=page,
        limit=limit,
        from_date=_parse_bound(from_date, "fromDate"),
        to_date=_parse_bound(to_date, "toDate", end_of_day=True),
        action=action,
    )


@router.get("/stats", response_model=LoginLogStats)
def log_stats(
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_auth),
):
    return login_log_service.stats(db, user.id)
