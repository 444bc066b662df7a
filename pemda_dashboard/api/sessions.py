"""Keycloak session management for the signed-in user."""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from .audit import record_event
from ..core.auth import CurrentUser, require_auth
from ..core.config import settings, Environment
from ..database import get_db
from ..exceptions import PortalException
from ..middleware.request_context import client_ip
from ..models.login_log import LoginAction
from ..services import SessionService
from ..services.keycloak_client import KeycloakClient, get_keycloak

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.get("")
def list_sessions(
    request: Request,
    user: CurrentUser = Depends(require_auth),
    keycloak: KeycloakClient = Depends(get_keycloak),
):
    """Active sessions, flagging the one this request came from.

    In development a single mock session is returned when Keycloak cannot
    be reached, so the page stays usable without a running realm.
    """
    service = SessionService(keycloak)
    try:
        return {"sessions": service.list_sessions(user.id, user.session_id)}
    except PortalException as e:
        if settings.environment != Environment.DEVELOPMENT:
            raise
        logger.warning("Session lookup failed, serving mock data: %s", e.message)
        return SessionService.mock_sessions(user.session_id, client_ip(request))


@router.delete("/{session_id}")
def terminate_session(
    session_id: str,
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_auth),
    keycloak: KeycloakClient = Depends(get_keycloak),
):
    SessionService(keycloak).terminate(user.id, session_id, user.session_id)
    record_event(
        db, request, user.id, LoginAction.SESSION_TERMINATED,
        session_id=user.session_id,
        metadata={"terminatedSessionId": session_id},
    )
    return {"message": "Session terminated successfully"}


@router.post("/terminate-all")
def terminate_all_sessions(
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_auth),
    keycloak: KeycloakClient = Depends(get_keycloak),
):
    """End every session except the current one."""
    count = SessionService(keycloak).terminate_others(user.id, user.session_id)
    record_event(
        db, request, user.id, LoginAction.SESSION_TERMINATED,
        session_id=user.session_id,
        metadata={"terminatedCount": count},
    )
    return {"message": f"Terminated {count} session(s)", "terminatedCount": count}
