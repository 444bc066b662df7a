"""Keycloak session listing and termination for the signed-in user."""

import logging
from datetime import datetime, timezone
from typing import Optional

from .client_info import describe_location, LOCAL_LOCATION
from .keycloak_client import KeycloakClient
from ..exceptions import NotFoundError, PortalException, ValidationError

logger = logging.getLogger(__name__)

DEV_MOCK_NOTE = "Development mode - mock data"


def _from_epoch_ms(value) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


class SessionService:
    """Wraps the Admin API session endpoints for one user at a time."""

    def __init__(self, keycloak: KeycloakClient):
        self.keycloak = keycloak

    def list_sessions(self, user_id: str, current_session_id: Optional[str]) -> list[dict]:
        sessions = []
        for raw in self.keycloak.user_sessions(user_id):
            ip = raw.get("ipAddress") or ""
            sessions.append({
                "id": raw.get("id"),
                "ipAddress": ip,
                "location": describe_location(ip),
                "start": _from_epoch_ms(raw.get("start")),
                "lastAccess": _from_epoch_ms(raw.get("lastAccess")),
                "clients": raw.get("clients") or {},
                "current": raw.get("id") == current_session_id,
            })
        return sessions

    @staticmethod
    def mock_sessions(current_session_id: Optional[str], ip: Optional[str]) -> dict:
        """Stand-in payload used in development when Keycloak is unavailable."""
        now = datetime.now(timezone.utc)
        return {
            "sessions": [{
                "id": current_session_id or "dev-session-001",
                "ipAddress": ip or "127.0.0.1",
                "location": LOCAL_LOCATION,
                "start": now,
                "lastAccess": now,
                "clients": {"pemda-dashboard": "active"},
                "current": True,
            }],
            "note": DEV_MOCK_NOTE,
        }

    def terminate(self, user_id: str, session_id: str, current_session_id: Optional[str]) -> None:
        """End one of the user's other sessions.

        Only sessions that belong to *user_id* can be ended here; anything
        else is reported as not found.
        """
        if session_id == current_session_id:
            raise ValidationError("Cannot terminate current session. Use logout instead.")

        owned = {s.get("id") for s in self.keycloak.user_sessions(user_id)}
        if session_id not in owned:
            raise NotFoundError("Session not found", resource_id=session_id)

        self.keycloak.delete_session(session_id)
        logger.info("Session terminated", extra={"user_id": user_id, "session_id": session_id})

    def terminate_others(self, user_id: str, current_session_id: Optional[str]) -> int:
        """End every session except the current one. Returns how many ended."""
        terminated = 0
        for session in self.keycloak.user_sessions(user_id):
            sid = session.get("id")
            if not sid or sid == current_session_id:
                continue
            try:
                self.keycloak.delete_session(sid)
                terminated += 1
            except PortalException as e:
                logger.warning("Failed to terminate session %s: %s", sid, e.message)
        return terminated
