"""Profile API: the signed-in user's Keycloak account."""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from .audit import record_event
from ..core.auth import CurrentUser, require_auth
from ..database import get_db
from ..exceptions import KeycloakError, ForbiddenError
from ..models.login_log import LoginAction
from ..schemas.user import PasswordChange, ProfileUpdate
from ..services import ProfileService
from ..services.keycloak_client import KeycloakClient, get_keycloak

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/profile", tags=["profile"])


@router.get("")
def get_profile(
    user: CurrentUser = Depends(require_auth),
    keycloak: KeycloakClient = Depends(get_keycloak),
):
    """Account details from Keycloak, or from the token when Keycloak is down."""
    try:
        return ProfileService(keycloak).get_profile(user.id)
    except (KeycloakError, ForbiddenError) as e:
        logger.warning("Profile lookup failed, using token claims: %s", e.message)
        return {
            "id": user.id,
            "username": user.username,
            "email": user.email,
            "firstName": user.first_name,
            "lastName": user.last_name,
            "displayName": user.display_name,
        }


@router.put("")
def update_profile(
    body: ProfileUpdate,
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_auth),
    keycloak: KeycloakClient = Depends(get_keycloak),
):
    changes, email_changed = ProfileService(keycloak).update_profile(user.id, body, user.email)
    action = LoginAction.EMAIL_CHANGE if email_changed else LoginAction.PROFILE_UPDATE
    metadata = {"fields": sorted(changes)}
    if email_changed:
        metadata["previousEmail"] = user.email
    record_event(db, request, user.id, action, session_id=user.session_id, metadata=metadata)
    return {"message": "Profile updated successfully", "updated": changes}


@router.put("/password")
def change_password(
    body: PasswordChange,
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_auth),
    keycloak: KeycloakClient = Depends(get_keycloak),
):
    ProfileService(keycloak).change_password(user.id, body.new_password)
    record_event(
        db, request, user.id, LoginAction.PASSWORD_CHANGE,
        session_id=user.session_id,
        metadata={"username": user.username},
    )
    return {"success": True, "message": "Password updated successfully"}
