"""Authentication endpoints backed by Keycloak's OpenID-Connect flows.

    POST /api/auth/login    - exchange an authorization code for tokens
    GET  /api/auth/verify   - check a bearer token with Keycloak userinfo
    POST /api/auth/refresh  - refresh an access token
    POST /api/auth/logout   - end the Keycloak session (always succeeds)
    GET  /api/auth/me       - claims of the current token
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .audit import record_event
from ..core.auth import CurrentUser, get_bearer_token, optional_auth, require_auth, unverified_claims
from ..database import get_db
from ..exceptions import AuthenticationError, KeycloakError, PortalException, ValidationError
from ..models.login_log import LoginAction
from ..schemas.user import LoginRequest, LogoutRequest, RefreshRequest
from ..services.client_info import describe_user_agent
from ..services.keycloak_client import KeycloakClient, get_keycloak

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _rejected_by_keycloak(exc: PortalException) -> bool:
    """True when Keycloak answered and said no, False when it was unreachable."""
    if isinstance(exc, KeycloakError):
        return exc.details.get("upstream_status") is not None
    return True


@router.post("/login")
def login(
    body: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    keycloak: KeycloakClient = Depends(get_keycloak),
):
    """Complete the authorization-code flow started by the SPA."""
    if not body.code:
        raise ValidationError("Authorization code required", field="code")

    try:
        tokens = keycloak.exchange_code(body.code, body.redirect_uri)
    except PortalException as e:
        if not _rejected_by_keycloak(e):
            raise
        logger.warning("Authorization code exchange failed: %s", e.message)
        raise AuthenticationError("Authentication failed") from e

    access_token = tokens.get("access_token", "")
    try:
        info = keycloak.userinfo(access_token)
    except PortalException as e:
        claims = unverified_claims(access_token) or {}
        if claims.get("sub"):
            record_event(
                db, request, claims["sub"], LoginAction.LOGIN_FAILED,
                session_id=claims.get("session_state") or claims.get("sid"),
                metadata={"username": claims.get("preferred_username")},
                success=False,
                error_message="Could not load user information",
            )
        raise AuthenticationError("Authentication failed") from e

    claims = unverified_claims(access_token) or {}
    user_agent = request.headers.get("user-agent")
    record_event(
        db, request, info["sub"], LoginAction.LOGIN_SUCCESS,
        session_id=tokens.get("session_state") or claims.get("session_state") or claims.get("sid"),
        metadata={"username": info.get("preferred_username"), **describe_user_agent(user_agent)},
    )
    logger.info("Login succeeded", extra={"user_id": info["sub"]})

    return {
        "success": True,
        "user": {
            "id": info.get("sub"),
            "username": info.get("preferred_username"),
            "email": info.get("email"),
            "firstName": info.get("given_name"),
            "lastName": info.get("family_name"),
        },
        "tokens": {
            "accessToken": access_token,
            "refreshToken": tokens.get("refresh_token"),
            "idToken": tokens.get("id_token"),
        },
    }


@router.get("/verify")
def verify(
    token: Optional[str] = Depends(get_bearer_token),
    keycloak: KeycloakClient = Depends(get_keycloak),
):
    """Ask Keycloak whether the bearer token is still valid."""
    if not token:
        return JSONResponse(status_code=401, content={"valid": False, "error": "No token provided"})
    try:
        info = keycloak.userinfo(token)
    except PortalException:
        return JSONResponse(status_code=401, content={"valid": False, "error": "Invalid token"})
    return {"valid": True, "user": info}


@router.post("/refresh")
def refresh(
    body: RefreshRequest,
    request: Request,
    db: Session = Depends(get_db),
    keycloak: KeycloakClient = Depends(get_keycloak),
):
    if not body.refresh_token:
        raise ValidationError("Refresh token required", field="refresh_token")

    try:
        tokens = keycloak.refresh(body.refresh_token)
    except PortalException as e:
        if not _rejected_by_keycloak(e):
            raise
        raise AuthenticationError("Token refresh failed") from e

    claims = unverified_claims(tokens.get("access_token", "")) or {}
    if claims.get("sub"):
        record_event(
            db, request, claims["sub"], LoginAction.TOKEN_REFRESH,
            session_id=claims.get("session_state") or claims.get("sid"),
        )
    return tokens


@router.post("/logout")
def logout(
    request: Request,
    body: Optional[LogoutRequest] = None,
    db: Session = Depends(get_db),
    user: Optional[CurrentUser] = Depends(optional_auth),
    keycloak: KeycloakClient = Depends(get_keycloak),
):
    """End the Keycloak session. Always reports success to the client."""
    if body and body.refresh_token:
        try:
            keycloak.logout(body.refresh_token)
        except PortalException as e:
            logger.warning("Keycloak logout failed (ignored): %s", e.message)

    if user is not None:
        record_event(db, request, user.id, LoginAction.LOGOUT, session_id=user.session_id)

    return {"success": True, "message": "Logged out successfully"}


@router.get("/me")
def me(user: CurrentUser = Depends(require_auth)):
    return {"user": user.to_dict()}
