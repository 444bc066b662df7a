"""Authentication module: Keycloak token verification and FastAPI dependencies.

Public interface:
    ``require_auth``  - returns CurrentUser or raises 401.
    ``optional_auth`` - returns CurrentUser or None, never raises for bad tokens.
    ``require_admin`` - returns CurrentUser, raises 403 if not an admin.

Bearer tokens are RS256 JWTs issued by the Keycloak realm and are verified
against the realm's published signing keys. When ``settings.auth_enabled``
is False every dependency returns a local development admin so the SPA can
be run without a Keycloak instance.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from .config import settings
from ..exceptions import AuthenticationError, ForbiddenError, KeycloakError
from ..services.keycloak_client import KeycloakClient, get_keycloak

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


class UnknownSigningKeyError(AuthenticationError):
    """Token was signed with a key id the cached JWKS does not contain."""

    def __init__(self):
        super().__init__("Invalid token signature")


@dataclass(frozen=True)
class CurrentUser:
    """Identity of the caller, taken from verified token claims."""

    id: str
    username: str = ""
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    roles: tuple = field(default_factory=tuple)
    session_id: Optional[str] = None

    @classmethod
    def from_claims(cls, claims: dict) -> "CurrentUser":
        realm_access = claims.get("realm_access") or {}
        return cls(
            id=claims.get("sub", ""),
            username=claims.get("preferred_username", ""),
            email=claims.get("email", ""),
            first_name=claims.get("given_name", ""),
            last_name=claims.get("family_name", ""),
            roles=tuple(realm_access.get("roles") or ()),
            session_id=claims.get("session_state") or claims.get("sid"),
        )

    @property
    def display_name(self) -> str:
        full = f"{self.first_name} {self.last_name}".strip()
        return full or self.username

    @property
    def is_admin(self) -> bool:
        admin_roles = set(settings.get_admin_roles())
        if any(role.lower() in admin_roles for role in self.roles):
            return True
        return bool(self.email) and self.email.lower() in settings.get_admin_emails()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "roles": list(self.roles),
            "sessionId": self.session_id,
        }


_DEV_USER = CurrentUser(
    id="dev-user",
    username="developer",
    email="developer@localhost",
    first_name="Local",
    last_name="Developer",
    roles=("admin",),
    session_id="dev-session",
)


def verify_token(token: str, jwks: dict, issuer: Optional[str] = None) -> dict:
    """Verify a Keycloak access token and return its claims.

    Checks the RS256 signature against the key whose ``kid`` matches the
    token header, and the ``exp`` claim. ``iss`` is checked only when
    *issuer* is given. The audience is not checked: Keycloak access tokens
    carry ``account`` rather than the SPA client id.

    Raises:
        AuthenticationError: token malformed, expired, or signature invalid.
    """
    try:
        header = jwt.get_unverified_header(token)
    except JWTError as e:
        raise AuthenticationError("Invalid token") from e

    kid = header.get("kid")
    key = next((k for k in jwks.get("keys", []) if k.get("kid") == kid), None)
    if key is None:
        raise UnknownSigningKeyError()

    try:
        return jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            issuer=issuer or None,
            options={"verify_aud": False},
        )
    except ExpiredSignatureError as e:
        raise AuthenticationError("Token expired") from e
    except JWTError as e:
        raise AuthenticationError("Invalid token") from e


def unverified_claims(token: str) -> Optional[dict]:
    """Read claims without verification; used only for audit metadata."""
    try:
        return jwt.get_unverified_claims(token)
    except JWTError:
        return None


def authenticate_token(token: str, keycloak: KeycloakClient) -> CurrentUser:
    """Verify *token* against the realm keys, refetching them once on key rotation."""
    issuer = settings.keycloak_issuer or None
    try:
        claims = verify_token(token, keycloak.certs(), issuer)
    except UnknownSigningKeyError:
        claims = verify_token(token, keycloak.certs(force=True), issuer)

    if not claims.get("sub"):
        raise AuthenticationError("Token has no subject")
    return CurrentUser.from_claims(claims)


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Optional[str]:
    """Raw bearer token, if one was sent."""
    return credentials.credentials if credentials else None


def require_auth(
    token: Optional[str] = Depends(get_bearer_token),
    keycloak: KeycloakClient = Depends(get_keycloak),
) -> CurrentUser:
    """Require a valid Keycloak token and return the caller.

    When ``AUTH_ENABLED=false`` returns the development admin.
    """
    if not settings.auth_enabled:
        return _DEV_USER

    if token is None:
        raise AuthenticationError("No token provided")

    return authenticate_token(token, keycloak)


def optional_auth(
    token: Optional[str] = Depends(get_bearer_token),
    keycloak: KeycloakClient = Depends(get_keycloak),
) -> Optional[CurrentUser]:
    """Like require_auth, but returns None instead of raising."""
    if not settings.auth_enabled:
        return _DEV_USER

    if token is None:
        return None

    try:
        return authenticate_token(token, keycloak)
    except (AuthenticationError, KeycloakError) as e:
        logger.debug("Optional auth ignored token: %s", e.message)
        return None


def require_admin(
    user: CurrentUser = Depends(require_auth),
) -> CurrentUser:
    """Require the caller to hold an admin role. Raises 403 otherwise."""
    if not user.is_admin:
        logger.warning(
            "Admin access denied",
            extra={"user_id": user.id, "roles": list(user.roles)},
        )
        raise ForbiddenError("Admin access required")
    return user
