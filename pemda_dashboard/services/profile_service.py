"""Self-service profile and password management through the Keycloak Admin API."""

import logging
import re
from typing import Optional

from .keycloak_client import KeycloakClient
from ..exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from ..schemas.user import ProfileUpdate

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


def display_name(first_name: Optional[str], last_name: Optional[str], username: Optional[str]) -> str:
    if first_name and last_name:
        return f"{first_name} {last_name}"
    return username or ""


def check_password(password: Optional[str], message: str) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(message, field="newPassword")
    return password


def trimmed_changes(data, fields: tuple) -> dict:
    """camelCase dict of the fields the client actually sent, strings trimmed."""
    sent = data.model_dump(exclude_unset=True, by_alias=True)
    changes = {}
    for name in fields:
        if name in sent and sent[name] is not None:
            value = sent[name]
            changes[name] = value.strip() if isinstance(value, str) else value
    return changes


class ProfileService:
    """Profile reads and updates for the signed-in user."""

    def __init__(self, keycloak: KeycloakClient):
        self.keycloak = keycloak

    def get_profile(self, user_id: str) -> dict:
        user = self.keycloak.get_user(user_id)
        return {
            "id": user.get("id"),
            "username": user.get("username"),
            "email": user.get("email"),
            "emailVerified": user.get("emailVerified"),
            "firstName": user.get("firstName"),
            "lastName": user.get("lastName"),
            "displayName": display_name(user.get("firstName"), user.get("lastName"), user.get("username")),
            "enabled": user.get("enabled"),
            "createdTimestamp": user.get("createdTimestamp"),
        }

    def update_profile(self, user_id: str, data: ProfileUpdate, current_email: Optional[str]) -> tuple[dict, bool]:
        """Forward the changed fields. Returns ``(changes, email_changed)``."""
        if data.email and not is_valid_email(data.email.strip()):
            raise ValidationError("Invalid email format", field="email")

        changes = trimmed_changes(data, ("firstName", "lastName", "email"))
        try:
            self.keycloak.update_user(user_id, changes)
        except ConflictError as e:
            raise ConflictError("Email already in use") from e

        email_changed = "email" in changes and (changes["email"] or "").lower() != (current_email or "").lower()
        return changes, email_changed

    def change_password(self, user_id: str, new_password: Optional[str]) -> None:
        password = check_password(new_password, "New password must be at least 8 characters long")
        try:
            self.keycloak.reset_password(user_id, password, temporary=False)
        except NotFoundError as e:
            raise NotFoundError("User account not found in Keycloak", resource_id=user_id) from e
        except ForbiddenError as e:
            raise ForbiddenError("Insufficient permissions to update password") from e
        logger.info("Password changed", extra={"user_id": user_id})
