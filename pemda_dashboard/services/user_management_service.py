"""Admin user management: Keycloak users enriched with local data.

Hard deletion removes the user's documents (rows and stored objects) and
notes before removing the Keycloak account, so nothing is left pointing at
a user that no longer exists.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from .document_service import DocumentService
from .keycloak_client import KeycloakClient
from .note_service import NoteService
from .object_storage import ObjectStorage
from .profile_service import check_password, display_name, is_valid_email, trimmed_changes
from ..exceptions import ConflictError, KeycloakError, PortalException, ValidationError
from ..models.document import Document
from ..models.note import Note
from ..schemas.user import AdminUserCreate, AdminUserUpdate, UserUpdate

logger = logging.getLogger(__name__)

MAX_LISTED_USERS = 1000


def basic_user(user: dict) -> dict:
    return {
        "id": user.get("id"),
        "username": user.get("username"),
        "email": user.get("email"),
        "firstName": user.get("firstName") or "",
        "lastName": user.get("lastName") or "",
        "enabled": user.get("enabled"),
        "emailVerified": user.get("emailVerified"),
        "createdTimestamp": user.get("createdTimestamp"),
    }


class UserManagementService:
    """Operations behind /api/admin/users and /api/users."""

    def __init__(self, keycloak: KeycloakClient, db: Session, storage: Optional[ObjectStorage] = None):
        self.keycloak = keycloak
        self.db = db
        self.storage = storage

    def _enrich(self, user: dict) -> dict:
        identities = self.keycloak.federated_identities(user["id"])
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
            "identityProvider": identities[0].get("identityProvider") if identities else "keycloak",
            "linkedAccounts": [
                {
                    "provider": fi.get("identityProvider"),
                    "userId": fi.get("userId"),
                    "userName": fi.get("userName"),
                }
                for fi in identities
            ],
        }

    # ------------------------------------------------------------------
    # /api/admin/users
    # ------------------------------------------------------------------

    def list_users(self) -> dict:
        users = [self._enrich(u) for u in self.keycloak.list_users(max=MAX_LISTED_USERS)]
        return {"users": users, "total": len(users)}

    def user_details(self, user_id: str) -> dict:
        details = self._enrich(self.keycloak.get_user(user_id))

        try:
            active_sessions = len(self.keycloak.user_sessions(user_id))
        except PortalException as e:
            logger.warning("Could not fetch sessions for %s: %s", user_id, e.message)
            active_sessions = 0

        details["activeSessions"] = active_sessions
        details["stats"] = {
            "documents": self.db.query(Document).filter(Document.user_id == user_id).count(),
            "notes": self.db.query(Note).filter(Note.user_id == user_id).count(),
        }
        return details

    def create_user(self, data: AdminUserCreate) -> dict:
        if not data.username or not data.email or not data.password:
            raise ValidationError("Username, email and password are required")
        if not is_valid_email(data.email.strip()):
            raise ValidationError("Invalid email format", field="email")
        check_password(data.password, "Password must be at least 8 characters long")

        representation = {
            "username": data.username.strip(),
            "email": data.email.strip(),
            "firstName": (data.first_name or "").strip(),
            "lastName": (data.last_name or "").strip(),
            "enabled": data.enabled,
            "emailVerified": True,
            "requiredActions": ["CONFIGURE_TOTP"],
        }
        try:
            new_id = self.keycloak.create_user(representation)
        except ConflictError as e:
            raise ConflictError("Username or email already in use") from e

        if not new_id:
            raise KeycloakError("User created but could not retrieve ID")

        self.keycloak.reset_password(new_id, data.password, temporary=False)
        logger.info("User created", extra={"new_user_id": new_id, "username": representation["username"]})

        return {
            "id": new_id,
            "username": representation["username"],
            "email": representation["email"],
            "firstName": representation["firstName"],
            "lastName": representation["lastName"],
            "enabled": representation["enabled"],
        }

    def update_user(self, user_id: str, data: AdminUserUpdate) -> dict:
        if data.email and not is_valid_email(data.email.strip()):
            raise ValidationError("Invalid email format", field="email")
        changes = trimmed_changes(data, ("firstName", "lastName", "email", "enabled"))
        try:
            self.keycloak.update_user(user_id, changes)
        except ConflictError as e:
            raise ConflictError("Email already in use") from e
        return changes

    def reset_password(self, user_id: str, new_password: Optional[str]) -> None:
        password = check_password(new_password, "Password must be at least 8 characters long")
        self.keycloak.reset_password(user_id, password, temporary=False)
        logger.info("Password reset by admin", extra={"target_user_id": user_id})

    def delete_user(self, user_id: str, acting_user_id: str) -> dict:
        if user_id == acting_user_id:
            raise ValidationError("You cannot delete your own account")

        username = "unknown"
        try:
            username = self.keycloak.get_user(user_id).get("username") or username
        except PortalException as e:
            logger.warning("Could not fetch user %s before deletion: %s", user_id, e.message)

        deleted_documents = DocumentService(self.db, self.storage).delete_all_for_user(user_id)
        deleted_notes = NoteService(self.db).delete_all_for_user(user_id)

        self.keycloak.delete_user(user_id)
        logger.info(
            "User hard-deleted",
            extra={
                "target_user_id": user_id,
                "acting_user_id": acting_user_id,
                "documents": deleted_documents,
                "notes": deleted_notes,
            },
        )
        return {
            "deletedUser": {"id": user_id, "username": username},
            "deletedData": {"documents": deleted_documents, "notes": deleted_notes},
        }

    # ------------------------------------------------------------------
    # /api/users
    # ------------------------------------------------------------------

    def search_users(self, search: Optional[str], max_results: int) -> dict:
        users = [basic_user(u) for u in self.keycloak.list_users(search=search, max=max_results)]
        return {"users": users, "total": len(users)}

    def get_user(self, user_id: str) -> dict:
        return basic_user(self.keycloak.get_user(user_id))

    def merge_update(self, user_id: str, data: UserUpdate) -> dict:
        """Overlay the sent fields on the current representation and save it."""
        existing = self.keycloak.get_user(user_id)
        sent = data.model_dump(exclude_unset=True, by_alias=True)
        merged = {
            key: sent[key] if sent.get(key) is not None else existing.get(key)
            for key in ("firstName", "lastName", "email", "enabled", "emailVerified")
        }
        self.keycloak.update_user(user_id, merged)
        updated = self.keycloak.get_user(user_id)
        return {
            "id": updated.get("id"),
            "username": updated.get("username"),
            "email": updated.get("email"),
            "firstName": updated.get("firstName"),
            "lastName": updated.get("lastName"),
            "enabled": updated.get("enabled"),
            "emailVerified": updated.get("emailVerified"),
        }

    def roles(self, user_id: str) -> list[dict]:
        return [
            {"id": r.get("id"), "name": r.get("name"), "description": r.get("description")}
            for r in self.keycloak.realm_role_mappings(user_id)
        ]
