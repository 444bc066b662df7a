"""Admin user management: /api/admin/users.

All endpoints require an admin. Deleting a user also deletes their
documents (records and stored files) and notes.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.auth import CurrentUser, require_admin
from ..database import get_db
from ..schemas.user import AdminUserCreate, AdminUserUpdate, PasswordChange
from ..services import UserManagementService
from ..services.keycloak_client import KeycloakClient, get_keycloak
from ..services.object_storage import ObjectStorage, get_storage

router = APIRouter(prefix="/api/admin/users", tags=["admin"])


@router.get("")
def list_users(
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(require_admin),
    keycloak: KeycloakClient = Depends(get_keycloak),
):
    """Every realm user with linked identity providers."""
    return UserManagementService(keycloak, db).list_users()


@router.get("/{user_id}")
def user_details(
    user_id: str,
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(require_admin),
    keycloak: KeycloakClient = Depends(get_keycloak),
):
    return UserManagementService(keycloak, db).user_details(user_id)


@router.post("", status_code=201)
def create_user(
    body: AdminUserCreate,
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(require_admin),
    keycloak: KeycloakClient = Depends(get_keycloak),
):
    """Create a user who must enrol an authenticator app on first login."""
    user = UserManagementService(keycloak, db).create_user(body)
    return {"success": True, "message": "User created successfully", "user": user}


@router.put("/{user_id}")
def update_user(
    user_id: str,
    body: AdminUserUpdate,
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(require_admin),
    keycloak: KeycloakClient = Depends(get_keycloak),
):
    updated = UserManagementService(keycloak, db).update_user(user_id, body)
    return {"success": True, "message": "User updated successfully", "updated": updated}


@router.put("/{user_id}/reset-password")
def reset_password(
    user_id: str,
    body: PasswordChange,
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(require_admin),
    keycloak: KeycloakClient = Depends(get_keycloak),
):
    UserManagementService(keycloak, db).reset_password(user_id, body.new_password)
    return {"success": True, "message": "Password reset successfully", "userId": user_id}


@router.delete("/{user_id}")
def delete_user(
    user_id: str,
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(require_admin),
    keycloak: KeycloakClient = Depends(get_keycloak),
    storage: ObjectStorage = Depends(get_storage),
):
    result = UserManagementService(keycloak, db, storage).delete_user(user_id, admin.id)
    return {
        "success": True,
        "message": "User and all associated data deleted successfully",
        **result,
    }
