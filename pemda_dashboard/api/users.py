"""Basic user directory: /api/users. Admin only."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.auth import CurrentUser, require_admin
from ..database import get_db
from ..schemas.user import UserUpdate
from ..services import UserManagementService
from ..services.keycloak_client import KeycloakClient, get_keycloak

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("")
def search_users(
    search: Optional[str] = Query(None),
    max: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(require_admin),
    keycloak: KeycloakClient = Depends(get_keycloak),
):
    return UserManagementService(keycloak, db).search_users(search, max)


@router.get("/{user_id}")
def get_user(
    user_id: str,
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(require_admin),
    keycloak: KeycloakClient = Depends(get_keycloak),
):
    return UserManagementService(keycloak, db).get_user(user_id)


@router.put("/{user_id}")
def update_user(
    user_id: str,
    body: UserUpdate,
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(require_admin),
    keycloak: KeycloakClient = Depends(get_keycloak),
):
    """Merge the sent fields into the user and return the saved result."""
    user = UserManagementService(keycloak, db).merge_update(user_id, body)
    return {"message": "User updated successfully", "user": user}


@router.get("/{user_id}/roles")
def user_roles(
    user_id: str,
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(require_admin),
    keycloak: KeycloakClient = Depends(get_keycloak),
):
    return {"roles": UserManagementService(keycloak, db).roles(user_id)}
