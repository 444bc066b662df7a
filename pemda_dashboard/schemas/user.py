"""Schemas for profile, auth and user-management payloads.

Keycloak user representations are passed through as dicts; only the
request bodies are modelled here.
"""

from typing import Optional

from .common import CamelModel


class LoginRequest(CamelModel):
    code: Optional[str] = None
    redirect_uri: Optional[str] = None


class RefreshRequest(CamelModel):
    refresh_token: Optional[str] = None


class LogoutRequest(CamelModel):
    refresh_token: Optional[str] = None


class ProfileUpdate(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None


class PasswordChange(CamelModel):
    new_password: Optional[str] = None


class AdminUserCreate(CamelModel):
    username: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    password: Optional[str] = None
    enabled: bool = True


class AdminUserUpdate(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    enabled: Optional[bool] = None


class UserUpdate(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    enabled: Optional[bool] = None
    email_verified: Optional[bool] = None
