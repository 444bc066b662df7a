"""HTTP client for Keycloak's OpenID-Connect endpoints and Admin REST API.

Admin calls authenticate with a service-account token obtained through the
``client_credentials`` grant; the token is cached until shortly before it
expires. OIDC calls (code exchange, refresh, logout, userinfo) act on behalf
of the end user and never carry the admin token.
"""

import logging
import threading
import time
from typing import Any, Callable, Optional

import httpx

from ..core.config import settings
from ..exceptions import ConflictError, ForbiddenError, KeycloakError, NotFoundError

logger = logging.getLogger(__name__)

# Refresh the admin token this many seconds before Keycloak says it expires.
TOKEN_EXPIRY_MARGIN = 30


class KeycloakClient:
    """Synchronous Keycloak client.

    Args:
        base_url: Keycloak root URL, e.g. ``http://localhost:8080``.
        realm: Realm that holds the portal users.
        client_id / client_secret: Client used for the user-facing OIDC flows.
        admin_client_id / admin_client_secret: Service-account client for Admin API calls.
        timeout: Per-request timeout in seconds.
        jwks_cache_seconds: How long ``certs()`` results are reused.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        base_url: str,
        realm: str,
        client_id: str,
        client_secret: str = "",
        admin_client_id: Optional[str] = None,
        admin_client_secret: Optional[str] = None,
        timeout: float = 10.0,
        jwks_cache_seconds: int = 300,
        transport: Optional[httpx.BaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.realm = realm
        self.client_id = client_id
        self.client_secret = client_secret
        self.admin_client_id = admin_client_id or client_id
        self.admin_client_secret = admin_client_secret if admin_client_secret is not None else client_secret
        self.jwks_cache_seconds = jwks_cache_seconds
        self._clock = clock
        self._http = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )
        self._token_lock = threading.Lock()
        self._jwks_lock = threading.Lock()
        self._admin_token: Optional[str] = None
        self._admin_token_expires_at = 0.0
        self._jwks: Optional[dict] = None
        self._jwks_fetched_at = 0.0

    @classmethod
    def from_settings(cls) -> "KeycloakClient":
        return cls(
            base_url=settings.keycloak_url,
            realm=settings.keycloak_realm,
            client_id=settings.keycloak_client_id,
            client_secret=settings.keycloak_client_secret,
            admin_client_id=settings.keycloak_admin_client_id,
            admin_client_secret=settings.keycloak_admin_client_secret,
            timeout=settings.keycloak_timeout,
            jwks_cache_seconds=settings.keycloak_jwks_cache_seconds,
        )

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @property
    def _oidc_path(self) -> str:
        return f"/realms/{self.realm}/protocol/openid-connect"

    @property
    def _admin_path(self) -> str:
        return f"/admin/realms/{self.realm}"

    def _client_form(self) -> dict[str, str]:
        form = {"client_id": self.client_id}
        if self.client_secret:
            form["client_secret"] = self.client_secret
        return form

    def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Keycloak request %s %s failed: %s", method, path, e)
            raise KeycloakError("Keycloak is unreachable") from e

    def _raise_for_status(self, response: httpx.Response, not_found: str) -> None:
        if response.status_code < 400:
            return

        upstream_message = None
        try:
            body = response.json()
            if isinstance(body, dict):
                upstream_message = (
                    body.get("errorMessage") or body.get("error_description") or body.get("error")
                )
        except ValueError:
            pass

        status = response.status_code
        logger.warning(
            "Keycloak responded with an error",
            extra={"upstream_status": status, "path": response.request.url.path},
        )
        if status == 404:
            raise NotFoundError(upstream_message or not_found)
        if status == 409:
            raise ConflictError(upstream_message or "Resource already exists")
        if status in (401, 403):
            raise ForbiddenError(
                "Insufficient permissions for this Keycloak operation"
                + (f": {upstream_message}" if upstream_message else "")
            )
        raise KeycloakError(upstream_message or f"Keycloak returned HTTP {status}", upstream_status=status)

    def _admin(
        self,
        method: str,
        path: str,
        not_found: str = "Resource not found",
        **kwargs: Any,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.get_admin_token()}"}
        response = self._send(method, f"{self._admin_path}{path}", headers=headers, **kwargs)
        if response.status_code == 401:
            # Token revoked or realm keys rotated; next call fetches a new one.
            self._invalidate_admin_token()
        self._raise_for_status(response, not_found)
        return response

    # ------------------------------------------------------------------
    # Admin token
    # ------------------------------------------------------------------

    def get_admin_token(self) -> str:
        """Return a cached service-account token, fetching a new one when stale."""
        with self._token_lock:
            now = self._clock()
            if self._admin_token and now < self._admin_token_expires_at:
                return self._admin_token

            response = self._send(
                "POST",
                f"{self._oidc_path}/token",
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.admin_client_id,
                    "client_secret": self.admin_client_secret,
                },
            )
            if response.status_code != 200:
                logger.error(
                    "Keycloak admin authentication failed",
                    extra={"upstream_status": response.status_code},
                )
                raise KeycloakError(
                    "Keycloak admin authentication failed", upstream_status=response.status_code
                )

            payload = response.json()
            self._admin_token = payload["access_token"]
            expires_in = int(payload.get("expires_in", 60))
            self._admin_token_expires_at = now + max(expires_in - TOKEN_EXPIRY_MARGIN, 0)
            return self._admin_token

    def _invalidate_admin_token(self) -> None:
        with self._token_lock:
            self._admin_token = None
            self._admin_token_expires_at = 0.0

    # ------------------------------------------------------------------
    # Admin API: users
    # ------------------------------------------------------------------

    def list_users(self, search: Optional[str] = None, max: int = 100) -> list[dict]:
        params: dict[str, Any] = {"max": max}
        if search:
            params["search"] = search
        return self._admin("GET", "/users", params=params).json()

    def get_user(self, user_id: str) -> dict:
        return self._admin("GET", f"/users/{user_id}", not_found="User not found").json()

    def update_user(self, user_id: str, data: dict) -> None:
        self._admin("PUT", f"/users/{user_id}", not_found="User not found", json=data)

    def delete_user(self, user_id: str) -> None:
        self._admin("DELETE", f"/users/{user_id}", not_found="User not found")

    def create_user(self, representation: dict) -> Optional[str]:
        """Create a user and return its id.

        Keycloak answers 201 with a ``Location`` header pointing at the new
        user. Some proxies strip it, so fall back to an exact username lookup.
        """
        response = self._admin("POST", "/users", json=representation)
        location = response.headers.get("location")
        if location:
            return location.rstrip("/").rsplit("/", 1)[-1]

        username = representation.get("username")
        matches = self._admin(
            "GET", "/users", params={"username": username, "exact": "true"}
        ).json()
        return matches[0]["id"] if matches else None

    def reset_password(self, user_id: str, value: str, temporary: bool = False) -> None:
        self._admin(
            "PUT",
            f"/users/{user_id}/reset-password",
            not_found="User not found",
            json={"type": "password", "value": value, "temporary": temporary},
        )

    def federated_identities(self, user_id: str) -> list[dict]:
        """Linked identity-provider accounts. Returns [] on any failure."""
        try:
            return self._admin("GET", f"/users/{user_id}/federated-identity").json()
        except (KeycloakError, NotFoundError, ForbiddenError) as e:
            logger.warning("Could not load federated identities for %s: %s", user_id, e.message)
            return []

    def user_sessions(self, user_id: str) -> list[dict]:
        return self._admin("GET", f"/users/{user_id}/sessions", not_found="User not found").json()

    def delete_session(self, session_id: str) -> None:
        self._admin("DELETE", f"/sessions/{session_id}", not_found="Session not found")

    def realm_role_mappings(self, user_id: str) -> list[dict]:
        return self._admin(
            "GET", f"/users/{user_id}/role-mappings/realm", not_found="User not found"
        ).json()

    # ------------------------------------------------------------------
    # OIDC endpoints
    # ------------------------------------------------------------------

    def exchange_code(self, code: str, redirect_uri: Optional[str] = None) -> dict:
        form = {"grant_type": "authorization_code", "code": code, **self._client_form()}
        if redirect_uri:
            form["redirect_uri"] = redirect_uri
        response = self._send("POST", f"{self._oidc_path}/token", data=form)
        self._raise_for_status(response, "Token endpoint not found")
        return response.json()

    def refresh(self, refresh_token: str) -> dict:
        form = {"grant_type": "refresh_token", "refresh_token": refresh_token, **self._client_form()}
        response = self._send("POST", f"{self._oidc_path}/token", data=form)
        self._raise_for_status(response, "Token endpoint not found")
        return response.json()

    def logout(self, refresh_token: str) -> None:
        form = {"refresh_token": refresh_token, **self._client_form()}
        response = self._send("POST", f"{self._oidc_path}/logout", data=form)
        self._raise_for_status(response, "Logout endpoint not found")

    def userinfo(self, access_token: str) -> dict:
        response = self._send(
            "GET",
            f"{self._oidc_path}/userinfo",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        self._raise_for_status(response, "Userinfo endpoint not found")
        return response.json()

    def certs(self, force: bool = False) -> dict:
        """Realm signing keys (JWKS), cached for ``jwks_cache_seconds``."""
        with self._jwks_lock:
            now = self._clock()
            fresh = self._jwks is not None and now - self._jwks_fetched_at < self.jwks_cache_seconds
            if fresh and not force:
                return self._jwks

        response = self._send("GET", f"{self._oidc_path}/certs")
        self._raise_for_status(response, "Realm not found")
        jwks = response.json()

        with self._jwks_lock:
            self._jwks = jwks
            self._jwks_fetched_at = self._clock()
        return jwks

    def close(self) -> None:
        self._http.close()


_client: Optional[KeycloakClient] = None
_client_lock = threading.Lock()


def get_keycloak() -> KeycloakClient:
    """FastAPI dependency returning the process-wide Keycloak client."""
    global _client
    with _client_lock:
        if _client is None:
            _client = KeycloakClient.from_settings()
        return _client


def close_keycloak() -> None:
    global _client
    with _client_lock:
        if _client is not None:
            _client.close()
            _client = None
