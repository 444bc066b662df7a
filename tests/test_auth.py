"""Tests for token verification, admin detection and the /api/auth routes."""

import time

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk, jwt

from pemda_dashboard.core.auth import CurrentUser, verify_token
from pemda_dashboard.exceptions import AuthenticationError
from pemda_dashboard.models.login_log import LoginLog
from tests.fake_keycloak import GOOD_CODE, GOOD_REFRESH, USER_ACCESS_TOKEN


def _rsa_pair():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    public_pem = key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem, public_pem


@pytest.fixture(scope="module")
def signing_key():
    private_pem, public_pem = _rsa_pair()
    public_jwk = jwk.construct(public_pem, "RS256").to_dict()
    public_jwk["kid"] = "realm-key-1"
    public_jwk["use"] = "sig"
    return {"private": private_pem, "jwks": {"keys": [public_jwk]}, "kid": "realm-key-1"}


def _claims(**overrides) -> dict:
    now = int(time.time())
    claims = {
        "sub": "user-alice",
        "preferred_username": "alice",
        "email": "alice@pemda.test",
        "given_name": "Alice",
        "family_name": "Wijaya",
        "realm_access": {"roles": ["offline_access", "uma_authorization"]},
        "session_state": "sess-alice-1",
        "iat": now,
        "exp": now + 300,
    }
    claims.update(overrides)
    return claims


def _sign(signing_key, kid=None, **claims) -> str:
    return jwt.encode(
        _claims(**claims),
        signing_key["private"],
        algorithm="RS256",
        headers={"kid": kid or signing_key["kid"]},
    )


class TestVerifyToken:

    def test_valid_token(self, signing_key):
        claims = verify_token(_sign(signing_key), signing_key["jwks"])
        assert claims["sub"] == "user-alice"

    def test_expired_token(self, signing_key):
        token = _sign(signing_key, exp=int(time.time()) - 60)
        with pytest.raises(AuthenticationError) as exc:
            verify_token(token, signing_key["jwks"])
        assert exc.value.message == "Token expired"

    def test_unknown_kid(self, signing_key):
        token = _sign(signing_key, kid="rotated-away")
        with pytest.raises(AuthenticationError) as exc:
            verify_token(token, signing_key["jwks"])
        assert exc.value.message == "Invalid token signature"

    def test_signed_by_other_key(self, signing_key):
        other_private, _ = _rsa_pair()
        token = jwt.encode(_claims(), other_private, algorithm="RS256", headers={"kid": signing_key["kid"]})
        with pytest.raises(AuthenticationError) as exc:
            verify_token(token, signing_key["jwks"])
        assert exc.value.message == "Invalid token"

    def test_garbage(self, signing_key):
        with pytest.raises(AuthenticationError):
            verify_token("not-a-jwt", signing_key["jwks"])

    def test_issuer_checked_when_given(self, signing_key):
        token = _sign(signing_key, iss="http://evil.test/realms/Jogja-SSO")
        with pytest.raises(AuthenticationError):
            verify_token(token, signing_key["jwks"], issuer="http://keycloak.test/realms/Jogja-SSO")


class TestCurrentUser:

    def test_from_claims(self):
        user = CurrentUser.from_claims(_claims(realm_access={"roles": ["Manage-Users"]}))
        assert user.id == "user-alice"
        assert user.display_name == "Alice Wijaya"
        assert user.session_id == "sess-alice-1"
        assert user.is_admin is True

    def test_sid_used_when_no_session_state(self):
        claims = _claims(sid="sid-9")
        del claims["session_state"]
        assert CurrentUser.from_claims(claims).session_id == "sid-9"

    def test_plain_user_is_not_admin(self):
        assert CurrentUser.from_claims(_claims()).is_admin is False

    def test_configured_admin_email(self):
        assert CurrentUser(id="x", email="chief@pemda.test").is_admin is True

    def test_display_name_falls_back_to_username(self):
        assert CurrentUser(id="x", username="ops").display_name == "ops"


class TestBearerAuthentication:

    def test_missing_token(self, token_client):
        resp = token_client.get("/api/notes")
        assert resp.status_code == 401
        assert resp.json()["message"] == "No token provided"

    def test_valid_token(self, token_client, fake_keycloak, signing_key):
        fake_keycloak.jwks = signing_key["jwks"]
        headers = {"Authorization": f"Bearer {_sign(signing_key)}"}
        resp = token_client.get("/api/auth/me", headers=headers)
        assert resp.status_code == 200
        user = resp.json()["user"]
        assert user["id"] == "user-alice"
        assert user["sessionId"] == "sess-alice-1"

    def test_expired_token(self, token_client, fake_keycloak, signing_key):
        fake_keycloak.jwks = signing_key["jwks"]
        token = _sign(signing_key, exp=int(time.time()) - 5)
        resp = token_client.get("/api/notes", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Token expired"

    def test_refetches_keys_after_rotation(self, token_client, fake_keycloak, keycloak, signing_key):
        # Prime the cache with an empty key set, then publish the new key.
        keycloak.certs()
        fake_keycloak.jwks = signing_key["jwks"]
        headers = {"Authorization": f"Bearer {_sign(signing_key)}"}
        assert token_client.get("/api/notes", headers=headers).status_code == 200
        assert fake_keycloak.paths("GET").count("/realms/Jogja-SSO/protocol/openid-connect/certs") == 2

    def test_admin_route_rejects_plain_user(self, token_client, fake_keycloak, signing_key):
        fake_keycloak.jwks = signing_key["jwks"]
        headers = {"Authorization": f"Bearer {_sign(signing_key)}"}
        assert token_client.get("/api/admin/users", headers=headers).status_code == 403

    def test_admin_route_accepts_admin_role(self, token_client, fake_keycloak, signing_key):
        fake_keycloak.jwks = signing_key["jwks"]
        token = _sign(signing_key, sub="user-admin", realm_access={"roles": ["admin"]})
        resp = token_client.get("/api/admin/users", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200


class TestLogin:

    def test_login_success(self, client, db):
        resp = client.post(
            "/api/auth/login",
            json={"code": GOOD_CODE, "redirectUri": "http://localhost:3000/callback"},
            headers={"User-Agent": "Mozilla/5.0 (Windows NT 10.0) Chrome/120.0 Safari/537.36"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["user"]["username"] == "alice"
        assert data["user"]["firstName"] == "Alice"
        assert data["tokens"]["accessToken"] == USER_ACCESS_TOKEN
        assert data["tokens"]["refreshToken"] == GOOD_REFRESH

        entry = db.query(LoginLog).one()
        assert entry.action == "LOGIN_SUCCESS"
        assert entry.session_id == "sess-login-1"
        assert entry.event_metadata == {
            "username": "alice", "browser": "Chrome", "os": "Windows", "device": "Desktop",
        }

    def test_code_required(self, client):
        resp = client.post("/api/auth/login", json={})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Authorization code required"

    def test_rejected_code(self, client, db):
        resp = client.post("/api/auth/login", json={"code": "stale"})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Authentication failed"
        assert db.query(LoginLog).count() == 0

    def test_userinfo_failure_is_logged(self, client, fake_keycloak, db):
        fake_keycloak.fail_userinfo = True
        fake_keycloak.login_access_token = jwt.encode(
            {"sub": "user-alice", "preferred_username": "alice", "sid": "sess-x"}, "k", algorithm="HS256"
        )
        resp = client.post("/api/auth/login", json={"code": GOOD_CODE})
        assert resp.status_code == 401

        entry = db.query(LoginLog).one()
        assert entry.action == "LOGIN_FAILED"
        assert entry.success is False
        assert entry.session_id == "sess-x"


class TestRefreshLogoutVerify:

    def test_refresh(self, client, fake_keycloak, db):
        fake_keycloak.refreshed_access_token = jwt.encode(
            {"sub": "user-alice", "session_state": "sess-alice-1"}, "k", algorithm="HS256"
        )
        resp = client.post("/api/auth/refresh", json={"refreshToken": GOOD_REFRESH})
        assert resp.status_code == 200
        assert resp.json()["access_token"] == fake_keycloak.refreshed_access_token
        assert db.query(LoginLog).one().action == "TOKEN_REFRESH"

    def test_refresh_requires_token(self, client):
        resp = client.post("/api/auth/refresh", json={})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Refresh token required"

    def test_refresh_rejected(self, client):
        resp = client.post("/api/auth/refresh", json={"refreshToken": "expired"})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Token refresh failed"

    def test_logout_always_succeeds(self, client, db):
        resp = client.post("/api/auth/logout", json={"refreshToken": "already-gone"})
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Logged out successfully"}
        assert db.query(LoginLog).one().action == "LOGOUT"

    def test_logout_without_body(self, client, fake_keycloak):
        assert client.post("/api/auth/logout").status_code == 200
        assert fake_keycloak.paths("POST") == []

    def test_verify(self, client):
        resp = client.get("/api/auth/verify", headers={"Authorization": f"Bearer {USER_ACCESS_TOKEN}"})
        assert resp.status_code == 200
        assert resp.json()["valid"] is True

    def test_verify_rejects_bad_token(self, client):
        resp = client.get("/api/auth/verify", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401
        assert resp.json() == {"valid": False, "error": "Invalid token"}

    def test_verify_without_token(self, client):
        resp = client.get("/api/auth/verify")
        assert resp.status_code == 401
        assert resp.json()["error"] == "No token provided"
