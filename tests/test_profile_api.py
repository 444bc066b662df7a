"""Tests for /api/profile."""

from pemda_dashboard.models.login_log import LoginLog


class TestGetProfile:

    def test_profile_from_keycloak(self, client):
        resp = client.get("/api/profile")
        assert resp.status_code == 200
        data = resp.json()
        assert data["id"] == "user-alice"
        assert data["username"] == "alice"
        assert data["displayName"] == "Alice Wijaya"
        assert data["emailVerified"] is True

    def test_falls_back_to_token_claims(self, client, fake_keycloak):
        fake_keycloak.fail_admin_token = True
        resp = client.get("/api/profile")
        assert resp.status_code == 200
        data = resp.json()
        assert data["email"] == "alice@pemda.test"
        assert data["displayName"] == "Alice Wijaya"


class TestUpdateProfile:

    def test_update_names(self, client, fake_keycloak, db):
        resp = client.put("/api/profile", json={"firstName": "  Alicia ", "lastName": "W."})
        assert resp.status_code == 200
        data = resp.json()
        assert data["message"] == "Profile updated successfully"
        assert data["updated"] == {"firstName": "Alicia", "lastName": "W."}
        assert fake_keycloak.users["user-alice"]["firstName"] == "Alicia"

        entry = db.query(LoginLog).one()
        assert entry.action == "PROFILE_UPDATE"
        assert entry.event_metadata == {"fields": ["firstName", "lastName"]}

    def test_email_change_is_logged(self, client, db):
        resp = client.put("/api/profile", json={"email": "alice.new@pemda.test"})
        assert resp.status_code == 200
        entry = db.query(LoginLog).one()
        assert entry.action == "EMAIL_CHANGE"
        assert entry.event_metadata["previousEmail"] == "alice@pemda.test"

    def test_invalid_email(self, client):
        resp = client.put("/api/profile", json={"email": "bukan-email"})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid email format"

    def test_email_taken(self, client):
        resp = client.put("/api/profile", json={"email": "bob@pemda.test"})
        assert resp.status_code == 409
        assert resp.json()["message"] == "Email already in use"


class TestChangePassword:

    def test_change_password(self, client, fake_keycloak, db):
        resp = client.put("/api/profile/password", json={"newPassword": "rahasia-baru-123"})
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Password updated successfully"}
        assert fake_keycloak.passwords["user-alice"] == "rahasia-baru-123"
        assert db.query(LoginLog).one().action == "PASSWORD_CHANGE"

    def test_password_too_short(self, client, fake_keycloak):
        resp = client.put("/api/profile/password", json={"newPassword": "pendek"})
        assert resp.status_code == 400
        assert resp.json()["message"] == "New password must be at least 8 characters long"
        assert fake_keycloak.passwords == {}

    def test_user_missing_in_keycloak(self, client, fake_keycloak):
        del fake_keycloak.users["user-alice"]
        resp = client.put("/api/profile/password", json={"newPassword": "rahasia-baru-123"})
        assert resp.status_code == 404
        assert resp.json()["message"] == "User account not found in Keycloak"
