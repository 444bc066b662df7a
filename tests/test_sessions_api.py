"""Tests for /api/sessions against the in-memory Keycloak realm."""

from pemda_dashboard.models.login_log import LoginLog


class TestListSessions:

    def test_lists_sessions_and_flags_current(self, client, fake_keycloak):
        fake_keycloak.add_session("user-alice", "sess-alice-2", ip="203.0.113.9")
        resp = client.get("/api/sessions")
        assert resp.status_code == 200
        sessions = {s["id"]: s for s in resp.json()["sessions"]}

        current = sessions["sess-alice-1"]
        assert current["current"] is True
        assert current["ipAddress"] == "10.0.0.5"
        assert current["location"] == "Yogyakarta (Local)"
        assert current["start"].startswith("2023-11-14T22:13:20")
        assert current["clients"] == {"c1": "pemda-dashboard"}

        other = sessions["sess-alice-2"]
        assert other["current"] is False
        assert other["location"] == "Unknown"

    def test_development_falls_back_to_mock(self, client, fake_keycloak):
        fake_keycloak.fail_admin_token = True
        resp = client.get("/api/sessions")
        assert resp.status_code == 200
        data = resp.json()
        assert data["note"] == "Development mode - mock data"
        assert len(data["sessions"]) == 1
        assert data["sessions"][0]["id"] == "sess-alice-1"
        assert data["sessions"][0]["current"] is True


class TestTerminateSession:

    def test_terminate_other_session(self, client, fake_keycloak, db):
        fake_keycloak.add_session("user-alice", "sess-alice-2")
        resp = client.delete("/api/sessions/sess-alice-2")
        assert resp.status_code == 200
        assert resp.json()["message"] == "Session terminated successfully"
        assert [s["id"] for s in fake_keycloak.sessions["user-alice"]] == ["sess-alice-1"]

        entry = db.query(LoginLog).one()
        assert entry.action == "SESSION_TERMINATED"
        assert entry.event_metadata == {"terminatedSessionId": "sess-alice-2"}

    def test_cannot_terminate_current_session(self, client):
        resp = client.delete("/api/sessions/sess-alice-1")
        assert resp.status_code == 400
        assert resp.json()["message"] == "Cannot terminate current session. Use logout instead."

    def test_cannot_terminate_someone_elses_session(self, client, fake_keycloak):
        fake_keycloak.add_session("user-bob", "sess-bob-1")
        resp = client.delete("/api/sessions/sess-bob-1")
        assert resp.status_code == 404
        assert [s["id"] for s in fake_keycloak.sessions["user-bob"]] == ["sess-bob-1"]

    def test_terminate_all_keeps_current(self, client, fake_keycloak, db):
        fake_keycloak.add_session("user-alice", "sess-alice-2")
        fake_keycloak.add_session("user-alice", "sess-alice-3")
        resp = client.post("/api/sessions/terminate-all")
        assert resp.status_code == 200
        assert resp.json() == {"message": "Terminated 2 session(s)", "terminatedCount": 2}
        assert [s["id"] for s in fake_keycloak.sessions["user-alice"]] == ["sess-alice-1"]
        assert db.query(LoginLog).one().event_metadata == {"terminatedCount": 2}

    def test_terminate_all_skips_failures(self, client, fake_keycloak):
        fake_keycloak.add_session("user-alice", "sess-alice-2")
        fake_keycloak.add_session("user-alice", "sess-alice-3")
        fake_keycloak.failing_session_deletes.add("sess-alice-2")
        resp = client.post("/api/sessions/terminate-all")
        assert resp.json()["terminatedCount"] == 1
