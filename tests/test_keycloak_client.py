"""Tests for KeycloakClient: admin token caching, error mapping and user creation."""

import threading

import httpx
import pytest

from pemda_dashboard.exceptions import ConflictError, ForbiddenError, KeycloakError, NotFoundError
from pemda_dashboard.services.keycloak_client import KeycloakClient
from tests.fake_keycloak import FakeKeycloak


class _Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def clock():
    return _Clock()


@pytest.fixture()
def realm():
    fake = FakeKeycloak()
    fake.add_user("u1", "alice", "alice@pemda.test", "Alice", "Wijaya")
    return fake


@pytest.fixture()
def kc(realm, clock):
    client = KeycloakClient(
        base_url="http://keycloak.test/",
        realm="Jogja-SSO",
        client_id="pemda-dashboard",
        admin_client_secret="admin-secret",
        transport=realm.transport,
        clock=clock,
    )
    yield client
    client.close()


class TestAdminToken:

    def test_token_is_cached(self, kc, realm):
        kc.get_user("u1")
        kc.get_user("u1")
        assert realm.token_requests == 1

    def test_token_refreshed_before_expiry(self, kc, realm, clock):
        kc.get_user("u1")
        clock.now += 300 - 30 - 1
        kc.get_user("u1")
        assert realm.token_requests == 1

        clock.now += 2
        kc.get_user("u1")
        assert realm.token_requests == 2

    def test_admin_auth_failure(self, kc, realm):
        realm.fail_admin_token = True
        with pytest.raises(KeycloakError) as exc:
            kc.get_user("u1")
        assert exc.value.message == "Keycloak admin authentication failed"
        assert exc.value.status_code == 502
        assert exc.value.details["upstream_status"] == 401

    def test_sends_client_credentials(self, kc, realm):
        kc.get_admin_token()
        form = dict(httpx.QueryParams(realm.requests[0].content.decode()))
        assert form == {
            "grant_type": "client_credentials",
            "client_id": "pemda-dashboard",
            "client_secret": "admin-secret",
        }


class TestErrorMapping:

    def test_not_found(self, kc):
        with pytest.raises(NotFoundError) as exc:
            kc.get_user("missing")
        assert exc.value.message == "User not found"

    def test_conflict(self, kc):
        with pytest.raises(ConflictError):
            kc.create_user({"username": "alice", "email": "x@pemda.test"})

    def test_server_error_keeps_upstream_status(self, kc, realm):
        realm.add_session("u1", "s1")
        realm.failing_session_deletes.add("s1")
        with pytest.raises(KeycloakError) as exc:
            kc.delete_session("s1")
        assert exc.value.details["upstream_status"] == 500

    def test_rejected_admin_token_is_forbidden_and_dropped(self, kc, realm, clock):
        kc.get_admin_token()
        kc._admin_token = "revoked"
        with pytest.raises(ForbiddenError):
            kc.get_user("u1")
        # The next call fetches a fresh token and succeeds.
        assert kc.get_user("u1")["username"] == "alice"
        assert realm.token_requests == 2

    def test_unreachable(self):
        def _boom(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = KeycloakClient("http://keycloak.test", "Jogja-SSO", "pemda-dashboard",
                                transport=httpx.MockTransport(_boom))
        with pytest.raises(KeycloakError) as exc:
            client.userinfo("token")
        assert exc.value.message == "Keycloak is unreachable"
        assert "upstream_status" not in exc.value.details

    def test_federated_identities_never_raise(self, kc):
        assert kc.federated_identities("missing") == []


class TestCreateUser:

    def test_id_from_location_header(self, kc, realm):
        new_id = kc.create_user({"username": "citra", "email": "citra@pemda.test"})
        assert new_id in realm.users
        assert realm.users[new_id]["username"] == "citra"

    def test_id_from_lookup_without_location(self, kc, realm):
        realm.omit_location = True
        new_id = kc.create_user({"username": "citra", "email": "citra@pemda.test"})
        assert realm.users[new_id]["username"] == "citra"


class TestCerts:

    def test_certs_cached(self, kc, realm, clock):
        kc.certs()
        kc.certs()
        assert len(realm.paths("GET")) == 1

        clock.now += 301
        kc.certs()
        assert len(realm.paths("GET")) == 2

    def test_force_refetch(self, kc, realm):
        kc.certs()
        kc.certs(force=True)
        assert len(realm.paths("GET")) == 2

    def test_cached_certs_readable_during_token_fetch(self, realm, clock):
        token_started = threading.Event()
        release_token = threading.Event()

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/token"):
                token_started.set()
                release_token.wait(timeout=5)
            return realm.handle(request)

        kc = KeycloakClient(
            base_url="http://keycloak.test/",
            realm="Jogja-SSO",
            client_id="pemda-dashboard",
            admin_client_secret="admin-secret",
            transport=httpx.MockTransport(handler),
            clock=clock,
        )
        kc.certs()
        fetcher = threading.Thread(target=kc.get_admin_token)
        fetcher.start()
        try:
            assert token_started.wait(timeout=5)

            reader = threading.Thread(target=kc.certs)
            reader.start()
            reader.join(timeout=2)
            assert not reader.is_alive()
        finally:
            release_token.set()
            fetcher.join(timeout=5)
            kc.close()
        assert len(realm.paths("GET")) == 1
