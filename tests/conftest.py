"""Shared test fixtures for the PEMDA dashboard backend test suite.

Tests run against a throwaway SQLite file that is rebuilt before every
test. Object storage is an in-process S3 provided by moto, and Keycloak is
the in-memory realm from ``tests.fake_keycloak`` served through
``httpx.MockTransport``, so no external service is needed.
"""

import os
import tempfile

# Test database, credentials and auth mode must be set before any app import.
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite:///" + os.path.join(tempfile.gettempdir(), "pemda_dashboard_test.db"),
)
os.environ["AUTH_ENABLED"] = "true"
os.environ["ENVIRONMENT"] = "development"
os.environ["LOG_FORMAT"] = "text"
os.environ["RATE_LIMIT_PER_MINUTE"] = "100000"
os.environ["KEYCLOAK_ADMIN_CLIENT_SECRET"] = "admin-secret"
os.environ["ADMIN_EMAILS"] = "chief@pemda.test"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"

import boto3
import pytest
from fastapi.testclient import TestClient
from moto import mock_aws

from pemda_dashboard.core.auth import CurrentUser, optional_auth, require_auth
from pemda_dashboard.database import Base, SessionLocal, engine, get_db
from pemda_dashboard.main import app
from pemda_dashboard.middleware.request_context import _rate_buckets
from pemda_dashboard.services.keycloak_client import KeycloakClient, get_keycloak
from pemda_dashboard.services.object_storage import ObjectStorage, get_storage
from tests.fake_keycloak import FakeKeycloak

BUCKET = "pemda-documents"
PUBLIC_URL = "http://minio.test:9000"

ALICE = CurrentUser(
    id="user-alice",
    username="alice",
    email="alice@pemda.test",
    first_name="Alice",
    last_name="Wijaya",
    roles=("offline_access",),
    session_id="sess-alice-1",
)
BOB = CurrentUser(
    id="user-bob",
    username="bob",
    email="bob@pemda.test",
    first_name="Bob",
    last_name="Santoso",
    session_id="sess-bob-1",
)
ADMIN = CurrentUser(
    id="user-admin",
    username="admin",
    email="admin@pemda.test",
    first_name="Sri",
    last_name="Rahayu",
    roles=("admin",),
    session_id="sess-admin-1",
)

_caller = {"user": ALICE}


@pytest.fixture(autouse=True)
def _reset_schema():
    """Recreate every table before each test so tests never share rows."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    _caller["user"] = ALICE
    yield


@pytest.fixture()
def db():
    """Per-test database session."""
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def storage():
    """ObjectStorage backed by moto's in-memory S3."""
    with mock_aws():
        s3 = boto3.client("s3", region_name="us-east-1")
        store = ObjectStorage(s3, BUCKET, PUBLIC_URL)
        store.ensure_bucket()
        yield store


@pytest.fixture()
def fake_keycloak() -> FakeKeycloak:
    """Realm seeded with the three test callers."""
    fake = FakeKeycloak()
    for user in (ALICE, BOB, ADMIN):
        fake.add_user(user.id, user.username, user.email, user.first_name, user.last_name)
    fake.add_session(ALICE.id, ALICE.session_id, ip="10.0.0.5")
    return fake


@pytest.fixture()
def keycloak(fake_keycloak):
    client = KeycloakClient(
        base_url="http://keycloak.test",
        realm="Jogja-SSO",
        client_id="pemda-dashboard",
        client_secret="client-secret",
        admin_client_secret="admin-secret",
        transport=fake_keycloak.transport,
    )
    yield client
    client.close()


@pytest.fixture()
def act_as():
    """Switch the caller seen by ``require_auth`` for the rest of the test."""
    def _set(user: CurrentUser) -> CurrentUser:
        _caller["user"] = user
        return user
    return _set


def _override_dependencies(db, storage, keycloak) -> None:
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_keycloak] = lambda: keycloak


@pytest.fixture()
def client(db, storage, keycloak):
    """TestClient with DB, storage and Keycloak overridden and a switchable caller."""
    _override_dependencies(db, storage, keycloak)
    app.dependency_overrides[require_auth] = lambda: _caller["user"]
    app.dependency_overrides[optional_auth] = lambda: _caller["user"]
    _rate_buckets.clear()  # Reset rate limiter so tests don't hit 429
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def token_client(db, storage, keycloak):
    """TestClient that verifies real bearer tokens against the fake realm's JWKS."""
    _override_dependencies(db, storage, keycloak)
    _rate_buckets.clear()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

PDF_HEADER = b"%PDF-1.7\n"
PNG_HEADER = b"\x89PNG\r\n\x1a\n"


def make_pdf(body: bytes = b"1 0 obj << /Type /Catalog >> endobj\n%%EOF") -> bytes:
    return PDF_HEADER + body


def make_png(body: bytes = b"\x00\x00\x00\rIHDR") -> bytes:
    return PNG_HEADER + body


def upload(client, name: str = "laporan.pdf", data: bytes = None,
           content_type: str = "application/pdf", **form):
    """POST a multipart upload and return the response."""
    if data is None:
        data = make_pdf()
    return client.post(
        "/api/documents/upload",
        files={"file": (name, data, content_type)},
        data=form,
    )


def make_folder(client, name: str = "Arsip", parent_id: int = None) -> dict:
    payload = {"name": name}
    if parent_id is not None:
        payload["parentFolderId"] = parent_id
    resp = client.post("/api/documents/folder", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()["folder"]


def make_note(title: str = "Rapat koordinasi", content: str = "Agenda minggu ini.", **overrides) -> dict:
    """Factory for note creation payloads."""
    payload = {
        "title": title,
        "content": content,
        "category": "Work",
        "tags": ["rapat"],
        "isPinned": False,
    }
    payload.update(overrides)
    return payload
