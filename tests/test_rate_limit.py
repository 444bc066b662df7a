"""Tests for the rate limiting pure function and middleware integration."""

from pemda_dashboard.core.config import settings
from pemda_dashboard.middleware.request_context import check_rate_limit


class TestCheckRateLimit:
    """Unit tests for the pure function, no middleware or HTTP involved."""

    def test_allows_within_limit(self):
        bucket: dict = {}
        allowed, retry = check_rate_limit(bucket, "10.0.0.5", max_per_minute=60, now=0.0)
        assert allowed is True
        assert retry == 0.0

    def test_denies_after_exhaustion(self):
        bucket: dict = {}
        for _ in range(60):
            check_rate_limit(bucket, "10.0.0.5", max_per_minute=60, now=0.0)

        allowed, retry = check_rate_limit(bucket, "10.0.0.5", max_per_minute=60, now=0.0)
        assert allowed is False
        assert retry > 0

    def test_refills_over_time(self):
        bucket: dict = {}
        for _ in range(60):
            check_rate_limit(bucket, "10.0.0.5", max_per_minute=60, now=0.0)

        # One token per second at 60/min.
        allowed, _ = check_rate_limit(bucket, "10.0.0.5", max_per_minute=60, now=2.0)
        assert allowed is True

    def test_separate_clients_independent(self):
        bucket: dict = {}
        for _ in range(60):
            check_rate_limit(bucket, "10.0.0.5", max_per_minute=60, now=0.0)

        allowed, _ = check_rate_limit(bucket, "10.0.0.6", max_per_minute=60, now=0.0)
        assert allowed is True

    def test_zero_limit_always_allows(self):
        bucket: dict = {}
        allowed, _ = check_rate_limit(bucket, "any", max_per_minute=0, now=0.0)
        assert allowed is True


class TestRateLimitMiddleware:

    def test_returns_429_with_retry_after(self, client, monkeypatch):
        monkeypatch.setattr(settings, "rate_limit_per_minute", 2)
        assert client.get("/api/notes").status_code == 200
        assert client.get("/api/notes").status_code == 200

        resp = client.get("/api/notes")
        assert resp.status_code == 429
        assert resp.json()["error"] == "RATE_LIMITED"
        assert int(resp.headers["retry-after"]) >= 1

    def test_health_is_exempt(self, client, monkeypatch):
        monkeypatch.setattr(settings, "rate_limit_per_minute", 1)
        for _ in range(5):
            assert client.get("/health").status_code == 200

    def test_forwarded_for_identifies_client(self, client, monkeypatch):
        monkeypatch.setattr(settings, "rate_limit_per_minute", 1)
        assert client.get("/api/notes", headers={"X-Forwarded-For": "203.0.113.1"}).status_code == 200
        assert client.get("/api/notes", headers={"X-Forwarded-For": "203.0.113.2, 10.0.0.1"}).status_code == 200
        assert client.get("/api/notes", headers={"X-Forwarded-For": "203.0.113.1"}).status_code == 429
