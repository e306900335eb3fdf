from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from genie.apps.api.app import create_app
from genie.apps.api.security import limiter as request_limiter
from genie.core.settings import get_settings
from genie.core.store import InMemoryStore
from genie.domain.users import UserStatistics
from genie.services.mailer import LoggingMailer

PASSWORD = "longpassword"


@pytest.fixture
def mailer() -> LoggingMailer:
    return LoggingMailer()


@pytest.fixture
def rate_limits(monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "true")
    get_settings.cache_clear()
    yield
    request_limiter.reset()
    get_settings.cache_clear()


@pytest.fixture
def client(directory, mailer):
    get_settings.cache_clear()
    app = create_app(directory=directory, mailer=mailer, store=InMemoryStore())
    with TestClient(app) as test_client:
        yield test_client
    get_settings.cache_clear()


def _signup(client: TestClient, email: str = "new@example.com") -> str:
    resp = client.post(
        "/api/auth/signup",
        json={"name": "New User", "email": email, "password": PASSWORD},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["userId"]


def _verified_login(client: TestClient, directory, email: str = "new@example.com") -> str:
    user_id = _signup(client, email)
    code = directory.otps[user_id][0].code
    resp = client.post("/api/auth/verify-otp", json={"userId": user_id, "otp": code})
    assert resp.status_code == 200, resp.text

    resp = client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
    assert resp.status_code == 200, resp.text
    return resp.json()["sessionToken"]


def test_health_reports_memory_backend(client: TestClient) -> None:
    resp = client.get("/api/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    redis = body["services"]["redis"]
    assert redis["ok"] is True
    assert redis["backend"] == "memory"
    assert redis["features"] == {"caching": {"ok": True}, "rateLimiting": {"ok": True}}


def test_health_unhealthy_when_store_is_down(broken_store, directory) -> None:
    get_settings.cache_clear()
    app = create_app(directory=directory, store=broken_store)
    with TestClient(app) as test_client:
        assert app.state.cache_status == "degraded"
        resp = test_client.get("/api/health")

    assert resp.status_code == 503
    body = resp.json()
    assert body["status"] == "unhealthy"
    assert body["services"]["redis"]["ok"] is False
    assert "error" in body["services"]["redis"]


def test_signup_verify_login_and_dashboard(client: TestClient, directory, mailer) -> None:
    token = _verified_login(client, directory)
    assert mailer.sent[0].to == "new@example.com"

    resp = client.get("/api/statistics", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert set(resp.json()) == {"totalScore", "interviews", "practiceTime", "credits"}
    assert resp.json()["credits"]["value"] == "10"

    assert client.post("/api/auth/logout", headers={"Authorization": f"Bearer {token}"}).json() == {
        "success": True
    }
    resp = client.get("/api/statistics", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


def test_statistics_reflect_directory(client: TestClient, directory) -> None:
    token = _verified_login(client, directory)
    user_id = next(iter(directory.users))
    directory.statistics[user_id] = UserStatistics(completed_interviews=4, credits=25)

    resp = client.get("/api/statistics", headers={"Authorization": f"Bearer {token}"})
    assert resp.json()["interviews"]["value"] == "4"


def test_statistics_requires_session(client: TestClient) -> None:
    assert client.get("/api/statistics").status_code == 401
    resp = client.get("/api/statistics", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401


def test_login_errors(client: TestClient, directory) -> None:
    _signup(client)

    resp = client.post("/api/auth/login", json={"email": "new@example.com", "password": PASSWORD})
    assert resp.status_code == 403

    resp = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid credentials"}


def test_duplicate_signup_conflicts(client: TestClient) -> None:
    _signup(client)
    resp = client.post(
        "/api/auth/signup",
        json={"name": "Again", "email": "NEW@example.com", "password": PASSWORD},
    )
    assert resp.status_code == 409


def test_verify_otp_validation(client: TestClient) -> None:
    user_id = _signup(client)
    resp = client.post("/api/auth/verify-otp", json={"userId": user_id, "otp": "123"})
    assert resp.status_code == 422


@pytest.mark.parametrize("otp", ["éééééé", "12345a", "١٢٣٤٥٦"])
def test_verify_otp_rejects_non_digit_codes(client: TestClient, otp: str) -> None:
    user_id = _signup(client)
    resp = client.post("/api/auth/verify-otp", json={"userId": user_id, "otp": otp})
    assert resp.status_code == 422


def test_resend_otp_cooldown(client: TestClient) -> None:
    _signup(client)
    resp = client.post("/api/auth/verify/resend", json={"email": "new@example.com"})

    assert resp.status_code == 429
    assert resp.json()["remainingSeconds"] > 0
    assert int(resp.headers["Retry-After"]) > 0


def test_login_rate_limit_returns_429(rate_limits, client: TestClient, directory) -> None:
    _verified_login(client, directory)

    for _ in range(5):
        resp = client.post("/api/auth/login", json={"email": "new@example.com", "password": "wrong"})
        assert resp.status_code == 401

    resp = client.post("/api/auth/login", json={"email": "new@example.com", "password": PASSWORD})
    assert resp.status_code == 429
    assert resp.headers["Retry-After"] == "300"
    assert resp.json()["remainingSeconds"] == 300


def test_signup_is_throttled_per_ip(rate_limits, client: TestClient) -> None:
    for i in range(5):
        _signup(client, f"user{i}@example.com")

    resp = client.post(
        "/api/auth/signup",
        json={"name": "Late", "email": "late@example.com", "password": PASSWORD},
    )
    assert resp.status_code == 429


def test_metrics_endpoint_disabled(monkeypatch, directory) -> None:
    monkeypatch.setenv("METRICS_ENABLED", "0")
    get_settings.cache_clear()
    app = create_app(directory=directory, store=InMemoryStore())
    with TestClient(app) as test_client:
        assert test_client.get("/metrics").status_code == 404
    get_settings.cache_clear()


def test_metrics_endpoint_enabled(monkeypatch, client: TestClient) -> None:
    monkeypatch.setenv("METRICS_ENABLED", "1")
    get_settings.cache_clear()
    client.get("/api/health")

    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "genie_cache_events_total" in resp.text
    assert "genie_rate_limit_decisions_total" in resp.text
