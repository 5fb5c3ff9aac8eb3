import pytest

from main import create_app


def test_healthz_envelope(client):
    resp = client.get("/healthz")
    data = resp.get_json()
    assert resp.status_code == 200
    assert data["ok"] is True
    assert data["data"]["status"] == "ok"
    assert data["request_id"] == resp.headers["X-Request-ID"]


def test_security_headers(client):
    resp = client.get("/login")
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"
    assert resp.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
    assert "X-Request-ID" in resp.headers


def test_api_responses_not_cached(logged_in_client, current_terms):
    client, _ = logged_in_client
    resp = client.get("/api/terms/status")
    assert resp.headers["Cache-Control"] == "no-store"


def test_cross_origin_post_blocked(logged_in_client, current_terms):
    client, _ = logged_in_client
    resp = client.post(
        "/api/terms/accept",
        json={"termsId": current_terms},
        headers={"Origin": "https://evil.example"},
    )
    assert resp.status_code == 403
    assert resp.get_json() == {"error": "Forbidden"}

    resp = client.post(
        "/api/terms/accept",
        json={"termsId": current_terms},
        headers={"Origin": "http://localhost"},
    )
    assert resp.status_code == 200


def test_payload_too_large(logged_in_client):
    client, _ = logged_in_client
    resp = client.post("/api/user/update-name", json={"name": "x" * (70 * 1024)})
    assert resp.status_code == 413
    assert resp.get_json()["error"]["code"] == "payload_too_large"


def test_redirect_www_to_canonical(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("SECRET_KEY", "test-secret-key")
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("CANONICAL_BASE", "https://launchkit.example")
    app = create_app()
    resp = app.test_client().get("/", base_url="https://www.launchkit.example")
    assert resp.status_code == 301
    assert resp.headers["Location"].startswith("https://launchkit.example/")


def test_production_requires_database_url(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.delenv("DEPLOY_ENV", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("SECRET_KEY", "x")
    with pytest.raises(RuntimeError):
        create_app()


def test_preview_enables_dev_login(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("SECRET_KEY", "test-secret-key")
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("DEPLOY_ENV", "preview")
    app = create_app()
    assert app.config["DEV_LOGIN_ENABLED"] is True


def test_postgres_url_normalized(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgres://u:p@db.internal:5432/launchkit")
    monkeypatch.setenv("SECRET_KEY", "test-secret-key")
    monkeypatch.setenv("APP_ENV", "test")
    app = create_app()
    assert app.config["SQLALCHEMY_DATABASE_URI"].startswith("postgresql://")
