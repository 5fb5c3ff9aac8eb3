import sys
from datetime import datetime, timedelta
from pathlib import Path
import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from main import create_app, db, Terms, User


@pytest.fixture
def app(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("SECRET_KEY", "test-secret-key")
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("RATELIMIT_DISABLED", "1")
    monkeypatch.delenv("DEPLOY_ENV", raising=False)
    monkeypatch.delenv("GOOGLE_CLIENT_ID", raising=False)
    monkeypatch.delenv("SMTP_HOST", raising=False)
    monkeypatch.delenv("CANONICAL_BASE", raising=False)
    app = create_app()
    app.config.update(TESTING=True)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def dev_app(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("SECRET_KEY", "test-secret-key")
    monkeypatch.setenv("APP_ENV", "development")
    monkeypatch.setenv("RATELIMIT_DISABLED", "1")
    app = create_app()
    app.config.update(TESTING=True)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def logged_in_client(app, client):
    with app.app_context():
        user = User(email="tester@example.com", name="Ada Lovelace")
        db.session.add(user)
        db.session.commit()
        user_id = user.id

    with client.session_transaction() as sess:
        sess["_user_id"] = str(user_id)
        sess["_fresh"] = True

    return client, user_id


@pytest.fixture
def make_terms(app):
    def _make(version="1.0.0", is_current=True, content="# Terms\n\nBe nice.", effective_date=None):
        with app.app_context():
            terms = Terms(
                version=version,
                content=content,
                effective_date=effective_date or datetime(2026, 1, 5, 12, 0, 0),
                is_current=is_current,
            )
            db.session.add(terms)
            db.session.commit()
            return terms.id
    return _make


@pytest.fixture
def current_terms(make_terms):
    """Terms 1.0.0 (superseded) and 2.0.0 (current); yields the current id."""
    make_terms("1.0.0", is_current=False, effective_date=datetime(2026, 1, 5) - timedelta(days=30))
    return make_terms("2.0.0", is_current=True)
