import pytest

from launchkit.gate import SCROLL_TOLERANCE_PX, GateState, resolve_gate_state
from sqlalchemy.exc import OperationalError


@pytest.mark.parametrize(
    "status,error,expected",
    [
        (None, RuntimeError("boom"), GateState.ERROR),
        ({"needsAcceptance": True, "currentTerms": {"id": "t1"}}, None, GateState.GATE_OPEN),
        ({"needsAcceptance": False, "currentTerms": {"id": "t1"}}, None, GateState.PASSTHROUGH),
        ({"needsAcceptance": True, "currentTerms": None}, None, GateState.PASSTHROUGH),
    ],
)
def test_resolve_gate_state(status, error, expected):
    assert resolve_gate_state(status, error) is expected


def test_dashboard_shows_modal_until_accepted(logged_in_client, current_terms):
    client, _ = logged_in_client
    resp = client.get("/dashboard")
    assert resp.status_code == 200
    body = resp.get_data(as_text=True)
    assert 'id="terms-gate"' in body
    assert f'data-terms-id="{current_terms}"' in body
    assert "Accept and Continue" in body
    assert "Please scroll to the bottom to continue." in body
    assert "Version 2.0.0" in body
    assert "Hello, Ada" not in body

    client.post("/api/terms/accept", json={"termsId": current_terms})
    body = client.get("/dashboard").get_data(as_text=True)
    assert "Hello, Ada" in body
    assert 'id="terms-gate"' not in body


def test_dashboard_error_state_without_terms(logged_in_client):
    client, _ = logged_in_client
    resp = client.get("/dashboard")
    assert resp.status_code == 404
    body = resp.get_data(as_text=True)
    assert "No current terms found" in body
    assert "Try Again" in body


def test_dashboard_error_state_on_db_failure(logged_in_client, current_terms, monkeypatch):
    import launchkit.gate as gate

    def broken(_user_id):
        raise OperationalError("SELECT", {}, Exception("db down"))

    monkeypatch.setattr(gate, "get_terms_status", broken)
    client, _ = logged_in_client
    resp = client.get("/dashboard")
    assert resp.status_code == 500
    assert "Try Again" in resp.get_data(as_text=True)


def test_dashboard_requires_login(client):
    resp = client.get("/dashboard")
    assert resp.status_code == 302
    assert "/login" in resp.headers["Location"]


def test_dashboard_greeting_falls_back_to_there(app, client, current_terms):
    from main import db, User, UserTermsAcceptance
    with app.app_context():
        user = User(email="noname@example.com")
        db.session.add(user)
        db.session.commit()
        db.session.add(UserTermsAcceptance(user_id=user.id, terms_id=current_terms, ip_address="unknown"))
        db.session.commit()
        user_id = user.id
    with client.session_transaction() as sess:
        sess["_user_id"] = user_id
        sess["_fresh"] = True
    assert "Hello, there" in client.get("/dashboard").get_data(as_text=True)


def test_modal_starts_locked(logged_in_client, current_terms):
    client, _ = logged_in_client
    body = client.get("/dashboard").get_data(as_text=True)
    assert '<input type="checkbox" id="terms-acknowledge" disabled>' in body
    assert '<button type="button" id="terms-accept" disabled>' in body
    assert 'id="terms-scroll-hint"' in body
    assert f'data-scroll-tolerance="{SCROLL_TOLERANCE_PX}"' in body
    assert "js/terms_gate.js" in body
