from datetime import datetime

import pytest
from sqlalchemy.exc import IntegrityError

from launchkit import terms as terms_lib
from launchkit.exceptions import AcceptanceConflictError, TermsNotFoundError, TermsVersionExistsError
from launchkit.identity import SessionUser
from main import db, Terms, User, UserTermsAcceptance


def test_check_user_needs_to_accept_terms(app, logged_in_client, current_terms):
    _, user_id = logged_in_client
    with app.app_context():
        assert terms_lib.check_user_needs_to_accept_terms(user_id) is True
        user = db.session.get(User, user_id)
        terms_lib.accept_terms(user, current_terms, "1.2.3.4")
        assert terms_lib.check_user_needs_to_accept_terms(user_id) is False


def test_check_user_needs_nothing_without_current_terms(app):
    with app.app_context():
        assert terms_lib.check_user_needs_to_accept_terms("anyone") is False
        with pytest.raises(TermsNotFoundError):
            terms_lib.get_terms_status("anyone")


def test_lookup_helpers(app, current_terms):
    with app.app_context():
        assert terms_lib.get_current_terms().id == current_terms
        assert [t.version for t in terms_lib.get_all_terms_versions()] == ["2.0.0", "1.0.0"]
        assert terms_lib.terms_version_exists("1.0.0") is True
        assert terms_lib.terms_version_exists("9.9.9") is False


def test_publish_terms_flips_current(app, current_terms):
    with app.app_context():
        published = terms_lib.publish_terms("3.0.0", "# v3", datetime(2026, 3, 1))
        current = Terms.query.filter_by(is_current=True).all()
        assert [t.id for t in current] == [published.id]
        assert db.session.get(Terms, current_terms).is_current is False
        assert Terms.query.count() == 3


def test_publish_terms_rejects_duplicate_version(app, current_terms):
    with app.app_context():
        with pytest.raises(TermsVersionExistsError):
            terms_lib.publish_terms("2.0.0", "dup")
        current = Terms.query.filter_by(is_current=True).one()
        assert current.id == current_terms


def test_seed_initial_terms(app, tmp_path):
    path = tmp_path / "tos.md"
    path.write_text("# Terms\n\nHello.", encoding="utf-8")
    with app.app_context():
        created = terms_lib.seed_initial_terms(path)
        assert created.version == "1.0.0"
        assert created.is_current is True
        assert terms_lib.seed_initial_terms(path) is None
        assert Terms.query.count() == 1


def test_seed_initial_terms_missing_file(app, tmp_path):
    with app.app_context():
        with pytest.raises(FileNotFoundError):
            terms_lib.seed_initial_terms(tmp_path / "missing.md")
        assert Terms.query.count() == 0


def test_accept_creates_shadow_user_for_session_identity(app, current_terms):
    identity = SessionUser("session-only", email="ghost@example.com", name="Ghost User")
    with app.app_context():
        result = terms_lib.accept_terms(identity, current_terms, "unknown")
        assert result == {"success": True, "alreadyAccepted": False}
        user = db.session.get(User, "session-only")
        assert user is not None
        assert user.email == "ghost@example.com"
        assert UserTermsAcceptance.query.filter_by(user_id="session-only").count() == 1


def test_accept_race_resolves_to_already_accepted(app, logged_in_client, current_terms, monkeypatch):
    """The loser of a concurrent insert sees the winner's row after rollback."""
    _, user_id = logged_in_client
    calls = {"n": 0}
    real_find = terms_lib.find_acceptance

    def find_missing_first(uid, tid):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return real_find(uid, tid)

    with app.app_context():
        db.session.add(UserTermsAcceptance(user_id=user_id, terms_id=current_terms, ip_address="10.0.0.1"))
        db.session.commit()
        monkeypatch.setattr(terms_lib, "find_acceptance", find_missing_first)
        user = db.session.get(User, user_id)
        result = terms_lib.accept_terms(user, current_terms, "10.0.0.2")
        assert result == {"success": True, "alreadyAccepted": True}
        assert UserTermsAcceptance.query.filter_by(user_id=user_id).count() == 1


def test_accept_unresolved_conflict_raises(app, logged_in_client, current_terms, monkeypatch):
    _, user_id = logged_in_client

    def failing_commit():
        raise IntegrityError("INSERT", {}, Exception("constraint"))

    with app.app_context():
        user = db.session.get(User, user_id)
        monkeypatch.setattr(terms_lib, "find_acceptance", lambda uid, tid: None)
        monkeypatch.setattr(db.session, "commit", failing_commit)
        with pytest.raises(AcceptanceConflictError):
            terms_lib.accept_terms(user, current_terms, "10.0.0.2")


def test_seed_terms_cli(app, tmp_path):
    path = tmp_path / "tos.md"
    path.write_text("# Terms", encoding="utf-8")
    runner = app.test_cli_runner()

    result = runner.invoke(args=["seed-terms", "--file", str(path)])
    assert result.exit_code == 0
    assert "Created terms v1.0.0" in result.output

    result = runner.invoke(args=["seed-terms", "--file", str(path)])
    assert result.exit_code == 0
    assert "already exists" in result.output

    result = runner.invoke(args=["seed-terms", "--file", str(tmp_path / "missing.md")])
    assert result.exit_code != 0
    assert "not found" in result.output


def test_publish_terms_cli(app, tmp_path, current_terms):
    path = tmp_path / "tos-v3.md"
    path.write_text("# Terms v3", encoding="utf-8")
    runner = app.test_cli_runner()

    result = runner.invoke(args=["publish-terms", "3.0.0", "--file", str(path), "--effective-date", "2026-03-01"])
    assert result.exit_code == 0, result.output
    with app.app_context():
        current = Terms.query.filter_by(is_current=True).one()
        assert current.version == "3.0.0"
        assert current.effective_date == datetime(2026, 3, 1)

    result = runner.invoke(args=["publish-terms", "3.0.0", "--file", str(path)])
    assert result.exit_code != 0
    assert "already exists" in result.output

    result = runner.invoke(args=["publish-terms", "4.0.0", "--file", str(path), "--effective-date", "soon"])
    assert result.exit_code != 0


def test_publish_locks_current_rows(app):
    from sqlalchemy.dialects import postgresql

    with app.app_context():
        stmt = terms_lib._current_terms_for_update().statement
        sql = str(stmt.compile(dialect=postgresql.dialect()))
        assert "FOR UPDATE" in sql


def test_publish_over_several_current_rows_leaves_one(app, make_terms):
    make_terms("1.0.0", is_current=True)
    make_terms("1.1.0", is_current=True)
    with app.app_context():
        published = terms_lib.publish_terms("2.0.0", "# v2")
        assert [t.id for t in Terms.query.filter_by(is_current=True).all()] == [published.id]
