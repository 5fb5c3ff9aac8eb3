# -*- coding: utf-8 -*-
"""
Session identity.

Most sessions point at a row in the user table. The developer bypass signs in
an identity that only lives in the session cookie; a shadow user row is
created for it on the first write that needs a foreign key
(see services.user_service.ensure_user_record).
"""

from flask import current_app, session
from flask_login import UserMixin, login_user
from sqlalchemy.exc import SQLAlchemyError

from launchkit.extensions import db, login_manager
from launchkit.models import User

SESSION_IDENTITY_KEY = "session_identity"


class SessionUser(UserMixin):
    """An authenticated identity with no user row (yet)."""

    password_hash = None

    def __init__(self, id, email=None, name=None, image=None):
        self.id = id
        self.email = email
        self.name = name
        self.image = image

    @property
    def first_name(self) -> str:
        return (self.name or "").split(" ")[0]

    def to_dict(self) -> dict:
        return {"id": self.id, "email": self.email, "name": self.name, "image": self.image}


def login_session_identity(identity: dict) -> SessionUser:
    user = SessionUser(**identity)
    session[SESSION_IDENTITY_KEY] = user.to_dict()
    login_user(user)
    return user


def clear_session_identity() -> None:
    session.pop(SESSION_IDENTITY_KEY, None)


@login_manager.user_loader
def load_user(user_id):
    """
    Load the user row for the session, falling back to a session-only identity.
    If the DB connection fails, treat the request as unauthenticated.
    """
    try:
        user = db.session.get(User, str(user_id))
    except SQLAlchemyError as e:
        current_app.logger.warning("[AUTH] load_user failed: %s", e.__class__.__name__)
        db.session.rollback()
        db.session.remove()
        return None
    if user is not None:
        return user
    identity = session.get(SESSION_IDENTITY_KEY)
    if identity and identity.get("id") == str(user_id):
        return SessionUser(**identity)
    return None
