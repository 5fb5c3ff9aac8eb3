# -*- coding: utf-8 -*-
"""User record helpers used by the login flows and the settings page."""

import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from launchkit.exceptions import ValidationError
from launchkit.extensions import db
from launchkit.models import User
from launchkit.utils.validation import normalize_email, validate_name, validate_new_password

logger = logging.getLogger(__name__)

# Compared against when the email is unknown so both branches cost one hash check.
_DUMMY_PASSWORD_HASH = generate_password_hash("launchkit-dummy-password")


def ensure_user_record(identity) -> User:
    """
    Return the user row for ``identity``, creating a shadow row when it is missing.
    Existing rows are never modified.
    """
    user = db.session.get(User, str(identity.id))
    if user is not None:
        return user

    email = getattr(identity, "email", None)
    if email and get_user_by_email(email) is not None:
        # The address belongs to another account; the shadow row goes without it
        logger.warning("[USER] shadow row email already taken user_id=%s", identity.id)
        email = None

    user = User(
        id=str(identity.id),
        email=email,
        name=getattr(identity, "name", None),
        image=getattr(identity, "image", None),
    )
    db.session.add(user)
    try:
        db.session.commit()
        logger.info("[USER] shadow row created user_id=%s", user.id)
    except IntegrityError:
        db.session.rollback()
        user = db.session.get(User, str(identity.id))
        if user is None:
            raise
    return user


def get_user_by_email(email: str) -> Optional[User]:
    return User.query.filter_by(email=email).first()


def find_or_create_user_by_email(email: str, name: Optional[str] = None, image: Optional[str] = None) -> Tuple[User, bool]:
    """Look up a user by (normalized) email, creating the account on first sign-in."""
    email = normalize_email(email)
    user = get_user_by_email(email)
    if user:
        return user, False
    user = User(email=email, name=name, image=image)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        user = get_user_by_email(email)
        if user is None:
            raise
        return user, False
    logger.info("[USER] account created user_id=%s", user.id)
    return user, True


def upsert_oauth_user(userinfo: dict) -> User:
    """Create or refresh a user from an OpenID Connect userinfo payload."""
    user, _ = find_or_create_user_by_email(
        userinfo.get("email", ""),
        name=userinfo.get("name"),
        image=userinfo.get("picture"),
    )
    changed = False
    if userinfo.get("name") and user.name != userinfo["name"]:
        user.name = userinfo["name"]
        changed = True
    if userinfo.get("picture") and user.image != userinfo["picture"]:
        user.image = userinfo["picture"]
        changed = True
    if userinfo.get("email_verified") and user.email_verified_at is None:
        user.email_verified_at = datetime.utcnow()
        changed = True
    if changed:
        db.session.commit()
    return user


def mark_email_verified(user: User) -> None:
    if user.email_verified_at is None:
        user.email_verified_at = datetime.utcnow()
        db.session.commit()


def authenticate_password(email: str, password: str) -> Optional[User]:
    try:
        email = normalize_email(email)
    except ValidationError:
        return None
    user = get_user_by_email(email)
    if user is None or not user.password_hash:
        check_password_hash(_DUMMY_PASSWORD_HASH, password or "")
        return None
    if not check_password_hash(user.password_hash, password or ""):
        return None
    return user


def update_user_name(identity, raw_name) -> User:
    name = validate_name(raw_name)
    user = ensure_user_record(identity)
    user.name = name
    db.session.commit()
    return user


def update_user_password(identity, current_password: Optional[str], raw_new_password) -> User:
    """
    Set or change the account password.
    Accounts without a password (magic link / OAuth only) may set one directly.
    """
    new_password = validate_new_password(raw_new_password)
    user = ensure_user_record(identity)
    if user.password_hash:
        if not current_password or not check_password_hash(user.password_hash, current_password):
            raise ValidationError("Current password is incorrect", field="currentPassword", code="invalid_password")
    user.password_hash = generate_password_hash(new_password)
    db.session.commit()
    return user
