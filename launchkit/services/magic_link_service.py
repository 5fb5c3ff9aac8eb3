# -*- coding: utf-8 -*-
"""Signed, time-limited sign-in links."""

from flask import current_app, url_for
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from launchkit.exceptions import ValidationError
from launchkit.services.email_service import send_magic_link_email

MAGIC_LINK_SALT = "launchkit-magic-link"


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key=current_app.config["SECRET_KEY"], salt=MAGIC_LINK_SALT)


def _max_age_seconds() -> int:
    return int(current_app.config.get("MAGIC_LINK_MAX_AGE_SECONDS", 60 * 60 * 24))


def issue_magic_link_token(email: str) -> str:
    return _serializer().dumps({"email": email})


def verify_magic_link_token(token: str, max_age: int = None) -> str:
    """Return the email carried by ``token``; raise ValidationError when invalid or expired."""
    if not token:
        raise ValidationError("Sign-in link is missing", field="token", code="missing_token")
    try:
        payload = _serializer().loads(token, max_age=max_age if max_age is not None else _max_age_seconds())
    except SignatureExpired:
        raise ValidationError("This sign-in link has expired. Please request a new one.", field="token", code="expired_token")
    except BadSignature:
        raise ValidationError("This sign-in link is invalid.", field="token", code="invalid_token")
    email = payload.get("email") if isinstance(payload, dict) else None
    if not isinstance(email, str) or not email:
        raise ValidationError("This sign-in link is invalid.", field="token", code="invalid_token")
    return email


def send_magic_link(email: str) -> bool:
    token = issue_magic_link_token(email)
    link = url_for("public.verify_magic_link", token=token, _external=True)
    return send_magic_link_email(email, link)
