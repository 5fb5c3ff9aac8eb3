"""Utility functions for validating incoming request payloads.

Used by the REST blueprints, the RPC dispatcher and the login forms. Every
helper raises :class:`launchkit.exceptions.ValidationError`; callers turn it
into a 400 response.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Any, Dict, Mapping

from launchkit.exceptions import ValidationError

# Field length limits for DoS prevention
MAX_NAME_LENGTH = 100
MAX_EMAIL_LENGTH = 320
MAX_PASSWORD_LENGTH = 128
MIN_PASSWORD_LENGTH = 8

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
SPECIAL_CHARS_RE = re.compile(r'[!@#$%^&*(),.?":{}|<>]')

# (requirement key, human description) in the order they are reported
PASSWORD_REQUIREMENTS = (
    ("length", "at least 8 characters"),
    ("uppercase", "one uppercase letter"),
    ("lowercase", "one lowercase letter"),
    ("number", "one number"),
    ("special", "one special character"),
)


def validate_form_data(data: Mapping[str, Any], required_fields: Mapping[str, type] | None = None) -> Dict[str, Any]:
    """Validate a request payload against a field -> type mapping.

    Parameters
    ----------
    data:
        Incoming payload (typically ``request.form`` or parsed JSON).
    required_fields:
        Mapping of field name -> expected type.

    Returns
    -------
    dict
        The validated payload.

    Raises
    ------
    ValidationError
        If a required field is missing or has the wrong type.
    """

    if not isinstance(data, Mapping):
        raise ValidationError("Request body must be a JSON object", code="invalid_body")

    required_fields = required_fields or {}

    validated: Dict[str, Any] = {}
    for field, expected_type in required_fields.items():
        if field not in data or data[field] in (None, ""):
            raise ValidationError(f"{field} is required", field=field, code="required")
        value = data[field]
        # bool is an int subclass; never accept it for int/str fields
        wrong_type = expected_type is not None and (
            not isinstance(value, expected_type) or (isinstance(value, bool) and expected_type is not bool)
        )
        if wrong_type:
            raise ValidationError(f"{field} must be a {expected_type.__name__}", field=field, code="invalid_type")
        validated[field] = value

    # include any additional fields as-is
    for k, v in data.items():
        if k not in validated:
            validated[k] = v

    return validated


def normalize_email(raw: Any) -> str:
    """Lowercase, trim and sanity-check an email address."""
    if not isinstance(raw, str):
        raise ValidationError("Email address is required", field="email", code="required")
    email = unicodedata.normalize("NFKC", raw).strip().lower()
    if not email:
        raise ValidationError("Email address is required", field="email", code="required")
    if len(email) > MAX_EMAIL_LENGTH or not EMAIL_RE.match(email):
        raise ValidationError("Please enter a valid email address", field="email", code="invalid_email")
    return email


def validate_name(raw: Any) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError("Name is required", field="name", code="required")
    name = " ".join(raw.split())
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(
            f"Name must be at most {MAX_NAME_LENGTH} characters",
            field="name",
            code="too_long",
        )
    return name


def check_password_requirements(password: str) -> Dict[str, bool]:
    """Return which password requirements are met, keyed as in PASSWORD_REQUIREMENTS."""
    password = password or ""
    return {
        "length": len(password) >= MIN_PASSWORD_LENGTH,
        "uppercase": bool(re.search(r"[A-Z]", password)),
        "lowercase": bool(re.search(r"[a-z]", password)),
        "number": bool(re.search(r"[0-9]", password)),
        "special": bool(SPECIAL_CHARS_RE.search(password)),
    }


def validate_new_password(raw: Any) -> str:
    if not isinstance(raw, str) or not raw:
        raise ValidationError("New password is required", field="newPassword", code="required")
    if len(raw) > MAX_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at most {MAX_PASSWORD_LENGTH} characters",
            field="newPassword",
            code="too_long",
        )
    met = check_password_requirements(raw)
    missing = [label for key, label in PASSWORD_REQUIREMENTS if not met[key]]
    if missing:
        raise ValidationError(
            f"Password must contain {', '.join(missing)}",
            field="newPassword",
            code="weak_password",
            details={"requirements": met},
        )
    return raw
