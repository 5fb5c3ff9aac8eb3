# -*- coding: utf-8 -*-
"""
Terms gate for page views.

Wrap a view with ``terms_gate`` (below ``login_required``) and it renders one of:
- the page itself, when the user has accepted the current terms
- the blocking terms modal, when acceptance is outstanding
- an error page with a retry action, when the status lookup fails

The modal starts with the acknowledgement checkbox and the accept button
disabled; static/js/terms_gate.js unlocks them once the terms have been
scrolled to within ``SCROLL_TOLERANCE_PX`` of the bottom.
"""

from enum import Enum
from functools import wraps
from typing import Optional

from flask import current_app, render_template
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

from launchkit.exceptions import TermsNotFoundError
from launchkit.extensions import db
from launchkit.terms import get_terms_status
from launchkit.utils.http_helpers import get_request_id

SCROLL_TOLERANCE_PX = 10


class GateState(str, Enum):
    ERROR = "error"
    GATE_OPEN = "gate_open"
    PASSTHROUGH = "passthrough"


def resolve_gate_state(status: Optional[dict], error: Optional[BaseException] = None) -> GateState:
    if error is not None:
        return GateState.ERROR
    if status and status.get("needsAcceptance") and status.get("currentTerms"):
        return GateState.GATE_OPEN
    return GateState.PASSTHROUGH


def terms_gate(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        status = None
        error = None
        error_status = 500
        try:
            status = get_terms_status(current_user.id)
        except TermsNotFoundError as e:
            error = e
            error_status = 404
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.exception("[TERMS] gate status lookup failed request_id=%s", get_request_id())
            error = e

        state = resolve_gate_state(status, error)
        if state is GateState.ERROR:
            message = getattr(error, "message", None) or "An error occurred while loading the terms of service."
            return render_template("terms_gate_error.html", message=message), error_status
        if state is GateState.GATE_OPEN:
            return render_template(
                "terms_modal.html",
                terms=status["currentTerms"],
                scroll_tolerance=SCROLL_TOLERANCE_PX,
            )
        return view(*args, **kwargs)

    return wrapped
