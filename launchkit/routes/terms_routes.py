# -*- coding: utf-8 -*-
"""Terms of Service routes blueprint."""

from flask import Blueprint, current_app, jsonify, render_template, request
from flask_login import current_user

from launchkit.exceptions import AcceptanceConflictError, TermsNotFoundError, ValidationError
from launchkit.extensions import db
from launchkit.terms import accept_terms, get_current_terms, get_terms_status
from launchkit.utils.http_helpers import get_client_ip, get_request_id, json_error, log_rejection
from launchkit.utils.validation import validate_form_data

bp = Blueprint("terms", __name__)


@bp.route("/api/terms/status", methods=["GET"])
def terms_status():
    """
    Current terms and whether the logged-in user needs to accept them.
    401 without a session, 404 when no version is current.
    """
    try:
        if not current_user.is_authenticated:
            log_rejection("unauthenticated", "terms status without session")
            return json_error("Unauthorized", 401)
        return jsonify(get_terms_status(current_user.id))
    except TermsNotFoundError as e:
        return json_error(e.message, 404)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("[TERMS] Error fetching terms status request_id=%s", get_request_id())
        return json_error("Internal server error", 500)


@bp.route("/api/terms/accept", methods=["POST"])
def terms_accept():
    """
    Record the logged-in user's acceptance of the current terms.

    Payload:
    {
      "termsId": "<id of the current terms>"
    }
    """
    try:
        if not current_user.is_authenticated:
            log_rejection("unauthenticated", "terms accept without session")
            return json_error("Unauthorized", 401)

        try:
            data = validate_form_data(request.get_json(silent=True) or {}, {"termsId": str})
        except ValidationError as e:
            log_rejection("validation", e.message)
            return json_error("termsId is required", 400)

        result = accept_terms(current_user, data["termsId"], get_client_ip())
        return jsonify(result)
    except TermsNotFoundError as e:
        return json_error(e.message, 404)
    except AcceptanceConflictError as e:
        return json_error(e.message, 409)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("[TERMS] Error accepting terms request_id=%s", get_request_id())
        return json_error("Internal server error", 500)


@bp.route("/terms")
def terms_page():
    """Public view of the current terms. No authentication required."""
    return render_template("terms.html", terms=get_current_terms())
