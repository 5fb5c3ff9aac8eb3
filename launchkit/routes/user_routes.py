# -*- coding: utf-8 -*-
"""User settings API blueprint."""

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from launchkit.exceptions import ValidationError
from launchkit.extensions import db
from launchkit.services.user_service import update_user_name, update_user_password
from launchkit.utils.http_helpers import get_request_id, json_error, log_rejection

bp = Blueprint("user", __name__)


@bp.route("/api/user/update-name", methods=["POST"])
@login_required
def update_name():
    """
    Payload:
    {
      "name": "Ada Lovelace"
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        user = update_user_name(current_user, data.get("name"))
    except ValidationError as e:
        log_rejection("validation", e.message)
        return json_error(e.message, 400)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("[USER] update-name failed request_id=%s", get_request_id())
        return json_error("Failed to update name", 500)
    return jsonify({"success": True, "name": user.name})


@bp.route("/api/user/update-password", methods=["POST"])
@login_required
def update_password():
    """
    Payload:
    {
      "currentPassword": "...",  # required once the account has a password
      "newPassword": "..."
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        update_user_password(current_user, data.get("currentPassword"), data.get("newPassword"))
    except ValidationError as e:
        log_rejection("validation", e.code or "invalid")
        return json_error(e.message, 400)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("[USER] update-password failed request_id=%s", get_request_id())
        return json_error("Failed to update password", 500)
    return jsonify({"success": True})
