# -*- coding: utf-8 -*-
"""HTTP helper functions shared by the blueprints."""

from typing import Optional, Mapping, Any, Dict
from flask import jsonify, g, current_app, request
from flask_login import current_user


def get_request_id() -> str:
    """Get the current request_id from Flask g object."""
    return getattr(g, 'request_id', 'unknown')


def api_ok(payload: Optional[Any] = None, status: int = 200, request_id: Optional[str] = None):
    """Standard API success response."""
    rid = request_id or get_request_id()
    resp = jsonify({"ok": True, "data": payload, "request_id": rid})
    resp.status_code = status
    resp.headers["X-Request-ID"] = rid
    return resp


def api_error(code: str, message: str, status: int = 400, details: Optional[Mapping[str, Any]] = None, request_id: Optional[str] = None):
    """Standard API error response."""
    rid = request_id or get_request_id()
    body: Dict[str, Any] = {"ok": False, "error": {"code": code, "message": message}, "request_id": rid}
    if details is not None:
        body["error"]["details"] = details
    resp = jsonify(body)
    resp.status_code = status
    resp.headers["X-Request-ID"] = rid
    return resp


def json_error(message: str, status: int):
    """Flat ``{"error": message}`` body used by the /api/terms and /api/user routes."""
    rid = get_request_id()
    resp = jsonify({"error": message})
    resp.status_code = status
    resp.headers["X-Request-ID"] = rid
    return resp


def get_client_ip() -> str:
    """
    Resolve the caller IP recorded with consent rows.
    First X-Forwarded-For hop, then X-Real-IP, then the literal "unknown".
    """
    xff = (request.headers.get("X-Forwarded-For") or "").split(",")[0].strip()
    if xff:
        return xff[:64]
    real_ip = (request.headers.get("X-Real-IP") or "").strip()
    if real_ip:
        return real_ip[:64]
    return "unknown"


def get_redirect_uri():
    """
    Build the Google OAuth redirect URI.
    - Production uses the canonical base so the URI registered with Google stays stable.
    - For local dev (localhost/127.0.0.1), fall back to request.url_root.
    """
    canonical_base = current_app.config.get('CANONICAL_BASE', '')
    host = (request.host or "").lower()
    host_only = host.split(":")[0]
    if host_only in ("localhost", "127.0.0.1") or not canonical_base:
        uri = request.url_root.rstrip("/") + "/auth"
    else:
        uri = f"{canonical_base}/auth"
    current_app.logger.info("[AUTH] Using redirect_uri=%s (host=%s)", uri, host)
    return uri


def log_rejection(reason: str, details: str = "") -> None:
    """
    Log rejection reasons without exposing sensitive data.

    Args:
        reason: Short category (unauthenticated, validation, not_found, server_error)
        details: Safe description of the issue (no secrets, tokens, or DB details)
    """
    user_id = current_user.id if current_user.is_authenticated else "anonymous"
    endpoint = request.endpoint or "unknown"
    request_id = get_request_id()
    current_app.logger.warning(f"[REJECT] request_id={request_id} endpoint={endpoint} user={user_id} reason={reason} details={details}")
