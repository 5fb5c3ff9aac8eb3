# -*- coding: utf-8 -*-
"""
Public routes blueprint - login page and the sign-in flows.
"""

from flask import Blueprint, abort, current_app, flash, redirect, render_template, request, session, url_for
from flask_login import current_user, login_user, logout_user
from authlib.integrations.base_client.errors import MismatchingStateError, OAuthError

from launchkit.exceptions import ValidationError
from launchkit.extensions import limiter, oauth
from launchkit.identity import clear_session_identity, login_session_identity
from launchkit.services.magic_link_service import send_magic_link, verify_magic_link_token
from launchkit.services.user_service import (
    authenticate_password,
    find_or_create_user_by_email,
    mark_email_verified,
    upsert_oauth_user,
)
from launchkit.utils.http_helpers import api_ok, get_redirect_uri, get_request_id
from launchkit.utils.validation import normalize_email

# Create blueprint
bp = Blueprint('public', __name__)

LOGIN_MODES = ("magic-link", "password")

DEV_IDENTITY = {
    "id": "dev-user",
    "email": "developer@example.com",
    "name": "Dev User",
    "image": None,
}


def _render_login(mode="magic-link", email="", error=None, email_sent=False, status=200):
    return render_template(
        'login.html',
        login_mode=mode if mode in LOGIN_MODES else "magic-link",
        email=email,
        error=error,
        email_sent=email_sent,
        show_bypass=current_app.config.get("DEV_LOGIN_ENABLED", False),
        google_enabled=bool(current_app.config.get("GOOGLE_CLIENT_ID")),
    ), status


@bp.route('/healthz')
def healthz():
    return api_ok({"status": "ok"})


@bp.route('/')
@bp.route('/login')
def login():
    if current_user.is_authenticated:
        return redirect(url_for('dashboard.dashboard'))
    return _render_login(mode=request.args.get("mode", "magic-link"))


@bp.route('/login/email', methods=['POST'])
@limiter.limit("5/minute; 20/hour")
def login_email():
    raw_email = request.form.get("email", "")
    try:
        email = normalize_email(raw_email)
    except ValidationError as e:
        return _render_login(email=raw_email, error=e.message, status=400)

    if not send_magic_link(email):
        current_app.logger.error("[AUTH] magic link delivery failed request_id=%s", get_request_id())
        return _render_login(email=email, error="Failed to send magic link", status=502)
    return _render_login(email=email, email_sent=True)


@bp.route('/login/verify')
def verify_magic_link():
    try:
        email = verify_magic_link_token(request.args.get("token", ""))
        user, created = find_or_create_user_by_email(email)
    except ValidationError as e:
        flash(e.message, "error")
        return redirect(url_for('public.login'))
    mark_email_verified(user)
    clear_session_identity()
    login_user(user)
    current_app.logger.info("[AUTH] magic link sign-in user_id=%s new_account=%s", user.id, created)
    return redirect(url_for('dashboard.dashboard'))


@bp.route('/login/password', methods=['POST'])
@limiter.limit("10/minute; 50/hour")
def login_password():
    email = request.form.get("email", "")
    password = request.form.get("password", "")
    user = authenticate_password(email, password)
    if user is None:
        current_app.logger.info("[AUTH] password sign-in rejected request_id=%s", get_request_id())
        return _render_login(mode="password", email=email, error="Invalid email or password", status=401)
    clear_session_identity()
    login_user(user)
    return redirect(url_for('dashboard.dashboard'))


@bp.route('/login/google')
def login_google():
    if not current_app.config.get("GOOGLE_CLIENT_ID"):
        flash("Google sign-in is not configured.", "error")
        return redirect(url_for('public.login'))
    for key in [k for k in session.keys() if k.startswith("_state_google")]:
        session.pop(key, None)
    redirect_uri = get_redirect_uri()
    return oauth.google.authorize_redirect(redirect_uri)


@bp.route('/auth')
def auth():
    try:
        token = oauth.google.authorize_access_token()
        userinfo = token.get("userinfo") or oauth.google.userinfo()
        user = upsert_oauth_user(userinfo)
        clear_session_identity()
        login_user(user)
        return redirect(url_for('dashboard.dashboard'))
    except MismatchingStateError:
        current_app.logger.warning("[AUTH] mismatching_state request_id=%s", get_request_id())
        logout_user()
        flash("Your sign-in session expired, please try again.", "error")
        return redirect(url_for('public.login'))
    except (OAuthError, ValidationError):
        current_app.logger.exception("[AUTH] google login failed request_id=%s", get_request_id())
        logout_user()
        flash("Sign-in failed, please try again later.", "error")
        return redirect(url_for('public.login'))


@bp.route('/login/dev', methods=['POST'])
def login_dev():
    """Developer bypass. Only mounted in development and preview deployments."""
    if not current_app.config.get("DEV_LOGIN_ENABLED", False):
        abort(404)
    login_session_identity(dict(DEV_IDENTITY))
    current_app.logger.warning("[AUTH] developer bypass sign-in request_id=%s", get_request_id())
    return redirect(url_for('dashboard.dashboard'))


@bp.route('/logout', methods=['POST'])
def logout():
    logout_user()
    clear_session_identity()
    return redirect(url_for('public.login'))
