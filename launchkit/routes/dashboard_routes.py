# -*- coding: utf-8 -*-
"""Dashboard and settings pages."""

from flask import Blueprint, render_template
from flask_login import current_user, login_required

from launchkit.gate import terms_gate

bp = Blueprint('dashboard', __name__)


@bp.route('/dashboard')
@login_required
@terms_gate
def dashboard():
    return render_template(
        'dashboard.html',
        first_name=current_user.first_name or "there",
    )


@bp.route('/settings')
@login_required
def settings():
    return render_template(
        'settings.html',
        has_password=bool(getattr(current_user, "password_hash", None)),
    )
