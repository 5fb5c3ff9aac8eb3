# -*- coding: utf-8 -*-
# ===================================================================
# launchkit entrypoint
# gunicorn "main:create_app()" --bind 0.0.0.0:$PORT
# Do not build the app at import time (it would initialise twice).
# ===================================================================

import os

from launchkit.extensions import db
from launchkit.factory import create_app
from launchkit.models import Terms, User, UserTermsAcceptance

__all__ = ["create_app", "db", "User", "Terms", "UserTermsAcceptance"]


if __name__ == '__main__':
    app = create_app()
    port = int(os.environ.get('PORT', 5001))
    debug = os.environ.get('FLASK_DEBUG', '').lower() in ('1', 'true', 'yes')
    app.run(host='0.0.0.0', port=port, debug=debug)
