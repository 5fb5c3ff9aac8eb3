# -*- coding: utf-8 -*-
# ===================================================================
# launchkit – auth, settings and Terms of Service starter
# ===================================================================

import os
import logging
import uuid
import time as pytime
from urllib.parse import urlparse

from flask import Flask, g, redirect, request, url_for
from flask_login import current_user
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge
from werkzeug.middleware.proxy_fix import ProxyFix

from launchkit.extensions import db, limiter, login_manager, migrate, oauth
from launchkit.utils.http_helpers import api_error, get_request_id, log_rejection, json_error
from launchkit.utils.sanitization import format_long_date, render_markdown

# JSON POST endpoints that rely on the session cookie
SESSION_JSON_POST_PREFIXES = ('/api/terms/', '/api/user/', '/api/rpc/')
NO_STORE_PREFIXES = ('/dashboard', '/settings', '/api/')


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes")


def create_app(config_overrides=None):
    base_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    templates_dir = os.path.join(base_dir, "templates")
    static_dir = os.path.join(base_dir, "static")
    app = Flask(__name__, template_folder=templates_dir, static_folder=static_dir)

    # Structured logging to stdout
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper().strip() or "INFO",
        format='%(asctime)s [%(levelname)s] %(name)s %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    logger = logging.getLogger(__name__)

    # ---- Deployment environment ----
    app_env = os.environ.get("APP_ENV", "production").strip().lower() or "production"
    deploy_env = os.environ.get("DEPLOY_ENV", "").strip().lower()
    is_production = app_env == "production" and deploy_env != "preview"
    app.config["APP_ENV"] = app_env
    app.config["DEPLOY_ENV"] = deploy_env
    # Developer bypass login: development or preview deployments only
    app.config["DEV_LOGIN_ENABLED"] = app_env == "development" or deploy_env == "preview"
    app.config["PROJECT_NAME"] = os.environ.get("PROJECT_NAME", "launchkit").strip() or "launchkit"

    canonical_base = os.environ.get("CANONICAL_BASE", "").strip().rstrip("/")
    app.config["CANONICAL_BASE"] = canonical_base
    canonical_host = (urlparse(canonical_base).hostname or "").lower() if canonical_base else ""

    # ProxyFix: trust N proxies in front of the app
    trusted_proxy_count = int(os.environ.get("TRUSTED_PROXY_COUNT", "1"))
    app.wsgi_app = ProxyFix(
        app.wsgi_app,
        x_for=trusted_proxy_count,
        x_proto=trusted_proxy_count,
        x_host=trusted_proxy_count,
        x_prefix=0,
    )
    logger.info("ProxyFix configured with trusted_proxy_count=%s", trusted_proxy_count)

    # ======================
    # Database + secrets
    # ======================
    db_url = os.environ.get("DATABASE_URL", "").strip()
    secret_key = os.environ.get("SECRET_KEY", "").strip()

    # Normalize deprecated prefix for SQLAlchemy
    if db_url.startswith("postgres://"):
        db_url = db_url.replace("postgres://", "postgresql://", 1)

    if is_production and not db_url:
        raise RuntimeError("DATABASE_URL is missing. Set DATABASE_URL or APP_ENV=development for local runs.")
    if is_production and not secret_key:
        raise RuntimeError("SECRET_KEY is missing. Set SECRET_KEY or APP_ENV=development for local runs.")

    app.config["SQLALCHEMY_DATABASE_URI"] = db_url if db_url else "sqlite:///:memory:"
    app.config["SECRET_KEY"] = secret_key if secret_key else "dev-secret-key-that-is-not-secret"
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    # Limit request payload size (64 KB)
    app.config["MAX_CONTENT_LENGTH"] = 64 * 1024

    # Session cookie configuration
    app.config["SESSION_COOKIE_SECURE"] = is_production
    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    app.config["REMEMBER_COOKIE_HTTPONLY"] = True

    if db_url and "postgresql" in db_url:
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
            "pool_pre_ping": True,
            "pool_recycle": 240,
            "pool_size": 5,
            "max_overflow": 10,
        }

    if not db_url:
        logger.warning("[BOOT] DATABASE_URL not set. Using in-memory sqlite (LOCAL DEV ONLY).")
    if not secret_key:
        logger.warning("[BOOT] SECRET_KEY not set. Using dev fallback (LOCAL DEV ONLY).")

    # Magic link + mail
    app.config["MAGIC_LINK_MAX_AGE_SECONDS"] = int(os.environ.get("MAGIC_LINK_MAX_AGE_SECONDS", str(60 * 60 * 24)))
    app.config["SMTP_HOST"] = os.environ.get("SMTP_HOST", "").strip()
    app.config["SMTP_PORT"] = int(os.environ.get("SMTP_PORT", "587"))
    app.config["SMTP_USER"] = os.environ.get("SMTP_USER", "").strip()
    app.config["SMTP_PASSWORD"] = os.environ.get("SMTP_PASSWORD", "")
    app.config["SMTP_USE_TLS"] = _env_flag("SMTP_USE_TLS", "1")
    app.config["MAIL_FROM"] = os.environ.get("MAIL_FROM", "no-reply@localhost").strip()

    # OAuth
    app.config["GOOGLE_CLIENT_ID"] = os.environ.get("GOOGLE_CLIENT_ID", "").strip()
    app.config["GOOGLE_CLIENT_SECRET"] = os.environ.get("GOOGLE_CLIENT_SECRET", "").strip()

    # Rate limiting
    app.config["RATELIMIT_STORAGE_URI"] = os.environ.get("LIMITER_STORAGE_URI", "").strip() or "memory://"
    app.config["RATELIMIT_ENABLED"] = not _env_flag("RATELIMIT_DISABLED")
    app.config["RATELIMIT_HEADERS_ENABLED"] = True

    if config_overrides:
        app.config.update(config_overrides)

    if db_url:
        parsed_db_url = urlparse(db_url)
        safe_host = parsed_db_url.hostname or ""
        safe_port = f":{parsed_db_url.port}" if parsed_db_url.port else ""
        safe_db = (parsed_db_url.path or "").lstrip("/")
        logger.info("[DB] DATABASE host=%s%s db=%s", safe_host, safe_port, safe_db or "(default)")

    # Init
    db.init_app(app)
    login_manager.init_app(app)
    oauth.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    # Registers the user_loader
    import launchkit.identity  # noqa: F401

    login_manager.login_view = 'public.login'

    @app.before_request
    def assign_request_id_and_redirect():
        """
        Assign a request_id + start_time early and enforce canonical host redirect.
        """
        if not getattr(g, "request_id", None):
            g.request_id = str(uuid.uuid4())
        g.start_time = pytime.perf_counter()

        host = (request.host or "").lower()
        host_parts = host.split(":")
        hostname_only = host_parts[0]
        port_part = f":{host_parts[1]}" if len(host_parts) > 1 else ""
        if canonical_host and hostname_only == f"www.{canonical_host}":
            target_host = canonical_host + port_part
            parsed = urlparse(request.url)
            return redirect(parsed._replace(netloc=target_host).geturl(), code=301)

    @app.before_request
    def check_origin_for_session_posts():
        """
        Session-authenticated JSON POSTs must come from our own origin.
        Requests without Origin/Referer (non-browser clients) are let through.
        """
        if request.method != 'POST' or not request.path.startswith(SESSION_JSON_POST_PREFIXES):
            return None
        source = request.headers.get('Origin') or request.headers.get('Referer')
        if not source:
            return None
        source_host = (urlparse(source).netloc or "").lower()
        allowed = {(request.host or "").lower()}
        if canonical_host:
            allowed.add(canonical_host)
        if source_host not in allowed:
            logger.warning("[CSRF] Blocked POST to %s from origin %s", request.path, source_host)
            return json_error("Forbidden", 403)
        return None

    @app.before_request
    def log_request_metadata():
        path = request.path or ""
        if not path.startswith("/static/"):
            logger.info(
                f"[REQ] request_id={get_request_id()} {request.method} {path} "
                f"host={request.host} scheme={request.scheme} auth={current_user.is_authenticated}"
            )

    @app.context_processor
    def inject_template_globals():
        return {
            "is_logged_in": current_user.is_authenticated,
            "current_user": current_user,
            "project_name": app.config["PROJECT_NAME"],
        }

    app.jinja_env.filters["markdown"] = render_markdown
    app.jinja_env.filters["long_date"] = format_long_date

    # Return 401 for AJAX/JSON requests, otherwise redirect to login
    @login_manager.unauthorized_handler
    def unauthorized():
        if request.path.startswith("/api/") or request.is_json or request.accept_mimetypes.best == "application/json":
            log_rejection("unauthenticated", "User not logged in, no valid session")
            return json_error("Unauthorized", 401)
        return redirect(url_for('public.login'))

    @app.errorhandler(RequestEntityTooLarge)
    def handle_request_too_large(e):
        return api_error("payload_too_large", "Payload exceeds limit", status=413, details={"field": "payload"})

    @app.errorhandler(429)
    def handle_rate_limited(e):
        log_rejection("rate_limited", str(e.description))
        if request.path.startswith("/api/"):
            return api_error("rate_limited", "Too many requests, please slow down", status=429)
        return "Too many requests, please try again in a minute.", 429

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return e
        db.session.rollback()
        logger.exception("[ERROR] unhandled request_id=%s path=%s", get_request_id(), request.path)
        if request.path.startswith("/api/"):
            return api_error("internal_error", "Internal server error", status=500)
        return "Internal server error", 500

    @app.after_request
    def apply_security_headers(response):
        rid = get_request_id()
        response.headers.setdefault("X-Request-ID", rid)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault(
            "Permissions-Policy",
            "geolocation=(), microphone=(), camera=(), payment=()"
        )
        response.headers.setdefault("Cross-Origin-Opener-Policy", "same-origin")
        if is_production or request.is_secure:
            response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains")

        duration_ms = None
        if hasattr(g, "start_time"):
            duration_ms = (pytime.perf_counter() - g.start_time) * 1000
        if not request.path.startswith("/static/"):
            user_id = current_user.id if current_user.is_authenticated else "anonymous"
            logger.info(
                f"[RESP] request_id={rid} method={request.method} path={request.path} "
                f"status={response.status_code} duration_ms={(duration_ms or 0):.2f} user={user_id}"
            )
        return response

    @app.after_request
    def apply_cache_control(response):
        if request.path.startswith(NO_STORE_PREFIXES):
            response.headers["Cache-Control"] = "no-store"
            response.headers["Pragma"] = "no-cache"
            response.headers["Expires"] = "0"
        return response

    @app.teardown_request
    def teardown_request_handler(exc):
        try:
            db.session.rollback()
        except Exception:
            logger.exception("[DB] teardown rollback failed")
        finally:
            db.session.remove()

    # Local dev convenience: create tables when running on the sqlite fallback
    if not db_url and not _env_flag("SKIP_CREATE_ALL"):
        with app.app_context():
            db.create_all()
            logger.info("[DB] create_all executed on sqlite fallback")

    oauth.register(
        name='google',
        client_id=app.config["GOOGLE_CLIENT_ID"] or None,
        client_secret=app.config["GOOGLE_CLIENT_SECRET"] or None,
        server_metadata_url='https://accounts.google.com/.well-known/openid-configuration',
        client_kwargs={'scope': 'openid email profile'},
    )

    # Register blueprints
    from launchkit.routes.public_routes import bp as public_bp
    from launchkit.routes.dashboard_routes import bp as dashboard_bp
    from launchkit.routes.terms_routes import bp as terms_bp
    from launchkit.routes.user_routes import bp as user_bp
    from launchkit.routes.rpc_routes import bp as rpc_bp
    app.register_blueprint(public_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(terms_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(rpc_bp)

    from launchkit.cli import register_commands
    register_commands(app)

    return app
