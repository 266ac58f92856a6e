"""
Branch Visit Reporting Platform
Flask Application Factory.

Usage:
    from branchvisit import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from branchvisit.auth import init_auth
from branchvisit.config import config
from branchvisit.middleware.logging_config import configure_logging
from branchvisit.middleware.rate_limiter import init_rate_limits
from branchvisit.middleware.security_headers import init_security_headers
from branchvisit.middleware.timing import init_request_timing
from branchvisit.models import db

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine  # noqa: E402


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit, applied per blueprint
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    config_cls = config[config_name]
    # ProductionConfig checks required env vars on instantiation
    app.config.from_object(config_cls() if config_name == "production" else config_cls)
    os.makedirs(app.instance_path, exist_ok=True)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Actor resolution & CSRF guard ────────────────────────────────────
    init_auth(app)

    # ── Security headers ─────────────────────────────────────────────────
    init_security_headers(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from branchvisit.models import audit as _audit_models    # noqa: F401
    from branchvisit.models import branch as _branch_models  # noqa: F401
    from branchvisit.models import user as _user_models      # noqa: F401
    from branchvisit.models import visit as _visit_models    # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ─────────────────────────
    if app.config.get("AUTO_CREATE_TABLES", True):
        with app.app_context():
            db.create_all()

    # ── Blueprints ───────────────────────────────────────────────────────
    from branchvisit.blueprints.analytics_bp import analytics_bp
    from branchvisit.blueprints.assignment_bp import assignment_bp
    from branchvisit.blueprints.export_bp import export_bp
    from branchvisit.blueprints.health_bp import health_bp
    from branchvisit.blueprints.review_bp import review_bp
    from branchvisit.blueprints.visit_bp import visit_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(visit_bp)
    app.register_blueprint(review_bp)
    app.register_blueprint(assignment_bp)
    app.register_blueprint(analytics_bp)
    app.register_blueprint(export_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-demo")
    @click.option("--reset", is_flag=True, help="Drop and recreate all tables first.")
    def seed_demo_cmd(reset):
        """Seed demo users, branches, assignments and visits."""
        from branchvisit.seed import seed_demo

        if reset:
            db.drop_all()
            db.create_all()
        counts = seed_demo()
        click.echo(", ".join(f"{k}={v}" for k, v in counts.items()))

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "code": "ERR_NOT_FOUND", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed", "code": "ERR_METHOD_NOT_ALLOWED"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "Request body too large", "code": "ERR_PAYLOAD_TOO_LARGE"}, 413

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error", "code": "ERR_INTERNAL"}, 500

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    logger.info("Application created (config=%s)", config_name)
    return app
