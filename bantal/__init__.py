"""
BANTAL Back-Office
Flask Application Factory.

Usage:
    from bantal import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from bantal.config import basedir, config
from bantal.models import db
from bantal.middleware.logging_config import configure_logging
from bantal.middleware.timing import init_request_timing
from bantal.middleware.sso_auth import init_sso_middleware
from bantal.middleware.rate_limiter import init_rate_limits
from bantal.services.document_factory import factory as document_factory

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


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
    default_limits=[],                     # per-blueprint limits only
    storage_uri=os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
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
    app.config.from_object(config[config_name]())

    if not app.config.get("TESTING"):
        os.makedirs(os.path.join(basedir, "instance"), exist_ok=True)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()], supports_credentials=True)
    else:
        CORS(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── SSO auth middleware (sets g.identity) ────────────────────────────
    init_sso_middleware(app)

    # ── Request guards (body size + Content-Type) ────────────────────────
    if not app.config.get("MAX_CONTENT_LENGTH"):
        app.config["MAX_CONTENT_LENGTH"] = app.config["MAX_UPLOAD_BYTES"] * 3

    @app.before_request
    def _guard_request():
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.content_length and "json" not in ct and "multipart/form-data" not in ct:
                abort(415, description="Content-Type must be application/json or multipart/form-data")

    # ── Import all models so Alembic can detect them ─────────────────────
    from bantal.models import organization as _organization_models  # noqa: F401
    from bantal.models import identity as _identity_models          # noqa: F401
    from bantal.models import document as _document_models          # noqa: F401
    from bantal.models import project as _project_models            # noqa: F401
    from bantal.models import blob as _blob_models                  # noqa: F401

    # ── Auto-create tables + seed document types ─────────────────────────
    with app.app_context():
        try:
            db.create_all()
            from bantal.services.document_type_service import seed_default_types
            seed_default_types()
            db.session.commit()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            db.session.rollback()
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Document factory (dispatch table loaded before serving) ─────────
    document_factory.init_app(app)

    # ── Blueprints ───────────────────────────────────────────────────────
    from bantal.blueprints.document_bp import document_bp
    from bantal.blueprints.project_bp import project_bp
    from bantal.blueprints.identity_bp import identity_bp
    from bantal.blueprints.organization_bp import organization_bp
    from bantal.blueprints.health_bp import health_bp

    app.register_blueprint(document_bp)
    app.register_blueprint(project_bp)
    app.register_blueprint(identity_bp)
    app.register_blueprint(organization_bp)
    app.register_blueprint(health_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-document-types")
    def seed_document_types_cmd():
        """Insert the built-in document types and reload the document factory."""
        from bantal.services.document_type_service import seed_default_types
        count = seed_default_types()
        db.session.commit()
        document_factory.load()
        logger.info("Seeded %s new document types.", count)

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "code": "ERR_NOT_FOUND", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "Request body too large", "code": "ERR_PAYLOAD_TOO_LARGE"}, 413

    @app.errorhandler(415)
    def unsupported_media(e):
        return {"error": e.description}, 415

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error", "code": "ERR_INTERNAL"}, 500

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
