"""
PICA Monitor
Flask Application Factory.

Usage:
    from pica_monitor import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from pica_monitor.config import config
from pica_monitor.models import db
from pica_monitor.middleware.logging_config import configure_logging
from pica_monitor.middleware.timing import init_request_timing
from pica_monitor.middleware.security_headers import init_security_headers
from pica_monitor.middleware.rate_limiter import init_rate_limits
from pica_monitor.middleware.jwt_auth import init_jwt_middleware
from pica_monitor.repositories.memory import InMemoryPicaStore
from pica_monitor.repositories.sql import SqlAlchemyPicaStore
from pica_monitor.services.status_derivation import server_today

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
    default_limits=[],                     # no global limit, applied per blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),  # Redis in production, memory for dev
)

STORE_BACKENDS = {
    "sql": SqlAlchemyPicaStore,
    "memory": InMemoryPicaStore,
}


def _init_pica_store(app):
    """Attach the configured record store and clock to ``app.extensions``."""
    backend = app.config.get("PICA_STORE_BACKEND", "sql")
    try:
        store_cls = STORE_BACKENDS[backend]
    except KeyError:
        raise RuntimeError(
            f"Unknown PICA_STORE_BACKEND {backend!r}; expected one of {sorted(STORE_BACKENDS)}"
        ) from None
    app.extensions["pica_store"] = store_cls()
    app.extensions["pica_clock"] = server_today
    app.logger.info("PICA store backend: %s", backend)


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
    app.config.from_object(config[config_name])
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

    # ── Security headers ─────────────────────────────────────────────────
    init_security_headers(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── JWT auth middleware (sets g.actor) ───────────────────────────────
    init_jwt_middleware(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    app.config.setdefault("MAX_CONTENT_LENGTH", 1024 * 1024)  # 1 MB

    @app.before_request
    def _guard_request():
        from flask import request as _req, abort
        if _req.method in ("POST", "PUT", "PATCH") and _req.path.startswith("/api/"):
            ct = _req.content_type or ""
            if _req.data and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Import all models so Alembic can detect them ─────────────────────
    from pica_monitor.models import organization as _organization_models  # noqa: F401
    from pica_monitor.models import reference as _reference_models        # noqa: F401
    from pica_monitor.models import pica as _pica_models                  # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS; migrations own changes) ─
    if app.config.get("PICA_STORE_BACKEND", "sql") == "sql":
        with app.app_context():
            try:
                db.create_all()
                app.logger.info("db.create_all() completed successfully")
            except Exception as e:
                app.logger.warning("db.create_all() failed: %s", e)

    # ── Record store ─────────────────────────────────────────────────────
    _init_pica_store(app)

    # ── Blueprints ───────────────────────────────────────────────────────
    from pica_monitor.blueprints.pica_bp import pica_bp
    from pica_monitor.blueprints.user_bp import user_bp
    from pica_monitor.blueprints.health_bp import health_bp

    app.register_blueprint(pica_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(health_bp)

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        from flask import request
        return {"error": "Not found", "code": "ERR_NOT_FOUND", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(415)
    def unsupported_media_type(e):
        return {"error": e.description or "Unsupported media type"}, 415

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
