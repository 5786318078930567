# backend/tokopos/__init__.py
import atexit
import logging

from flask import Flask, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from .config import Config
from .errors import DuplicateError, error_response
from .extensions import db, migrate


def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.sync import sync_bp
    from .routes.sync_sales import sync_sales_bp
    from .routes.sync_inventory import sync_inventory_bp
    from .routes.stock import stock_bp
    from .routes.purchases import purchases_bp
    from .routes.repack import repack_bp
    from .routes.jobs import jobs_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(sync_bp)
    app.register_blueprint(sync_sales_bp)
    app.register_blueprint(sync_inventory_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(repack_bp)
    app.register_blueprint(jobs_bp)

    _register_error_handlers(app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    if app.config.get("TOMBSTONE_RETENTION_ENABLED") and not app.config.get("TESTING"):
        from .services.retention_service import RetentionScheduler
        scheduler = RetentionScheduler(app)
        scheduler.start()
        atexit.register(scheduler.stop)
        app.extensions["tombstone_retention"] = scheduler

    return app


def _register_error_handlers(app: Flask) -> None:
    """Render framework-level errors in the same {ok:false, error:{...}} envelope."""

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        code = {
            400: "VALIDATION_ERROR",
            401: "UNAUTHORIZED",
            403: "FORBIDDEN",
            404: "NOT_FOUND",
            405: "METHOD_NOT_ALLOWED",
        }.get(exc.code, "HTTP_ERROR")
        return jsonify({"ok": False, "error": {"code": code, "message": exc.description}}), exc.code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(exc: IntegrityError):
        db.session.rollback()
        app.logger.warning("integrity-error %s", exc.orig)
        return error_response(DuplicateError("Unique constraint violated"))

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        db.session.rollback()
        app.logger.exception("unhandled-error")
        return jsonify({"ok": False, "error": {"code": "INTERNAL_ERROR", "message": "Internal server error"}}), 500
