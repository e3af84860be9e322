"""
TaskHub
Flask Application Factory.

Usage:
    from taskhub import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, abort, request
from flask_cors import CORS
from flask_migrate import Migrate

from taskhub.config import config
from taskhub.middleware.jwt_auth import init_jwt_middleware
from taskhub.middleware.logging_config import configure_logging
from taskhub.middleware.timing import init_request_timing
from taskhub.models import db
from taskhub.services.notification import init_notifier
from taskhub.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

migrate = Migrate()


def create_app(config_name=None, notifier=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.
        notifier: Optional real-time emitter ``emitter(recipient_ids, payload)``.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()],
             supports_credentials=True)
    else:
        CORS(app)

    # ── Request timing + auth state ──────────────────────────────────────
    init_request_timing(app)
    init_jwt_middleware(app)
    init_notifier(app, notifier)

    # ── Request guards (input length + Content-Type) ─────────────────────
    app.config.setdefault("MAX_CONTENT_LENGTH", 2 * 1024 * 1024)  # 2 MB

    @app.before_request
    def _guard_request():
        max_len = app.config.get("MAX_CONTENT_LENGTH")
        if max_len and request.content_length and request.content_length > max_len:
            abort(413, description="Request body too large")
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            if request.data and "json" not in (request.content_type or ""):
                abort(415, description="Content-Type must be application/json")

    # ── Import all models so Alembic can detect them ─────────────────────
    from taskhub.models import department as _department_models      # noqa: F401
    from taskhub.models import inventory as _inventory_models        # noqa: F401
    from taskhub.models import notification as _notification_models  # noqa: F401
    from taskhub.models import organization as _organization_models  # noqa: F401
    from taskhub.models import task as _task_models                  # noqa: F401
    from taskhub.models import user as _user_models                  # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from taskhub.blueprints.auth_bp import auth_bp
    from taskhub.blueprints.department_bp import department_bp
    from taskhub.blueprints.health_bp import health_bp
    from taskhub.blueprints.inventory_bp import inventory_bp
    from taskhub.blueprints.notification_bp import notification_bp
    from taskhub.blueprints.organization_bp import organization_bp
    from taskhub.blueprints.task_activity_bp import task_activity_bp
    from taskhub.blueprints.task_bp import task_bp
    from taskhub.blueprints.task_comment_bp import task_comment_bp
    from taskhub.blueprints.user_bp import user_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(health_bp)
    app.register_blueprint(organization_bp)
    app.register_blueprint(department_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(task_bp)
    app.register_blueprint(task_activity_bp)
    app.register_blueprint(task_comment_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(notification_bp)

    # ── Error handlers ───────────────────────────────────────────────────
    register_error_handlers(app)

    return app
