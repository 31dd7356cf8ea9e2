import os
from pathlib import Path
import logging
from logging.handlers import RotatingFileHandler
from flask import Flask, jsonify
from .extensions import db, migrate, login_manager, mail
from .config import Config
from .models.user import User
from .services import razorpay_gateway

# Blueprints
from .blueprints.errors import errors_bp
from .blueprints.auth import auth_bp
from .blueprints.client import client_bp
from .blueprints.admin import admin_bp
from .blueprints.payments import payments_bp
from . import security  # noqa: F401  (registers the bearer-token loader)


# Optional: Sentry
def _init_sentry(app):
    dsn = app.config.get("SENTRY_DSN")
    if not dsn:
        return
    try:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        sentry_sdk.init(
            dsn=dsn,
            integrations=[FlaskIntegration(), SqlalchemyIntegration()],
            traces_sample_rate=app.config.get("SENTRY_TRACES_SAMPLE_RATE", 0.0),
            environment=os.getenv("ENV", "development"),
            release=os.getenv("GIT_COMMIT", None),
            send_default_pii=False,
        )
        app.logger.info("Sentry initialized.")
    except Exception as e:
        app.logger.warning(f"Sentry init failed: {e}")

def _init_logging(app):
    # Base level
    level_name = app.config.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    app.logger.setLevel(level)

    # Formatter: text or JSON
    if app.config.get("LOG_JSON", False):
        import json_log_formatter
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("[%(asctime)s] %(levelname)s in %(module)s: %(message)s")

    handlers = []
    if app.config.get("LOG_TO_FILE", True):
        log_dir = Path(app.config.get("LOG_DIR", "logs"))
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / app.config.get("LOG_FILENAME", "portal.log")
        # Rotating file handler (5MB x 5)
        handlers.append(RotatingFileHandler(
            log_path, maxBytes=5_000_000, backupCount=5, encoding="utf-8"
        ))

    # Stream to stdout as well (useful on dev/heroku/docker)
    handlers.append(logging.StreamHandler())

    # app.logger is the "portal" logger, so "portal.services.*" module loggers
    # propagate here too. Drop handlers left by an earlier create_app().
    for old in [h for h in app.logger.handlers if getattr(h, "_portal_handler", False)]:
        app.logger.removeHandler(old)
        old.close()
    for handler in handlers:
        handler._portal_handler = True
        handler.setLevel(level)
        handler.setFormatter(formatter)
        app.logger.addHandler(handler)

    app.logger.info("Logging initialized.")

def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)

    app.config.setdefault("SECRET_KEY", "change-me")
    app.config.setdefault(
        "SQLALCHEMY_DATABASE_URI",
        "sqlite:///" + os.path.join(app.instance_path, "portal.db"),
    )
    app.config.setdefault("SQLALCHEMY_TRACK_MODIFICATIONS", False)
    if not app.testing:
        app.config.from_pyfile("config.py", silent=True)

    # Logging must come before blueprints so errors during register are captured
    _init_logging(app)
    _init_sentry(app)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    mail.init_app(app)
    # gateway credentials are read once, here
    razorpay_gateway.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, user_id)

    # Blueprints
    app.register_blueprint(errors_bp)  # error handlers
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(client_bp, url_prefix="/client")
    app.register_blueprint(admin_bp, url_prefix="/admin")
    app.register_blueprint(payments_bp, url_prefix="/payments")

    @app.get("/health")
    def health():
        return jsonify({"status": "ok", "version": app.config.get("APP_VERSION")})

    return app
