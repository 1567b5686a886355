# investdesk/__init__.py
from __future__ import annotations

import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .settings import Config
from .extensions import db, migrate, login_manager, limiter
from .errors import ServiceError


def create_app(config_object: object | None = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    # ======================
    # Logging
    # ======================
    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")), logging.INFO))

    # ======================
    # Initialize Extensions
    # ======================
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)

    # ======================
    # Import Models (CRITICAL)
    # ======================
    from . import models  # noqa: F401

    # ======================
    # Register Blueprints
    # ======================
    from .routes import main
    from .auth import auth
    from .investors import investors_bp
    from .admin import admin_bp

    app.register_blueprint(main)
    app.register_blueprint(auth)
    app.register_blueprint(investors_bp)
    app.register_blueprint(admin_bp)

    # ======================
    # CLI
    # ======================
    from .cli import register_commands

    register_commands(app)

    register_error_handlers(app)
    return app


def register_error_handlers(app: Flask) -> None:
    # ======================
    # Service errors (validation / forbidden / not found / allocation)
    # ======================
    @app.errorhandler(ServiceError)
    def service_error(e: ServiceError):
        return jsonify(e.to_dict()), e.status_code

    # ======================
    # Rate limit / forbidden / not found / method, as JSON
    # ======================
    @app.errorhandler(HTTPException)
    def http_error(e: HTTPException):
        messages = {
            403: "This action is unauthorized.",
            404: "Not found.",
            429: "Too many requests. Please try again later.",
        }
        return jsonify({"message": messages.get(e.code, e.description)}), e.code
