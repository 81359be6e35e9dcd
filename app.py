"""
Medflix — Flask Web Application

JSON API for term-organised medical study summaries: progress and streak
tracking, embedded media, quizzes, and AI-assisted authoring for admins.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from dotenv import load_dotenv
from flask import Flask, Response, g, jsonify
from flask_wtf.csrf import CSRFError, CSRFProtect

import database
from auth import auth_bp, login_manager
from blueprints import register_blueprints
from errors import MedflixError
from extensions import limiter
from helpers import save_navigation
from navigation import InvalidTransition
from preferences import init_preferences

logger = logging.getLogger(__name__)


def create_app(test_config: dict[str, Any] | None = None) -> Flask:
    load_dotenv()
    app = Flask(__name__)

    # Load config
    if test_config is not None:
        from config import TestingConfig
        app.config.from_object(TestingConfig)
        app.config.update(test_config)
    else:
        from config import config_by_name
        env = os.environ.get("FLASK_ENV", "development")
        cfg = config_by_name.get(env, config_by_name["development"])
        app.config.from_object(cfg)
        if hasattr(cfg, "validate"):
            cfg.validate()

    app.secret_key = app.config.get("SECRET_KEY", os.environ.get("SECRET_KEY", "dev-key-change-in-production"))

    # CSRF protection
    csrf = CSRFProtect(app)
    app.extensions["csrf"] = csrf

    # Structured logging
    from logging_config import init_logging
    init_logging(app)

    # Register database teardown
    database.init_app(app)

    # Theme / last-viewed persistence (Redis or JSON file)
    init_preferences(app)

    # Rate limiter (disabled in testing)
    limiter.init_app(app)
    if app.config.get("TESTING"):
        limiter.enabled = False

    # Register auth blueprint and login manager
    app.register_blueprint(auth_bp)
    login_manager.init_app(app)

    # Register all application blueprints
    register_blueprints(app)

    # ── Error handlers ────────────────────────────────────

    @app.errorhandler(MedflixError)
    def handle_app_error(e: MedflixError):
        logger.info("%s: %s", e.__class__.__name__, e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(InvalidTransition)
    def handle_invalid_transition(e: InvalidTransition):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e: CSRFError):
        return jsonify({"error": e.description}), 400

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify({"error": "Not found."}), 404

    @app.errorhandler(413)
    def handle_too_large(e):
        return jsonify({"error": "Upload too large."}), 413

    @app.errorhandler(429)
    def handle_rate_limited(e):
        return jsonify({"error": "Too many requests. Try again later."}), 429

    # Persist the navigation machine for the next request
    @app.after_request
    def persist_navigation(response: Response) -> Response:
        coord = g.get("coordinator")
        if coord is not None:
            save_navigation(coord)
        return response

    # The coordinator belongs to one request, even when the app context outlives it
    @app.teardown_request
    def drop_coordinator(exc: BaseException | None = None) -> None:
        g.pop("coordinator", None)
        g.pop("log_user_id", None)
        g.pop("_login_user", None)

    # Security headers
    @app.after_request
    def set_security_headers(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "frame-src https://drive.google.com https://open.spotify.com; "
            "img-src 'self' data:; "
            "connect-src 'self'"
        )
        if not app.debug:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=5001)
