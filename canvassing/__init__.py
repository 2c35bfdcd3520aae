"""
canvassing/__init__.py

Flask application factory for the PR canvassing service.

Requirements:
- JSON API only; every error, including 401/403/404, answers with JSON.
- SQLite for development, any SQLAlchemy URL in production (Flask-Migrate).
- Client is never trusted; access control is enforced server-side.

Shared services live in app.extensions["canvassing"]:
- "store":    SqlRequestStore (table store keyed by PR number)
- "registry": RequestRegistry (intake + listing with local pending-sync list)
- "context":  WorkflowContext (clock, identity rule, return window)
"""

from __future__ import annotations

import logging
from decimal import Decimal

import click
from flask import Flask, jsonify, url_for
from flask_login import current_user
from werkzeug.exceptions import HTTPException

from .errors import CanvassError
from .extensions import csrf, db, login_manager, migrate
from .logging_config import setup_logging
from .models import User
from .security import viewer_readonly_guard
from .store import RequestRegistry, SqlRequestStore
from .workflow import WorkflowContext

logger = logging.getLogger(__name__)


def create_app(config_object="config.Config") -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    setup_logging(
        level=app.config.get("LOG_LEVEL"),
        json_logs=app.config.get("LOG_JSON"),
        log_file=app.config.get("LOG_FILE"),
    )

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id: str) -> User | None:
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Unauthorized", "message": "Login required."}), 401

    # ----------------------------------------------------------------------
    # GLOBAL SECURITY NET: viewer read-only guard
    # ----------------------------------------------------------------------
    @app.before_request
    def _viewer_guard_hook():
        """Routes still enforce their own permissions; this only backs them up."""
        return viewer_readonly_guard()

    # ----------------------------------------------------------------------
    # Services
    # ----------------------------------------------------------------------
    store = SqlRequestStore(db, threshold=Decimal(str(app.config.get("HIGH_VALUE_THRESHOLD", 10000))))
    app.extensions["canvassing"] = {
        "store": store,
        "registry": RequestRegistry(store),
        "context": WorkflowContext(
            store=store,
            enforce_signer_identity=bool(app.config.get("CANVASS_ENFORCE_SIGNER_IDENTITY")),
            return_window_days=int(app.config.get("CANVASS_RETURN_WINDOW_DAYS", 7)),
        ),
    }

    # ----------------------------------------------------------------------
    # Blueprints (JSON API, exempt from form CSRF)
    # ----------------------------------------------------------------------
    from .blueprints.auth import auth_bp
    from .blueprints.canvass import canvass_bp
    from .blueprints.purchase_requests import requests_bp

    for bp in (auth_bp, requests_bp, canvass_bp):
        csrf.exempt(bp)
        app.register_blueprint(bp)

    register_error_handlers(app)

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("seed-defaults")
    def seed_defaults_command():
        """Seed BAC members and divisions/canvassers."""
        from .seed import seed_defaults

        created = seed_defaults()
        click.echo(
            f"Seeded {created['bac_members']} BAC members and {created['divisions']} divisions."
        )

    # ----------------------------------------------------------------------
    # Home
    # ----------------------------------------------------------------------
    @app.route("/")
    def index():
        return jsonify({
            "app": app.config.get("APP_NAME"),
            "authenticated": bool(current_user.is_authenticated),
            "links": {
                "login": url_for("auth.login"),
                "requests": url_for("purchase_requests.list_requests"),
            },
        })

    logger.info("Application created with %s", config_object)
    return app


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(CanvassError)
    def _canvass_error(exc: CanvassError):
        if exc.status_code >= 500:
            logger.error("%s: %s", exc.__class__.__name__, exc.message)
        else:
            logger.info("%s: %s", exc.__class__.__name__, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):
        return jsonify({"error": exc.name, "message": exc.description}), exc.code
