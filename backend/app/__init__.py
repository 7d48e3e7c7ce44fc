# backend/app/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate
from .services.integration import init_integration


def create_app(test_config=None, *, square_transport=None) -> Flask:
    """
    Application factory.

    test_config overrides Config keys; square_transport replaces the httpx
    transport of the Square client (tests pass an httpx.MockTransport).
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    services = init_integration(app, transport=square_transport)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.square import square_bp
    from .routes.cron import cron_bp
    from .routes.sales import sales_bp
    from .routes.inventory import inventory_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(square_bp)
    app.register_blueprint(cron_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(inventory_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and origin == app.config.get("APP_URL", "").rstrip("/"):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        return response

    if not services.settings.has_square_credentials:
        app.logger.warning("SQUARE_APP_ID / SQUARE_APP_SECRET not set; Square connect is disabled")

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
