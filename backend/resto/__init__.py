# backend/resto/__init__.py
import logging

from flask import Flask, request
from werkzeug.exceptions import HTTPException

from .config import Config
from .extensions import db, migrate
from .responses import failure


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    app.logger.setLevel(level)
    logging.getLogger("resto").setLevel(level)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    _configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.inventory import inventory_bp
    from .routes.orders import orders_bp
    from .routes.cash_close import cash_close_bp
    from .routes.analytics import analytics_bp
    from .routes.day import day_bp
    from .routes.users import users_bp
    from .routes.restaurant import restaurant_bp
    from .routes.realtime import realtime_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(cash_close_bp)
    app.register_blueprint(analytics_bp)
    app.register_blueprint(day_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(restaurant_bp)
    app.register_blueprint(realtime_bp)

    @app.errorhandler(404)
    def not_found(_error):
        return failure("Route not found", 404)

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return failure("Method not allowed", 405)

    @app.errorhandler(HTTPException)
    def http_error(error):
        return failure(error.description or error.name, error.code or 500)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and origin in app.config.get("CORS_ALLOWED_ORIGINS", []):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
