# backend/branchstock/__init__.py
import os

from flask import Flask, request

from .config import Config
from .extensions import db, migrate
from .responses import failure


def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    # Applied before init_app: Flask-SQLAlchemy binds engines at init time
    if overrides:
        app.config.update(overrides)

    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db, directory=os.path.join(os.path.dirname(app.root_path), "migrations"))

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.branches import branches_bp
    from .routes.products import products_bp
    from .routes.invoices import invoices_bp
    from .routes.payments import payments_bp
    from .routes.users import users_bp
    from .routes.transfers import transfers_bp
    from .routes.reports import reports_bp
    from .routes.dashboard import dashboard_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(branches_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(transfers_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(dashboard_bp)

    @app.errorhandler(404)
    def not_found(_error):
        return failure("Resource not found", 404)

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return failure("Method not allowed", 405)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type, X-User-Id"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
