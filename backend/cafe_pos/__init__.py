# backend/cafe_pos/__init__.py
import logging

from flask import Flask, jsonify

from .config import Config
from .extensions import db, migrate
from .serialization import to_json
from .validation import PosError


def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))
    logging.getLogger(__name__).setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .store import init_store
    init_store(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.inventory import inventory_bp
    from .routes.orders import orders_bp
    from .routes.purchases import purchases_bp
    from .routes.customers import customers_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(reports_bp)

    @app.errorhandler(PosError)
    def handle_pos_error(e: PosError):
        return jsonify({"error": str(e), "details": to_json(e.details)}), e.status_code

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
