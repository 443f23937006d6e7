# backend/app/__init__.py
from __future__ import annotations

import logging

from flask import Flask, request

from .config import Config, engine_options_for
from .extensions import db, migrate



def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)

    if overrides:
        app.config.update(overrides)
        if "SQLALCHEMY_DATABASE_URI" in overrides and "SQLALCHEMY_ENGINE_OPTIONS" not in overrides:
            app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options_for(
                app.config["SQLALCHEMY_DATABASE_URI"],
                app.config["STORE_TIMEOUT_SECONDS"],
            )

    app.logger.setLevel(getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.waste_batches import waste_batches_bp
    from .routes.waste_auctions import waste_auctions_bp
    from .routes.waste_bids import waste_bids_bp
    from .routes.appointments import appointments_bp
    from .routes.staff import staff_bp
    from .routes.vehicles import vehicles_bp
    from .routes.customers import customers_bp
    from .routes.service_items import service_items_bp
    from .routes.reports import reports_bp
    from .routes.destruction import destruction_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(waste_batches_bp)
    app.register_blueprint(waste_auctions_bp)
    app.register_blueprint(waste_bids_bp)
    app.register_blueprint(appointments_bp)
    app.register_blueprint(staff_bp)
    app.register_blueprint(vehicles_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(service_items_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(destruction_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
