# backend/stitchline/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate



def create_app(config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    # Overrides must land before db.init_app builds the engine
    if config:
        app.config.update(config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.webhooks import webhooks_bp
    from .routes.fulfillment import fulfillment_bp
    from .routes.points import points_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(webhooks_bp)
    app.register_blueprint(fulfillment_bp)
    app.register_blueprint(points_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
