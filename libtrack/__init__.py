import logging

from flask import Flask, jsonify
from libtrack.config import Config
from libtrack.extensions import db, migrate, jwt, mail, socketio

from libtrack.db_objects import ensure_db_objects
from libtrack.errors import register_error_handlers
from libtrack.realtime import SocketIOBroadcaster, register_socket_handlers


def create_app(config_object=Config, broadcaster=None):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # 1) db first (db.engine / db.session)
    db.init_app(app)

    import libtrack.models  # noqa: F401  register every table

    # 2) single-active-penalty index, legacy status migration
    ensure_db_objects(app)

    # 3) other extensions
    migrate.init_app(app, db)
    jwt.init_app(app)
    mail.init_app(app)
    socketio.init_app(
        app,
        async_mode=app.config.get("SOCKETIO_ASYNC_MODE"),
        cors_allowed_origins=app.config.get("SOCKETIO_CORS_ORIGINS"),
    )
    register_socket_handlers(socketio)

    # 4) penalty service with its broadcast channel (tests inject a fake)
    from libtrack.services.penalty_service import PenaltyService
    app.extensions["penalty_service"] = PenaltyService(broadcaster or SocketIOBroadcaster(socketio))

    register_error_handlers(app)

    # 5) API blueprints
    from libtrack.controllers.auth_controller import auth_bp
    from libtrack.controllers.penalty_controller import penalty_bp
    from libtrack.controllers.fine_controller import fine_bp
    from libtrack.controllers.settings_controller import settings_bp
    from libtrack.controllers.transaction_controller import transaction_bp
    from libtrack.controllers.activity_controller import activity_bp
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(penalty_bp)
    app.register_blueprint(fine_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(transaction_bp)
    app.register_blueprint(activity_bp)

    @app.get("/health")
    def health():
        return jsonify({"ok": True})

    from libtrack.cli import register_cli
    register_cli(app)

    # Scheduler (daily penalty checks)
    from libtrack.tasks.scheduler import start_scheduler
    start_scheduler(app)

    return app
