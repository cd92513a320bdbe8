from __future__ import annotations

import logging
import os
import sys

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import Config
from .maintenance.cleanup import cleanup_old_rooms
from .realtime.handlers import register_socketio_handlers
from .routes.health import bp as health_bp
from .routes.rooms import bp as rooms_bp
from .routes.words import bp as words_bp
from .store.memory import InMemoryStore


log = logging.getLogger(__name__)


def _start_cleanup_task(socketio: SocketIO, store: InMemoryStore, interval: int, max_age_hours: int) -> None:
    def _runner() -> None:
        while True:
            socketio.sleep(interval)
            try:
                cleanup_old_rooms(store, max_age_hours=max_age_hours)
            except Exception:
                # Keep the loop alive; the next pass retries.
                log.exception("periodic cleanup failed")

    socketio.start_background_task(_runner)


def create_app(config_class: type[Config] = Config) -> tuple[Flask, SocketIO]:
    app = Flask(__name__)
    app.config.from_object(config_class)

    if app.config.get("TRUST_PROXY_HEADERS", False):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    cors_origins = app.config.get("CORS_ORIGINS", "*")
    CORS(app, resources={r"/api/*": {"origins": cors_origins}})

    env_async_mode = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()
    if env_async_mode:
        async_mode = env_async_mode
    else:
        # Default choice:
        # - Windows: threading (eventlet has known compatibility issues on newer Python)
        # - Python >= 3.13: threading (safer default)
        # - Otherwise: eventlet
        if sys.platform.startswith("win") or sys.version_info >= (3, 13):
            async_mode = "threading"
        else:
            async_mode = "eventlet"

    socketio = SocketIO(
        app,
        cors_allowed_origins=cors_origins,
        async_mode=async_mode,
    )

    store = InMemoryStore()
    app.extensions["oddword.store"] = store

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(rooms_bp, url_prefix="/api")
    app.register_blueprint(words_bp, url_prefix="/api")

    register_socketio_handlers(socketio, store)

    interval = int(app.config.get("CLEANUP_INTERVAL_SEC", 0) or 0)
    if interval > 0 and not app.config.get("TESTING"):
        _start_cleanup_task(socketio, store, interval, int(app.config.get("ROOM_MAX_AGE_HOURS", 24)))
        log.info("periodic room cleanup every %ss", interval)

    return app, socketio
