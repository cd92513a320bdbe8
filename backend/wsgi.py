try:
    from backend.oddword.server import create_app
except ImportError:  # pragma: no cover
    from oddword.server import create_app

app, socketio = create_app()
