from __future__ import annotations

from flask import Flask


def create_app(config_path: str | None = None) -> Flask:
    """Application factory used by tests and runtime."""
    from .config import load_config
    from .database import init_db
    from .api import register_api
    from ..routes.uploads import uploads_bp

    config = load_config(config_path)
    # The frontend blueprint mounted in ``run.configure_frontend`` owns the
    # ``/static`` namespace, so Flask's own static handling stays off.
    app = Flask(__name__, static_folder=None)
    app.config.update(config)
    # Upload limit plus 1 MB for the multipart envelope.
    if not app.config.get("MAX_CONTENT_LENGTH"):
        app.config["MAX_CONTENT_LENGTH"] = (int(config.MAX_UPLOAD_MB) + 1) * 1024 * 1024

    init_db(app)
    register_api(app)
    app.register_blueprint(uploads_bp)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
