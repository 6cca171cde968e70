"""Application factory for the portal shell."""

from typing import Any, Mapping, Optional

from flask import Flask

from onboard_auth import app_logging
from onboard_auth.auth import OnboardAuth
from onboard_auth.routes import portal


def create_web_app(settings: Optional[Mapping[str, Any]] = None) -> Flask:
    """Initialize and configure the portal application."""
    app = Flask('onboard_auth')
    app.config.from_object('onboard_auth.config')
    if settings:
        app.config.update(settings)

    app_logging.setup_logger(app.config.get('LOG_LEVEL'))
    OnboardAuth(app)    # Restores the session before the first request.
    app.register_blueprint(portal.blueprint)
    return app
