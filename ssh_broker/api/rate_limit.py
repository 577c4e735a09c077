"""
Rate limiting for the broker API.

Uses Flask-Limiter with in-memory storage (single broker process).
"""

from flask import Flask
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from ssh_broker.api.responses import api_error
from ssh_broker.config.loader import BrokerConfig

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
)

# Admin (write) limit, read from config at init time and used by route decorators
admin_limit = "10/minute"


def get_admin_limit() -> str:
    return admin_limit


def init_limiter(app: Flask) -> None:
    """Attach the limiter to the Flask app and configure from broker config."""
    global admin_limit

    rl_config = BrokerConfig.settings().security.rate_limiting
    if not rl_config.enabled:
        app.config["RATELIMIT_ENABLED"] = False

    admin_limit = rl_config.admin_limit
    app.config["RATELIMIT_DEFAULT"] = rl_config.default_limit

    limiter.init_app(app)

    @app.errorhandler(429)
    def rate_limit_handler(e):
        return api_error("Rate limit exceeded. Try again later.", 429)
