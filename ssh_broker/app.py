"""
SSH Session Broker for ephemeral per-user containers.

Process entry point: configures logging, builds the admin Flask app and
starts the background services (expiration sweeper and SSH server).
"""

import logging
import os
import re
import threading

from flask import Flask

from ssh_broker.config.loader import BrokerConfig
from ssh_broker.exceptions import ConfigurationFailure

# =============================================================================
# Logging Setup
# =============================================================================

from ssh_broker.observability import setup_json_logging

_log_level = (os.environ.get("LOG_LEVEL") or BrokerConfig.settings().logging.level).upper()
setup_json_logging(level=_log_level)
logger = logging.getLogger("ssh-broker")


# Filter sensitive data from logs
class SensitiveDataFilter(logging.Filter):
    """Filter to mask sensitive data in log messages."""

    SENSITIVE_PATTERNS = [
        (re.compile(r'password["\']?\s*[:=]\s*["\']?[^"\'}\s]+', re.I), 'password=***'),
        (re.compile(r'token["\']?\s*[:=]\s*["\']?[^"\'}\s]+', re.I), 'token=***'),
        (re.compile(r'secret["\']?\s*[:=]\s*["\']?[^"\'}\s]+', re.I), 'secret=***'),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            for pattern, replacement in self.SENSITIVE_PATTERNS:
                record.msg = pattern.sub(replacement, record.msg)
        return True


logger.addFilter(SensitiveDataFilter())

# =============================================================================
# Flask Application
# =============================================================================

app = Flask(__name__)

from ssh_broker.api.rate_limit import init_limiter
init_limiter(app)

from ssh_broker.observability import init_metrics
init_metrics(app)

from ssh_broker.api.routes import api
from ssh_broker.api.validators import ValidationError
from ssh_broker.api.responses import api_error

app.register_blueprint(api)

from ssh_broker.container import ServiceContainer
import ssh_broker.container as container_mod

container = ServiceContainer()
app.extensions["services"] = container
container_mod._global_container = container


# =============================================================================
# Error Handlers
# =============================================================================

@app.errorhandler(ValidationError)
def handle_validation_error(e: ValidationError) -> tuple:
    """Handle validation errors."""
    return api_error(str(e), 400)


@app.errorhandler(404)
def handle_not_found(e: Exception) -> tuple:
    """Handle 404 errors."""
    return api_error("Resource not found", 404)


@app.errorhandler(500)
def handle_server_error(e: Exception) -> tuple:
    """Handle 500 errors."""
    from ssh_broker.observability import ERRORS_TOTAL
    ERRORS_TOTAL.labels(endpoint="app_500").inc()
    logger.error(f"Internal server error: {e}")
    return api_error("Internal server error", 500)


# =============================================================================
# Startup
# =============================================================================

def start_services(services: ServiceContainer) -> None:
    """
    Bring up the broker.

    Raises:
        ConfigurationFailure: If the container engine is unreachable, the
            authorized keys directory is missing or the server key is invalid
    """
    if not services.engine.ping():
        raise ConfigurationFailure("Couldn't reach the container engine")

    broker = services.broker
    logger.info(
        f"Loaded {len(broker.gate.users())} user(s), grace period {broker.grace_period:.0f}s"
    )

    if BrokerConfig.settings().lifecycle.adopt_on_startup:
        broker.adopt_containers()

    services.sweeper.start()
    services.ssh_server.start()


def main() -> None:
    try:
        start_services(container)
    except ConfigurationFailure as e:
        logger.critical(f"Startup failed: {e}")
        raise SystemExit(1) from e

    api_settings = BrokerConfig.settings().api
    try:
        if api_settings.enabled:
            app.run(host=api_settings.host, port=api_settings.port, debug=False)
        else:
            threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        container.shutdown()
        logger.info("Broker stopped")


if __name__ == "__main__":
    main()
