"""
Observability module: Prometheus metrics and structured JSON logging.

- Custom business metrics (Gauges, Counters)
- PrometheusMetrics integration for automatic Flask instrumentation
- JSON structured logging via python-json-logger
- Session and container Gauges read live from the broker at scrape time
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

from prometheus_client import Counter, Gauge

if TYPE_CHECKING:
    from flask import Flask
    from prometheus_flask_exporter import PrometheusMetrics

# =============================================================================
# Prometheus Custom Metrics
# =============================================================================

ACTIVE_SESSIONS = Gauge(
    "broker_active_sessions",
    "Number of open SSH sessions across all users",
)

TRACKED_CONTAINERS = Gauge(
    "broker_tracked_containers",
    "Number of users with a recorded container",
)

AUTH_ATTEMPTS = Counter(
    "broker_auth_attempts_total",
    "Public-key authentication attempts by result",
    ["result"],
)

RECLAIMS_TOTAL = Counter(
    "broker_reclaims_total",
    "Container reclaim attempts by outcome",
    ["outcome"],
)

ERRORS_TOTAL = Counter(
    "broker_errors_total",
    "Total number of errors by endpoint",
    ["endpoint"],
)


# =============================================================================
# Metrics Initialization
# =============================================================================

def init_metrics(app: Flask) -> PrometheusMetrics:
    """
    Initialize PrometheusMetrics on the Flask app.

    Auto-instruments all routes and exposes the /metrics endpoint.
    """
    from prometheus_flask_exporter import PrometheusMetrics

    metrics = PrometheusMetrics(app, path="/metrics")

    # Exempt /metrics from rate limiting
    from ssh_broker.api.rate_limit import limiter
    metrics_view = app.view_functions.get("prometheus_metrics")
    if metrics_view is not None:
        limiter.exempt(metrics_view)

    return metrics


# =============================================================================
# JSON Structured Logging
# =============================================================================

def setup_json_logging(level: str = "INFO") -> None:
    """
    Configure the root logger with JSON structured output.

    The 'audit' logger is unaffected (propagate=False, own handler).
    """
    from pythonjsonlogger.json import JsonFormatter

    handler = logging.StreamHandler(sys.stderr)
    formatter = JsonFormatter(
        fmt="%(timestamp)s %(name)s %(levelname)s %(message)s",
        rename_fields={"levelname": "level", "asctime": "timestamp"},
        timestamp=True,
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())

