"""
Flask API routes for the SSH Session Broker.
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, jsonify, request

from ssh_broker.api.audit import audit_log_response
from ssh_broker.api.auth import require_api_key
from ssh_broker.api.rate_limit import get_admin_limit, limiter
from ssh_broker.api.responses import api_reclaim_result, api_success
from ssh_broker.api.validators import (
    ValidationError,
    parse_bool,
    validate_container_id,
    validate_username,
)
from ssh_broker.config.loader import BrokerConfig
from ssh_broker.container import get_services

logger = logging.getLogger("ssh-broker")

# Type alias for Flask route returns
RouteResponse = tuple[Response, int]

api = Blueprint("api", __name__)
api.before_request(require_api_key)
api.after_request(audit_log_response)


# =============================================================================
# Health and Status
# =============================================================================

@api.route("/health")
@limiter.exempt
def health() -> RouteResponse:
    """Health check endpoint: reports whether the container engine answers."""
    services = get_services()
    engine_ok = services.engine.ping()
    return jsonify({
        "status": "healthy" if engine_ok else "degraded",
        "container_engine": engine_ok,
        "active_sessions": services.broker.connection_count(),
    }), 200 if engine_ok else 503


@api.route("/api/config")
def get_config() -> RouteResponse:
    """Get broker configuration (non-sensitive)."""
    settings = BrokerConfig.settings()
    return api_success({
        "listen_address": settings.server.listen_address,
        "listen_port": settings.server.listen_port,
        "grace_period_minutes": settings.lifecycle.grace_period_minutes,
        "sweep_interval_seconds": settings.lifecycle.sweep_interval_seconds,
        "docker_base_url": settings.docker.base_url or None,
        "username_label": settings.docker.username_label,
    })


# =============================================================================
# Connections
# =============================================================================

@api.route("/api/connections")
def list_connections() -> RouteResponse:
    """Open session counts, total and per user."""
    broker = get_services().broker
    return api_success({
        "total": broker.connection_count(),
        "users": broker.sessions.snapshot(),
    })


@api.route("/api/users/<username>")
def get_user(username: str) -> RouteResponse:
    """Session count, closure and expiration times, and container of a user."""
    validate_username(username)
    return api_success(get_services().broker.user_status(username))


# =============================================================================
# Containers
# =============================================================================

@api.route("/api/users/<username>/container", methods=["PUT"])
@limiter.limit(get_admin_limit)
def register_container(username: str) -> RouteResponse:
    """Record the container provisioned for a user."""
    validate_username(username)
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("JSON body required")
    container_id = validate_container_id(body.get("container_id"))

    previous = get_services().broker.register_container(username, container_id)
    return api_success(
        {"username": username, "container_id": container_id, "previous": previous},
        message="Container registered",
    )


@api.route("/api/users/<username>/container", methods=["DELETE"])
@limiter.limit(get_admin_limit)
def expire_user(username: str) -> RouteResponse:
    """Reclaim a user's container; ``force=true`` skips the grace period."""
    validate_username(username)
    force = parse_bool(request.args.get("force"), "force")
    outcome = get_services().broker.expire_user(username, force=force)
    return api_reclaim_result(username, outcome)


@api.route("/api/sweep", methods=["POST"])
@limiter.limit(get_admin_limit)
def sweep() -> RouteResponse:
    """Run one expiration sweep over every tracked user."""
    outcomes = get_services().sweeper.run_once()
    return api_success({
        "outcomes": {user: outcome.value for user, outcome in outcomes.items()},
    })


@api.route("/api/sweep", methods=["GET"])
def get_sweep_status() -> RouteResponse:
    """Get sweeper statistics."""
    return api_success(get_services().sweeper.get_stats())
