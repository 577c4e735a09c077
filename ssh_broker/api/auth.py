"""
API Key authentication for the broker API.

A before_request hook enforces the key on every endpoint of the API
blueprint except the health check. Fail-closed: without a configured key,
protected endpoints answer 503.
"""

from __future__ import annotations

import hmac
import logging

from flask import Response, request

from ssh_broker.api.responses import api_error
from ssh_broker.config.settings import get_env

logger = logging.getLogger("ssh-broker")

# Endpoints that do not require authentication (use Flask endpoint names)
PUBLIC_ENDPOINTS = frozenset({"api.health"})


def _extract_request_key() -> str | None:
    """Read the key from ``X-API-Key`` or ``Authorization: Bearer <key>``."""
    api_key = request.headers.get("X-API-Key")
    if api_key:
        return api_key

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[len("Bearer "):] or None

    return None


def require_api_key() -> tuple[Response, int] | None:
    """
    Flask before_request hook that enforces API key authentication.

    Returns:
        An error response to short-circuit the request, or None to allow it
    """
    if request.endpoint in PUBLIC_ENDPOINTS:
        return None

    configured_key = get_env("broker_api_key")
    if not configured_key:
        logger.warning("API key not configured, rejecting request (fail-closed)")
        return api_error("API key not configured. Service unavailable.", 503)

    request_key = _extract_request_key()
    if request_key is None:
        return api_error("API key required. Use X-API-Key header or Authorization: Bearer <key>.", 401)

    if not hmac.compare_digest(request_key.encode(), configured_key.encode()):
        logger.warning(f"Invalid API key from {request.remote_addr} on {request.path}")
        return api_error("Invalid API key.", 401)

    return None
