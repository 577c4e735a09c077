"""
API response helpers for standardized responses.
"""

from typing import Any

from flask import jsonify, Response

from ssh_broker.domain.types import ReclaimOutcome

# HTTP status for each reclaim outcome
OUTCOME_STATUS = {
    ReclaimOutcome.RECLAIMED: 200,
    ReclaimOutcome.NOTHING_TO_RECLAIM: 200,
    ReclaimOutcome.NOT_DUE: 409,
    ReclaimOutcome.FAILED: 502,
}


def api_success(data: Any = None, message: str = None, status_code: int = 200) -> tuple[Response, int]:
    """
    Build a ``{"success": true, ...}`` JSON response.

    Args:
        data: Response data
        message: Optional success message
        status_code: HTTP status code
    """
    response = {"success": True}
    if data is not None:
        response["data"] = data
    if message:
        response["message"] = message
    return jsonify(response), status_code


def api_error(message: str, status_code: int = 400, details: Any = None) -> tuple[Response, int]:
    """
    Build a ``{"success": false, "error": ...}`` JSON response.

    Args:
        message: Error message
        status_code: HTTP status code
        details: Optional error details
    """
    response = {"success": False, "error": message}
    if details:
        response["details"] = details
    return jsonify(response), status_code


def api_reclaim_result(username: str, outcome: ReclaimOutcome) -> tuple[Response, int]:
    """Report a reclaim outcome; FAILED maps to 502 so callers know to retry."""
    data = {"username": username, "outcome": outcome.value}
    status_code = OUTCOME_STATUS[outcome]
    if outcome is ReclaimOutcome.FAILED:
        return api_error("Container engine failed to remove the container", status_code, details=data)
    return api_success(data, status_code=status_code)
