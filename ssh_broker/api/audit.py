"""
Audit logging for admin API actions.

Write operations (POST, PUT, DELETE) are logged as structured JSON to stdout
through a dedicated 'audit' logger. Reclaim calls also record the force flag
and the outcome. GET requests are not audited.
"""

import logging
import re
import sys

from flask import request, Response
from pythonjsonlogger.json import JsonFormatter

audit_logger = logging.getLogger("audit")
audit_logger.setLevel(logging.INFO)
audit_logger.propagate = False

_handler = logging.StreamHandler(sys.stdout)
_handler.setFormatter(JsonFormatter(fmt="%(message)s", timestamp=True))
audit_logger.addHandler(_handler)

AUDIT_METHODS = frozenset({"POST", "PUT", "DELETE"})

# /api/users/<username>/...
_USERNAME_RE = re.compile(r"/api/users/([^/]+)")


def _reclaim_outcome(response: Response) -> str | None:
    payload = response.get_json(silent=True)
    if not isinstance(payload, dict):
        return None
    body = payload.get("data") or payload.get("details")
    if isinstance(body, dict):
        return body.get("outcome")
    return None


def audit_log_response(response: Response) -> Response:
    """
    after_request hook that logs admin actions (POST/PUT/DELETE).

    Attach to a Blueprint via: blueprint.after_request(audit_log_response)
    """
    if request.method not in AUDIT_METHODS:
        return response

    entry = {
        "event": "api_admin_action",
        "method": request.method,
        "path": request.path,
        "endpoint": request.endpoint,
        "status_code": response.status_code,
        "remote_addr": request.remote_addr,
    }
    match = _USERNAME_RE.search(request.path)
    if match:
        entry["username"] = match.group(1)

    if request.method == "DELETE":
        entry["force"] = request.args.get("force", "false")
        outcome = _reclaim_outcome(response)
        if outcome:
            entry["outcome"] = outcome

    audit_logger.info(entry)
    return response
