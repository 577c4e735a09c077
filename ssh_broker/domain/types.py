"""
Typed values shared across the broker domain.
"""

from __future__ import annotations

import enum


class AuthDecision(enum.Enum):
    """Answer returned to the transport for one offered credential."""

    ACCEPT = "accept"
    REJECT = "reject"


class ConnectionState(enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


class RemovalResult(enum.Enum):
    """Successful answers of ``ContainerEngine.remove``."""

    REMOVED = "removed"
    NOT_FOUND = "not_found"


class ReclaimOutcome(enum.Enum):
    """Result of one reclaim attempt for a user."""

    NOTHING_TO_RECLAIM = "nothing_to_reclaim"
    NOT_DUE = "not_due"
    RECLAIMED = "reclaimed"
    FAILED = "failed"
