"""Domain module containing the session and container lifecycle core."""

from ssh_broker.domain.auth import AuthGate, PublicKey
from ssh_broker.domain.registry import ClosureClock, SessionRegistry, SessionToken
from ssh_broker.domain.directory import ContainerDirectory
from ssh_broker.domain.expiration import ExpirationController
from ssh_broker.domain.connection import ConnectionHandler
from ssh_broker.domain.broker import SessionBroker
from ssh_broker.domain.types import (
    AuthDecision,
    ConnectionState,
    ReclaimOutcome,
    RemovalResult,
)

__all__ = [
    "AuthGate",
    "PublicKey",
    "ClosureClock",
    "SessionRegistry",
    "SessionToken",
    "ContainerDirectory",
    "ExpirationController",
    "ConnectionHandler",
    "SessionBroker",
    "AuthDecision",
    "ConnectionState",
    "ReclaimOutcome",
    "RemovalResult",
]
