"""
Per-connection authentication and session state.
"""

from __future__ import annotations

import logging
import threading

from ssh_broker.domain.auth import AuthGate, PublicKey
from ssh_broker.domain.registry import SessionRegistry, SessionToken
from ssh_broker.domain.types import AuthDecision, ConnectionState
from ssh_broker.exceptions import AuthenticationFailure

logger = logging.getLogger("ssh-broker")


class ConnectionHandler:
    """
    State machine for one inbound connection.

    The transport reports each offered credential through
    :meth:`on_credential_offered` and the end of the connection through
    :meth:`on_disconnected`. A connection holds at most one session token
    over its lifetime. Used as a context manager, the token is released on
    every exit path.
    """

    def __init__(self, gate: AuthGate, sessions: SessionRegistry, peer: object = None) -> None:
        self.gate = gate
        self.sessions = sessions
        self.peer = peer
        self.username: str | None = None
        self._token: SessionToken | None = None
        self._credential: PublicKey | None = None
        self._state = ConnectionState.UNAUTHENTICATED
        self._lock = threading.Lock()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def authenticated(self) -> bool:
        return self._state is ConnectionState.AUTHENTICATED

    def on_credential_offered(self, username: str, credential: PublicKey) -> AuthDecision:
        """
        Check one offered key.

        Only the first accepted key of a connection acquires a session.
        Re-offering that same user and key is accepted again without a new
        session, since SSH transports ask once unsigned and once signed.
        Any other offer after authentication is rejected.

        Returns:
            ACCEPT or REJECT
        """
        logger.info(f"Login attempt by {username} with key {credential.fingerprint} from {self.peer}")
        with self._lock:
            if (
                self._state is ConnectionState.AUTHENTICATED
                and username == self.username
                and credential == self._credential
            ):
                return AuthDecision.ACCEPT
            if self._state is not ConnectionState.UNAUTHENTICATED:
                logger.info(f"{username} rejected: connection is {self._state.value}")
                return AuthDecision.REJECT
            try:
                self.gate.require(username, credential)
            except AuthenticationFailure as e:
                logger.info(f"{username} rejected: {e.reason}")
                return AuthDecision.REJECT

            self._token = self.sessions.acquire(username)
            self.username = username
            self._credential = credential
            self._state = ConnectionState.AUTHENTICATED

        logger.info(f"{username} successful login")
        return AuthDecision.ACCEPT

    def on_disconnected(self) -> None:
        """Release the session token, if any. Safe to call more than once."""
        with self._lock:
            token, self._token = self._token, None
            self._state = ConnectionState.CLOSED
        if token is not None and token.release():
            logger.info(f"{self.username} disconnected from {self.peer}")

    def __enter__(self) -> ConnectionHandler:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.on_disconnected()
