"""
SSH transport adapter built on paramiko.

paramiko handles the protocol; this module only turns its callbacks into
ConnectionHandler events and guarantees that every connection's session is
released when its transport ends, whatever the reason.
"""

from __future__ import annotations

import logging
import socket
import threading

import paramiko

from ssh_broker.domain.auth import PublicKey
from ssh_broker.domain.broker import SessionBroker
from ssh_broker.domain.connection import ConnectionHandler
from ssh_broker.domain.types import AuthDecision
from ssh_broker.exceptions import ConfigurationFailure
from ssh_broker.observability import AUTH_ATTEMPTS

logger = logging.getLogger("ssh-broker")

KEEPALIVE_INTERVAL = 30
ACCEPT_BACKLOG = 100


def load_host_key(path: str, password: str | None = None) -> paramiko.PKey:
    """
    Load the server's private host key.

    Args:
        path: Path to an OpenSSH/PEM private key (Ed25519, ECDSA or RSA)
        password: Passphrase for encrypted keys

    Returns:
        The host key

    Raises:
        ConfigurationFailure: If the file is missing, encrypted without a
            passphrase, or not a supported key
    """
    last_error: Exception | None = None
    for key_class in (paramiko.Ed25519Key, paramiko.ECDSAKey, paramiko.RSAKey):
        try:
            return key_class.from_private_key_file(path, password=password)
        except paramiko.PasswordRequiredException as e:
            raise ConfigurationFailure(f"Server key {path} needs a password") from e
        except OSError as e:
            raise ConfigurationFailure(f"Failed to read server key {path}: {e}") from e
        except (paramiko.SSHException, ValueError) as e:
            last_error = e
    raise ConfigurationFailure(f"Server key {path} was formatted incorrectly: {last_error}")


class SSHSessionInterface(paramiko.ServerInterface):
    """paramiko server callbacks for one connection."""

    def __init__(self, handler: ConnectionHandler) -> None:
        self.handler = handler

    def get_allowed_auths(self, username: str) -> str:
        return "publickey"

    def check_auth_publickey(self, username: str, key: paramiko.PKey) -> int:
        credential = PublicKey(algorithm=key.get_name(), blob=key.asbytes())
        repeated = self.handler.authenticated
        decision = self.handler.on_credential_offered(username, credential)
        # The signed re-offer of an accepted key is the same login
        if not (repeated and decision is AuthDecision.ACCEPT):
            AUTH_ATTEMPTS.labels(result=decision.value).inc()
        if decision is AuthDecision.ACCEPT:
            return paramiko.AUTH_SUCCESSFUL
        return paramiko.AUTH_FAILED

    def check_channel_request(self, kind: str, chanid: int) -> int:
        # Sessions are held open without a shell; no PTY bridging
        if kind == "session" and self.handler.authenticated:
            return paramiko.OPEN_SUCCEEDED
        return paramiko.OPEN_FAILED_ADMINISTRATIVELY_PROHIBITED


class SSHServer:
    """Accepts SSH connections and serves each one on its own thread."""

    def __init__(
        self,
        broker: SessionBroker,
        host_key: paramiko.PKey,
        address: str = "0.0.0.0",
        port: int = 2222,
        banner_timeout: int = 30,
        auth_timeout: int = 30,
    ) -> None:
        self.broker = broker
        self.host_key = host_key
        self.address = address
        self.port = port
        self.banner_timeout = banner_timeout
        self.auth_timeout = auth_timeout
        self.running = False
        self._sock: socket.socket | None = None

    def start(self) -> None:
        """Bind the listening socket and start the accept loop."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((self.address, self.port))
        sock.listen(ACCEPT_BACKLOG)
        self._sock = sock
        self.port = sock.getsockname()[1]
        self.running = True
        threading.Thread(target=self._accept_loop, name="ssh-accept", daemon=True).start()
        logger.info(f"SSH server listening on {self.address}:{self.port}")

    def stop(self) -> None:
        self.running = False
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    def _accept_loop(self) -> None:
        while self.running and self._sock is not None:
            try:
                client, addr = self._sock.accept()
            except OSError as e:
                if self.running:
                    logger.error(f"Accept error: {e}")
                    continue
                break
            threading.Thread(
                target=self.handle_client, args=(client, addr), daemon=True
            ).start()

    def handle_client(self, client: socket.socket, addr: tuple) -> None:
        """
        Serve one connection until its transport ends.

        The connection handler is scoped to this call, so the user's
        session is released on clean disconnect, protocol error or
        socket failure alike.
        """
        peer = f"{addr[0]}:{addr[1]}"
        with self.broker.open_connection(peer=peer) as handler:
            transport: paramiko.Transport | None = None
            try:
                transport = paramiko.Transport(client)
                transport.add_server_key(self.host_key)
                transport.banner_timeout = self.banner_timeout
                transport.auth_timeout = self.auth_timeout
                transport.set_keepalive(KEEPALIVE_INTERVAL)
                transport.start_server(server=SSHSessionInterface(handler))
                transport.join()
            except (paramiko.SSHException, EOFError, OSError) as e:
                logger.info(f"Connection from {peer} ended with error: {e}")
            finally:
                if transport is not None:
                    transport.close()
                else:
                    client.close()
