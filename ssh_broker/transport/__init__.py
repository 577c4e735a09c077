"""SSH transport adapter (paramiko)."""

from ssh_broker.transport.ssh_server import SSHServer, SSHSessionInterface, load_host_key

__all__ = ["SSHServer", "SSHSessionInterface", "load_host_key"]
