"""
Error kinds raised by the broker core.
"""


class BrokerError(Exception):
    """Base class for broker errors."""


class AuthenticationFailure(BrokerError):
    """Raised when an offered credential is rejected."""

    def __init__(self, username: str, reason: str = "credential not authorized") -> None:
        self.username = username
        self.reason = reason
        super().__init__(f"Authentication failed for {username!r}: {reason}")


class ContainerRemovalFailure(BrokerError):
    """Raised when the container engine fails to remove a container."""

    def __init__(self, container_id: str, cause: object = None) -> None:
        self.container_id = container_id
        self.cause = cause
        super().__init__(f"Removal of container {container_id[:12]} failed: {cause}")


class ConfigurationFailure(BrokerError):
    """Raised for malformed configuration (key entries, server key, engine)."""
