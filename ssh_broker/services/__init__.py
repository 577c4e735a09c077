"""Services module for background services."""

from ssh_broker.services.expiration_sweeper import ExpirationSweeper

__all__ = ["ExpirationSweeper"]
