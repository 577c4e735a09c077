"""
Lightweight DI container for broker services.

Stored in ``app.extensions['services']`` during Flask context,
with a global fallback for background threads that run outside
Flask request context.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ssh_broker.domain.broker import SessionBroker
    from ssh_broker.domain.orchestrator.base import ContainerEngine
    from ssh_broker.services.expiration_sweeper import ExpirationSweeper
    from ssh_broker.transport.ssh_server import SSHServer


class ServiceContainer:
    """Lightweight service container holding shared service instances."""

    def __init__(self) -> None:
        self._engine: ContainerEngine | None = None
        self._broker: SessionBroker | None = None
        self._sweeper: ExpirationSweeper | None = None
        self._ssh_server: SSHServer | None = None

    @property
    def engine(self) -> ContainerEngine:
        if self._engine is None:
            from ssh_broker.domain.orchestrator.factory import get_engine

            self._engine = get_engine()
        return self._engine

    @property
    def broker(self) -> SessionBroker:
        if self._broker is None:
            from ssh_broker.config.loader import BrokerConfig, load_authorized_keys
            from ssh_broker.domain.broker import SessionBroker

            settings = BrokerConfig.settings()
            self._broker = SessionBroker(
                engine=self.engine,
                authorized_keys=load_authorized_keys(settings.server.authorized_keys_dir),
                grace_period=settings.grace_period_seconds,
            )
        return self._broker

    @property
    def sweeper(self) -> ExpirationSweeper:
        if self._sweeper is None:
            from ssh_broker.config.loader import BrokerConfig
            from ssh_broker.services.expiration_sweeper import ExpirationSweeper

            self._sweeper = ExpirationSweeper(
                self.broker,
                interval=BrokerConfig.settings().lifecycle.sweep_interval_seconds,
            )
        return self._sweeper

    @property
    def ssh_server(self) -> SSHServer:
        if self._ssh_server is None:
            from ssh_broker.config.loader import BrokerConfig
            from ssh_broker.config.settings import get_env
            from ssh_broker.transport.ssh_server import SSHServer, load_host_key

            server = BrokerConfig.settings().server
            host_key = load_host_key(
                server.host_key_path,
                password=get_env("ssh_broker_server_key_password"),
            )
            self._ssh_server = SSHServer(
                self.broker,
                host_key,
                address=server.listen_address,
                port=server.listen_port,
                banner_timeout=server.banner_timeout,
                auth_timeout=server.auth_timeout,
            )
        return self._ssh_server

    def shutdown(self) -> None:
        """Stop the background services that were started."""
        if self._sweeper is not None:
            self._sweeper.stop()
        if self._ssh_server is not None:
            self._ssh_server.stop()


# Fallback for background threads (set once at startup in app.py)
_global_container: ServiceContainer | None = None


def get_services() -> ServiceContainer:
    """Return the service container.

    Tries ``current_app.extensions['services']`` first, then falls back
    to the module-level ``_global_container`` (same instance, set at
    startup for use by background threads that lack Flask context).
    """
    try:
        from flask import current_app

        return current_app.extensions["services"]
    except (RuntimeError, KeyError):
        pass
    if _global_container is not None:
        return _global_container
    raise RuntimeError("ServiceContainer not initialized")
