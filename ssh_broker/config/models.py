"""
Pydantic models for broker configuration.

Defaults here are the single source of truth: loader.py merges broker.yml
on top of ``BrokerSettings().model_dump()``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from ssh_broker.config.settings import DEFAULT_USERNAME_LABEL


class ServerConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    listen_address: str = "0.0.0.0"
    listen_port: int = Field(default=2222, ge=1, le=65535)
    host_key_path: str = "./server.key"
    authorized_keys_dir: str = "./authorized_keys"
    banner_timeout: int = 30
    auth_timeout: int = 30


class LifecycleConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    grace_period_minutes: float = Field(default=60, ge=0)
    sweep_interval_seconds: int = Field(default=30, ge=1)
    adopt_on_startup: bool = True


class DockerConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    base_url: str = ""
    timeout: int = 10
    stop_timeout: int = 10
    username_label: str = DEFAULT_USERNAME_LABEL


class ApiConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 5000


class RateLimitingConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    enabled: bool = True
    default_limit: str = "200/minute"
    admin_limit: str = "10/minute"


class SecurityConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    rate_limiting: RateLimitingConfig = RateLimitingConfig()


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    level: str = "INFO"


class BrokerSettings(BaseModel):
    """Root settings model mirroring broker.yml structure."""

    model_config = ConfigDict(extra="ignore")

    server: ServerConfig = ServerConfig()
    lifecycle: LifecycleConfig = LifecycleConfig()
    docker: DockerConfig = DockerConfig()
    api: ApiConfig = ApiConfig()
    security: SecurityConfig = SecurityConfig()
    logging: LoggingConfig = LoggingConfig()

    @property
    def grace_period_seconds(self) -> float:
        return self.lifecycle.grace_period_minutes * 60
