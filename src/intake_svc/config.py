"""Configuration for the intake service."""

from __future__ import annotations

from dataclasses import dataclass, field

from .governance.circuit_breaker import CircuitBreakerConfig
from .notifications.notifier import NotificationConfig
from .registries.rest import RegistryConfig
from .requests.service import PagingConfig


@dataclass
class ServerConfig:
    """HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 8060
    reload: bool = False


@dataclass
class StoreConfig:
    """Request store configuration."""
    backend: str = "memory"  # memory | sqlite
    db_path: str = "requests.db"


@dataclass
class RequestsConfig:
    """Request lifecycle configuration."""
    # Path to kind definitions (YAML); built-in kinds are used when unset
    kinds_file: str | None = None

    # Upper bound on any single remote call made by the lifecycle
    call_timeout_seconds: float = 15.0


@dataclass
class Config:
    """Main configuration container."""
    server: ServerConfig = field(default_factory=ServerConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    requests: RequestsConfig = field(default_factory=RequestsConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    circuit_breaker: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    paging: PagingConfig = field(default_factory=PagingConfig)

    @classmethod
    def from_dict(cls, data: dict) -> Config:
        """Create config from dictionary."""
        return cls(
            server=ServerConfig(**data.get("server", {})),
            store=StoreConfig(**data.get("store", {})),
            requests=RequestsConfig(**data.get("requests", {})),
            registry=RegistryConfig(**data.get("registry", {})),
            circuit_breaker=CircuitBreakerConfig(**data.get("circuit_breaker", {})),
            notifications=NotificationConfig(**data.get("notifications", {})),
            paging=PagingConfig(**data.get("paging", {})),
        )

    @classmethod
    def from_yaml(cls, path: str) -> Config:
        """Load config from YAML file."""
        import yaml
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_json(cls, path: str) -> Config:
        """Load config from JSON file."""
        import json
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)
