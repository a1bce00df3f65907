"""Clients for the remote registries requests refer to and materialize into."""

from .base import RegistryClient, RegistryError, RegistryRefusedError, RegistryUnavailableError
from .memory import InMemoryRegistry
from .rest import RegistryConfig, RestRegistryClient

__all__ = [
    "RegistryClient",
    "RegistryError",
    "RegistryRefusedError",
    "RegistryUnavailableError",
    "InMemoryRegistry",
    "RegistryConfig",
    "RestRegistryClient",
]
