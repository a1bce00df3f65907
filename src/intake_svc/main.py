"""FastAPI application - Request Intake Service.

Accepts requests, validates them against schemas and remote registries,
and drives their review through to approval or rejection.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config import Config
from .governance.circuit_breaker import CircuitBreaker
from .notifications.channels import HttpChannel, LoggingChannel, MessageChannel
from .notifications.notifier import Notifier
from .notifications.renderer import TemplateRenderer
from .registries.base import RegistryClient
from .registries.memory import InMemoryRegistry
from .registries.rest import RestRegistryClient
from .requests import routes as request_routes
from .requests.errors import RequestError
from .requests.kinds import KindRegistry, default_kinds
from .requests.loader import load_kinds_from_yaml
from .requests.pipeline import ApprovalPipeline
from .requests.references import RemoteValidator
from .requests.service import RequestService
from .requests.store import InMemoryRequestStore, RequestStore, SqliteRequestStore


logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    status: str
    requests: dict[str, Any]
    registry: dict[str, Any]
    notifications: dict[str, Any]


@dataclass
class Components:
    """Everything the service is assembled from."""
    service: RequestService
    store: RequestStore
    registry: RegistryClient
    channel: MessageChannel


def create_store(config: Config) -> RequestStore:
    if config.store.backend == "sqlite":
        return SqliteRequestStore(config.store.db_path)
    if config.store.backend != "memory":
        logger.warning(f"Unknown store backend {config.store.backend!r}, using memory")
    return InMemoryRequestStore()


def create_registry(config: Config) -> RegistryClient:
    if config.registry.base_url:
        return RestRegistryClient(config.registry, CircuitBreaker(config.circuit_breaker))
    logger.warning("No registry base_url configured, using in-memory registry")
    return InMemoryRegistry()


def create_channel(config: Config) -> MessageChannel:
    notifications = config.notifications
    if notifications.channel == "http" and notifications.base_url:
        return HttpChannel(
            base_url=notifications.base_url,
            send_path=notifications.send_path,
            timeout_seconds=notifications.timeout_seconds,
        )
    return LoggingChannel()


def create_kinds(config: Config) -> KindRegistry:
    if config.requests.kinds_file:
        kinds = KindRegistry()
        load_kinds_from_yaml(config.requests.kinds_file, kinds)
        if len(kinds):
            return kinds
        logger.warning(f"No kinds loaded from {config.requests.kinds_file}, using built-in kinds")
    return default_kinds()


def build_components(
    config: Config,
    store: RequestStore | None = None,
    registry: RegistryClient | None = None,
    channel: MessageChannel | None = None,
    kinds: KindRegistry | None = None,
) -> Components:
    """Assemble the service from config, with optional collaborator overrides."""
    store = store if store is not None else create_store(config)
    registry = registry if registry is not None else create_registry(config)
    channel = channel if channel is not None else create_channel(config)
    kinds = kinds if kinds is not None else create_kinds(config)
    timeout = config.requests.call_timeout_seconds

    notifier = Notifier(
        renderer=TemplateRenderer(config.notifications.templates),
        channel=channel,
        enabled=config.notifications.enabled,
        timeout_seconds=config.notifications.timeout_seconds,
    )
    service = RequestService(
        store=store,
        kinds=kinds,
        validator=RemoteValidator(registry, timeout_seconds=timeout),
        pipeline=ApprovalPipeline(store, registry, notifier, timeout_seconds=timeout),
        notifier=notifier,
        paging=config.paging,
    )
    return Components(service=service, store=store, registry=registry, channel=channel)


def load_config() -> Config:
    """Load config from INTAKE_SVC_CONFIG if set, else defaults."""
    path = os.environ.get("INTAKE_SVC_CONFIG")
    if path:
        logger.info(f"Loading config from {path}")
        return Config.from_yaml(path)
    return Config()


def create_app(config: Config | None = None, components: Components | None = None) -> FastAPI:
    """Create the FastAPI application."""
    config = config or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan - startup and shutdown."""
        logger.info("Starting request intake service...")

        parts = components or build_components(config)
        app.state.components = parts
        request_routes.configure(parts.service)

        logger.info(f"Request intake service started (kinds: {', '.join(parts.service.kinds.names())})")

        yield

        logger.info("Shutting down request intake service...")
        await parts.registry.close()
        await parts.channel.close()
        parts.store.close()
        logger.info("Request intake service stopped")

    app = FastAPI(
        title="Request Intake Service",
        description="Validates, reviews and approves registry requests.",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.exception_handler(RequestError)
    async def request_error_handler(request: Request, exc: RequestError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request):
        """Health check endpoint."""
        parts: Components = request.app.state.components
        stats = parts.service.stats()
        return HealthResponse(
            status="healthy",
            requests=stats["requests"],
            registry=parts.registry.stats,
            notifications=stats["notifications"],
        )

    app.include_router(request_routes.router)
    return app


app = create_app()


def run():
    """Run the service with uvicorn."""
    import uvicorn

    config = load_config()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    uvicorn.run(
        "intake_svc.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.reload,
    )


if __name__ == "__main__":
    run()
