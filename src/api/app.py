from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from src.api.errors import APIError, api_error_handler, unhandled_error_handler
from src.api.handlers import HttpApiHandler
from src.api.request import ApiRequest
from src.api.router import InstancesRouter
from src.api.waiter import CompletionWaiter
from src.config.load_config import (
    DEFAULT_CONNECTION_NAME,
    DEFAULT_HUB_NAME,
    AppConfig,
    load_app_config,
)
from src.runtime.client import ClientResolver
from src.runtime.inmemory import InMemoryClientResolver

from .routers.health import router as health_router


logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in {"1", "true", "yes", "y", "on"}:
        return True
    if v in {"0", "false", "no", "n", "off"}:
        return False
    return default


def create_app(config: AppConfig | None = None, client_resolver: ClientResolver | None = None) -> FastAPI:
    cfg = config or load_app_config()
    webhooks = cfg.webhooks
    if client_resolver is None:
        # No runtime attached: serve an empty in-memory task hub.
        logger.warning("No orchestration client configured; using in-memory client.")
        client_resolver = InMemoryClientResolver(
            default_hub=webhooks.hub_name or DEFAULT_HUB_NAME,
            default_connection=webhooks.connection_name or DEFAULT_CONNECTION_NAME,
        )

    handler = HttpApiHandler(webhooks, client_resolver)
    instances_router = InstancesRouter(handler)

    app = FastAPI(title="Durable HTTP API", version="0.1.0")
    app.state.config = cfg
    app.state.http_api_handler = handler
    app.state.completion_waiter = CompletionWaiter(handler)

    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    if cfg.server.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(cfg.server.cors_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(health_router, prefix="/api/v1", tags=["system"])

    prefix = webhooks.route_prefix

    @app.api_route(prefix + "/{rest:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"], include_in_schema=False)
    async def management_api(request: Request) -> Response:
        return await instances_router.route(await ApiRequest.from_starlette(request))

    if _env_bool("DURABLE_HTTP_ENABLE_DEBUG_ENDPOINTS", False):
        @app.get("/api/v1/_debug/config", include_in_schema=False)
        def debug_config() -> dict[str, str]:
            # Avoid leaking the system key carried in the notification URL query.
            return {
                "route_prefix": prefix,
                "hub_name": webhooks.hub_name or DEFAULT_HUB_NAME,
                "connection_name": webhooks.connection_name or DEFAULT_CONNECTION_NAME,
                "webhooks_configured": str(bool(webhooks.notification_url)).lower(),
            }

    return app
