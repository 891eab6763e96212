"""Starlette ASGI application factory for the streamable HTTP transport."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from datamerge_mcp.config.schema import DataMergeSettings
from datamerge_mcp.constants import HEALTH_PATH, SERVER_NAME, STREAMABLE_HTTP_PATH
from datamerge_mcp.server.handlers import create_mcp_server
from datamerge_mcp.server.router import StreamableHTTPRouter
from datamerge_mcp.server.session.store import SessionStore
from datamerge_mcp.server.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


async def handle_health(request: Request) -> JSONResponse:
    """Liveness probe; no auth and no upstream call."""
    return JSONResponse({"status": "ok", "service": SERVER_NAME})


def create_app(
    settings: Optional[DataMergeSettings] = None,
    store: Optional[SessionStore] = None,
) -> Starlette:
    """Create and return the Starlette ASGI application.

    Args:
        settings: Validated settings; defaults are used when omitted.
        store: Session store; built from ``settings.upstream`` when omitted.
    """
    if settings is None:
        settings = DataMergeSettings()
    if store is None:
        store = SessionStore.from_settings(settings.upstream)

    registry = ToolRegistry(store, settings.polling)
    mcp_server = create_mcp_server(registry)
    router = StreamableHTTPRouter(
        mcp_server, store, json_response=settings.server.json_response
    )

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        async with router.run():
            yield

    application = Starlette(
        lifespan=lifespan,
        routes=[
            Route(HEALTH_PATH, endpoint=handle_health, methods=["GET"]),
            Route(
                STREAMABLE_HTTP_PATH,
                endpoint=router,
                methods=["GET", "POST", "DELETE"],
            ),
        ],
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=settings.server.cors_origins,
                allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
                allow_headers=[
                    "Content-Type",
                    "Authorization",
                    "Mcp-Session-Id",
                    "Mcp-Protocol-Version",
                    "Last-Event-ID",
                ],
                expose_headers=["Mcp-Session-Id"],
            )
        ],
    )
    application.state.router = router
    application.state.session_store = store
    application.state.tool_registry = registry
    logger.info(
        "Starlette ASGI app '%s' created. Streamable HTTP on %s, health on %s",
        SERVER_NAME,
        STREAMABLE_HTTP_PATH,
        HEALTH_PATH,
    )
    return application
