"""
Standalone FastAPI app wiring for AssistantGate.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

import core.config as config
from core.db import dispose_db, init_db
from core.mcp import MCPRouteNormalizerASGI, mcp_stream_app
from core.runtime import Runtime, build_runtime, start_runtime, stop_runtime
from app.middleware import configure_middleware
from app.routes.assistants import router as assistants_router
from app.routes.events import router as events_router
from app.routes.health import router as health_router
from app.routes.root import router as root_router
from app.routes.topics import router as topics_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize on startup, cleanup on shutdown."""
    init_db()
    if Runtime.gateway is None:
        build_runtime()
    await start_runtime()
    config.logger.info(
        "service_started",
        extra={"service": config.SERVER_NAME, "instance_id": config.INSTANCE_ID},
    )
    try:
        async with mcp_stream_app.lifespan(mcp_stream_app):
            yield
    finally:
        await stop_runtime()
        dispose_db()
        config.logger.info("service_stopped", extra={"service": config.SERVER_NAME})


app = FastAPI(title="AssistantGate", redirect_slashes=False, lifespan=lifespan)
configure_middleware(app)

# Health and root endpoints
app.include_router(health_router)
app.include_router(root_router)

# REST and push surfaces
app.include_router(assistants_router)
app.include_router(topics_router)
app.include_router(events_router)

# Tool surface (streamable HTTP)
app.mount("/mcp/", mcp_stream_app)


# =============================================================================
# ASGI Application (module-level for production deployment)
# =============================================================================

asgi_app = MCPRouteNormalizerASGI(app)
