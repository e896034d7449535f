"""
Root endpoint with service metadata.
"""

from __future__ import annotations

from fastapi import APIRouter

import core.config as config


router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "service": config.SERVER_NAME,
        "version": config.SERVER_VERSION,
        "description": config.SERVER_DESCRIPTION,
        "default_assistant_id": config.DEFAULT_ASSISTANT_ID,
        "endpoints": {
            "health": "/health",
            "health_tools": "/health/tools",
            "assistants": "/v1/assistants",
            "topics": "/v1/topics",
            "conversations": "/v1/conversations",
            "events": "/v1/events",
            "mcp": "/mcp",
            "mcp_push": f"/v1/mcp/{config.SERVER_NAME}/sse",
        },
    }
