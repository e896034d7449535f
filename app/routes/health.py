"""
Health and dependency endpoints.
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, HTTPException

import core.config as config
from core.db import database_status
from core.mcp import tool_inventory_status
from core.runtime import Runtime


router = APIRouter()


def _runtime_status() -> dict:
    return {
        "state_store": type(Runtime.state_store).__name__ if Runtime.state_store is not None else None,
        "durable_queue": Runtime.durable_queue.status() if Runtime.durable_queue is not None else None,
        "events": Runtime.events.status() if Runtime.events is not None else None,
    }


@router.get("/health")
async def health():
    """Health check endpoint."""
    db_health = await asyncio.to_thread(database_status)
    runtime = _runtime_status()
    if Runtime.gateway is None:
        raise HTTPException(status_code=503, detail={"runtime": runtime, "database": db_health})

    # Durable writes are write-behind, so database trouble only degrades.
    return {
        "status": "healthy" if db_health.get("ok") else "degraded",
        "service": config.SERVER_NAME,
        "version": config.SERVER_VERSION,
        "instance_id": config.INSTANCE_ID,
        "database": db_health,
        **runtime,
    }


@router.get("/health/tools")
async def health_tools():
    """Tool inventory health check."""
    tool_inventory = await tool_inventory_status()
    if tool_inventory.get("tool_count", 0) == 0:
        raise HTTPException(status_code=503, detail={"tool_inventory": tool_inventory})

    return {
        "status": "healthy",
        "service": config.SERVER_NAME,
        "tool_inventory": tool_inventory,
    }
