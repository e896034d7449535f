"""
Server-sent event routes: the general event stream and the tool-call push path.
"""

from __future__ import annotations

from typing import Any, AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse

import core.config as config
from app.deps import envelope, events_dependency, gateway_dependency, read_json_object
from core.errors import CollaboratorUnavailable, ErrorKind
from core.mcp import tool_catalog
from core.services.events import GENERAL, TOOL_RESULT, EventChannel, Subscriber, format_sse
from core.services.gateway import Gateway

logger = config.logger

router = APIRouter(tags=["events"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def sse_events(events: EventChannel, subscriber: Subscriber) -> AsyncIterator[str]:
    async for event in events.stream(subscriber):
        yield format_sse(event)


async def tool_result_event(gateway: Gateway, payload: Any) -> dict:
    """Result event for one push-path request; same payload as the direct response."""
    method = payload.get("method") if isinstance(payload, dict) else None
    params = payload.get("params") if isinstance(payload, dict) else None
    params = params if isinstance(params, dict) else {}

    if method == "tools/list":
        return {"type": "result", "method": method, "success": True, "data": await tool_catalog()}
    if method == "tools/call":
        name = params.get("name")
        result = await gateway.invoke(str(name), params.get("arguments"), surface="mcp_sse")
        return {"type": "result", "method": method, "tool": name, **envelope(result)}
    return {
        "type": "result",
        "method": method,
        "success": False,
        "error": {"message": f"Unsupported method: {method}", "kind": ErrorKind.invalid_operation.value},
    }


async def tool_call_events(
    gateway: Gateway,
    events: EventChannel,
    payload: Any,
) -> AsyncIterator[str]:
    """Acknowledgement, then the result, then heartbeats until the client leaves."""
    method = payload.get("method") if isinstance(payload, dict) else None
    subscriber = events.subscribe(TOOL_RESULT, acknowledgement={"status": "accepted", "method": method})
    try:
        first = await subscriber.next_event()
        if first is not None:
            yield format_sse(first)
        subscriber.deliver(await tool_result_event(gateway, payload))
        async for chunk in sse_events(events, subscriber):
            yield chunk
    finally:
        events.unsubscribe(subscriber, reason="stream_ended")


def _unavailable(exc: CollaboratorUnavailable) -> JSONResponse:
    return JSONResponse(status_code=503, content={"success": False, "error": exc.to_payload()})


@router.get("/v1/events")
async def event_stream(events: EventChannel = Depends(events_dependency)):
    try:
        subscriber = events.subscribe(GENERAL)
    except CollaboratorUnavailable as exc:
        return _unavailable(exc)
    return StreamingResponse(
        sse_events(events, subscriber),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/v1/mcp/{server_name}/sse")
async def tool_call_stream(
    server_name: str,
    request: Request,
    gateway: Gateway = Depends(gateway_dependency),
    events: EventChannel = Depends(events_dependency),
):
    if server_name != config.SERVER_NAME:
        return JSONResponse(
            status_code=404,
            content={
                "success": False,
                "error": {"message": f"MCP server {server_name} not found", "kind": ErrorKind.not_found.value},
            },
        )
    if events.status()["subscribers"] >= events.status()["max_subscribers"]:
        return _unavailable(CollaboratorUnavailable("Too many event subscribers"))

    payload = await read_json_object(request)
    logger.info(
        "tool_push_request",
        extra={"method": payload.get("method") if isinstance(payload, dict) else None},
    )
    return StreamingResponse(
        tool_call_events(gateway, events, payload),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
