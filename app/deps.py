"""
Dependency and response helpers for the REST routers.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from core.errors import ErrorKind
from core.runtime import get_events, get_gateway
from core.services.events import EventChannel
from core.services.gateway import Gateway, OperationResult

STATUS_BY_KIND = {
    ErrorKind.invalid_argument.value: 400,
    ErrorKind.invalid_operation.value: 400,
    ErrorKind.not_found.value: 404,
    ErrorKind.collaborator_unavailable.value: 503,
    ErrorKind.internal.value: 500,
}


def gateway_dependency() -> Gateway:
    return get_gateway()


def events_dependency() -> EventChannel:
    return get_events()


def envelope(result: OperationResult) -> dict:
    if result.ok:
        return {"success": True, "data": result.data}
    return {"success": False, "error": result.error}


def respond(result: OperationResult, success_status: int = 200) -> JSONResponse:
    status_code = success_status if result.ok else STATUS_BY_KIND.get(result.kind, 500)
    return JSONResponse(status_code=status_code, content=envelope(result))


async def read_json_object(request: Request) -> Optional[Any]:
    """Request body as parsed JSON; ``None`` for an empty body.

    A malformed body is returned as-is (a string) so the gateway rejects it
    as an invalid argument object.
    """
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return await request.json()
    except ValueError:
        return raw.decode("utf-8", errors="replace")
