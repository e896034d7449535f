"""
REST routes for assistants.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request

from app.deps import gateway_dependency, read_json_object, respond
from core.services.gateway import Gateway


router = APIRouter(prefix="/v1/assistants", tags=["assistants"])


def with_path_args(body: Any, **path_args) -> Any:
    """Merge path parameters over a JSON object body; other bodies pass through untouched."""
    if body is None:
        return dict(path_args)
    if isinstance(body, dict):
        return {**body, **path_args}
    return body


@router.get("")
async def list_assistants(gateway: Gateway = Depends(gateway_dependency)):
    return respond(await gateway.invoke("list_assistants", {}, surface="rest"))


@router.post("")
async def create_assistant(request: Request, gateway: Gateway = Depends(gateway_dependency)):
    body = await read_json_object(request)
    result = await gateway.invoke("create_assistant", body, surface="rest")
    return respond(result, success_status=201)


@router.get("/{assistant_id}")
async def get_assistant(assistant_id: str, gateway: Gateway = Depends(gateway_dependency)):
    result = await gateway.invoke("get_assistant", {"assistant_id": assistant_id}, surface="rest")
    return respond(result)


@router.patch("/{assistant_id}")
async def update_assistant(
    assistant_id: str,
    request: Request,
    gateway: Gateway = Depends(gateway_dependency),
):
    body = with_path_args(await read_json_object(request), assistant_id=assistant_id)
    return respond(await gateway.invoke("update_assistant", body, surface="rest"))


@router.delete("/{assistant_id}")
async def delete_assistant(assistant_id: str, gateway: Gateway = Depends(gateway_dependency)):
    result = await gateway.invoke("delete_assistant", {"assistant_id": assistant_id}, surface="rest")
    return respond(result)
