"""
REST routes for topics, their messages and new conversations.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from app.deps import gateway_dependency, read_json_object, respond
from app.routes.assistants import with_path_args
from core.services.gateway import Gateway


router = APIRouter(prefix="/v1", tags=["topics"])


@router.get("/topics")
async def list_topics(
    assistant_id: Optional[str] = None,
    gateway: Gateway = Depends(gateway_dependency),
):
    arguments = {"assistant_id": assistant_id} if assistant_id is not None else {}
    return respond(await gateway.invoke("list_topics", arguments, surface="rest"))


@router.post("/topics")
async def create_topic(request: Request, gateway: Gateway = Depends(gateway_dependency)):
    body = await read_json_object(request)
    result = await gateway.invoke("create_topic", body, surface="rest")
    return respond(result, success_status=201)


@router.get("/topics/{topic_id}")
async def get_topic(topic_id: str, gateway: Gateway = Depends(gateway_dependency)):
    return respond(await gateway.invoke("get_topic", {"topic_id": topic_id}, surface="rest"))


@router.patch("/topics/{topic_id}")
async def update_topic(topic_id: str, request: Request, gateway: Gateway = Depends(gateway_dependency)):
    body = with_path_args(await read_json_object(request), topic_id=topic_id)
    return respond(await gateway.invoke("update_topic", body, surface="rest"))


@router.delete("/topics/{topic_id}")
async def delete_topic(topic_id: str, gateway: Gateway = Depends(gateway_dependency)):
    return respond(await gateway.invoke("delete_topic", {"topic_id": topic_id}, surface="rest"))


@router.get("/topics/{topic_id}/messages")
async def get_topic_messages(topic_id: str, gateway: Gateway = Depends(gateway_dependency)):
    result = await gateway.invoke("get_topic_messages", {"topic_id": topic_id}, surface="rest")
    return respond(result)


@router.post("/topics/{topic_id}/messages")
async def send_message(topic_id: str, request: Request, gateway: Gateway = Depends(gateway_dependency)):
    body = with_path_args(await read_json_object(request), topic_id=topic_id)
    result = await gateway.invoke("send_message", body, surface="rest")
    return respond(result, success_status=201)


@router.post("/conversations")
async def create_new_conversation(request: Request, gateway: Gateway = Depends(gateway_dependency)):
    body = await read_json_object(request)
    result = await gateway.invoke("create_new_conversation", body, surface="rest")
    return respond(result, success_status=201)
