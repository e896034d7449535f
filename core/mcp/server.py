"""
MCP server wiring and tool registration.

Every tool is a thin adapter over ``Gateway.invoke``: arguments left unset are
not forwarded, success returns the gateway payload as JSON text, and failure
raises ``ToolError`` with the gateway's message.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

import core.config as config
from core.runtime import get_gateway
from core.services.gateway import OperationResult

READ_ONLY_TOOL_ANNOTATIONS = {"readOnlyHint": True}
WRITE_TOOL_ANNOTATIONS = {"readOnlyHint": False, "destructiveHint": False}
DESTRUCTIVE_TOOL_ANNOTATIONS = {"destructiveHint": True}

mcp = FastMCP(config.SERVER_NAME)

_REGISTERED_TOOLS: list[Callable[..., Any]] = []


def mcp_tool(*args, **kwargs):
    """Register a tool with FastMCP and keep a local registry of tool functions."""
    def decorator(fn: Callable[..., Any]):
        _REGISTERED_TOOLS.append(fn)
        mcp.tool(*args, **kwargs)(fn)
        return fn
    return decorator


def registered_tool_names() -> list[str]:
    return sorted(fn.__name__ for fn in _REGISTERED_TOOLS)


async def tool_inventory_status() -> dict:
    tools = await mcp.get_tools()
    tool_names = sorted(tools.keys())
    if not tool_names:
        config.logger.warning("tool_inventory_empty", extra={"tool_count": 0})
    return {"tool_count": len(tool_names), "tools": tool_names}


async def tool_catalog() -> list[dict]:
    tools = await mcp.get_tools()
    return [
        {"name": name, "description": tool.description or ""}
        for name, tool in sorted(tools.items())
    ]


def tool_result_text(result: OperationResult) -> str:
    """Content text of a successful call, or ``ToolError`` carrying the failure message."""
    if not result.ok:
        raise ToolError(result.message)
    return json.dumps(result.data)


async def _invoke(operation: str, **arguments) -> str:
    present = {key: value for key, value in arguments.items() if value is not None}
    result = await get_gateway().invoke(operation, present, surface="mcp")
    return tool_result_text(result)


@mcp_tool(annotations=READ_ONLY_TOOL_ANNOTATIONS)
async def list_assistants() -> str:
    """List all assistants (without full conversation content)."""
    return await _invoke("list_assistants")


@mcp_tool(annotations=READ_ONLY_TOOL_ANNOTATIONS)
async def get_assistant(assistant_id: str) -> str:
    """Get detailed information about a specific assistant."""
    return await _invoke("get_assistant", assistant_id=assistant_id)


@mcp_tool(annotations=WRITE_TOOL_ANNOTATIONS)
async def create_assistant(
    name: Optional[str] = None,
    prompt: Optional[str] = None,
    type: Optional[str] = None,
    emoji: Optional[str] = None,
    description: Optional[str] = None,
    tags: Optional[list[str]] = None,
) -> str:
    """Create a new assistant with one default topic."""
    return await _invoke(
        "create_assistant",
        name=name,
        prompt=prompt,
        type=type,
        emoji=emoji,
        description=description,
        tags=tags,
    )


@mcp_tool(annotations=WRITE_TOOL_ANNOTATIONS)
async def update_assistant(
    assistant_id: str,
    name: Optional[str] = None,
    prompt: Optional[str] = None,
    type: Optional[str] = None,
    emoji: Optional[str] = None,
    description: Optional[str] = None,
    tags: Optional[list[str]] = None,
) -> str:
    """Update an existing assistant."""
    return await _invoke(
        "update_assistant",
        assistant_id=assistant_id,
        name=name,
        prompt=prompt,
        type=type,
        emoji=emoji,
        description=description,
        tags=tags,
    )


@mcp_tool(annotations=DESTRUCTIVE_TOOL_ANNOTATIONS)
async def delete_assistant(assistant_id: str) -> str:
    """Delete an assistant and all its topics."""
    return await _invoke("delete_assistant", assistant_id=assistant_id)


@mcp_tool(annotations=READ_ONLY_TOOL_ANNOTATIONS)
async def list_topics(assistant_id: Optional[str] = None) -> str:
    """List all topics, optionally filtered by assistant."""
    return await _invoke("list_topics", assistant_id=assistant_id)


@mcp_tool(annotations=READ_ONLY_TOOL_ANNOTATIONS)
async def get_topic(topic_id: str) -> str:
    """Get detailed information about a specific topic."""
    return await _invoke("get_topic", topic_id=topic_id)


@mcp_tool(annotations=WRITE_TOOL_ANNOTATIONS)
async def create_topic(
    assistant_id: str,
    name: Optional[str] = None,
    prompt: Optional[str] = None,
    pinned: Optional[bool] = None,
    is_name_manually_edited: Optional[bool] = None,
) -> str:
    """Create a new topic for an assistant."""
    return await _invoke(
        "create_topic",
        assistant_id=assistant_id,
        name=name,
        prompt=prompt,
        pinned=pinned,
        is_name_manually_edited=is_name_manually_edited,
    )


@mcp_tool(annotations=WRITE_TOOL_ANNOTATIONS)
async def update_topic(
    topic_id: str,
    name: Optional[str] = None,
    prompt: Optional[str] = None,
    pinned: Optional[bool] = None,
    is_name_manually_edited: Optional[bool] = None,
) -> str:
    """Update an existing topic."""
    return await _invoke(
        "update_topic",
        topic_id=topic_id,
        name=name,
        prompt=prompt,
        pinned=pinned,
        is_name_manually_edited=is_name_manually_edited,
    )


@mcp_tool(annotations=DESTRUCTIVE_TOOL_ANNOTATIONS)
async def delete_topic(topic_id: str) -> str:
    """Delete a topic and all its messages."""
    return await _invoke("delete_topic", topic_id=topic_id)


@mcp_tool(annotations=READ_ONLY_TOOL_ANNOTATIONS)
async def get_topic_messages(topic_id: str) -> str:
    """Get all messages for a specific topic."""
    return await _invoke("get_topic_messages", topic_id=topic_id)


@mcp_tool(annotations=WRITE_TOOL_ANNOTATIONS)
async def send_message(
    topic_id: str,
    content: str,
    role: str,
    type: Optional[str] = None,
) -> str:
    """Add a new message to a topic.

    Args:
        topic_id: The ID of the topic
        content: Message content
        role: One of "user", "assistant", "system"
        type: One of "text", "@", "clear" (default "text")
    """
    return await _invoke("send_message", topic_id=topic_id, content=content, role=role, type=type)


@mcp_tool(annotations=WRITE_TOOL_ANNOTATIONS)
async def create_new_conversation(
    name: Optional[str] = None,
    prompt: Optional[str] = None,
) -> str:
    """Create a new conversation topic with the default assistant."""
    return await _invoke("create_new_conversation", name=name, prompt=prompt)


mcp_stream_app = mcp.http_app(
    path="/",
    transport="streamable-http",
    stateless_http=True,
    json_response=True,
)


class MCPRouteNormalizerASGI:
    """Pure ASGI middleware - no response buffering, SSE-safe."""
    def __init__(self, wrapped_app):
        self.wrapped_app = wrapped_app

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http" and scope.get("path") == "/mcp":
            scope = dict(scope)
            scope["path"] = "/mcp/"
        await self.wrapped_app(scope, receive, send)
