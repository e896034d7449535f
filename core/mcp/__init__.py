from core.mcp.server import (
    mcp,
    mcp_stream_app,
    registered_tool_names,
    tool_catalog,
    tool_inventory_status,
    tool_result_text,
    MCPRouteNormalizerASGI,
)

__all__ = [
    "mcp",
    "mcp_stream_app",
    "registered_tool_names",
    "tool_catalog",
    "tool_inventory_status",
    "tool_result_text",
    "MCPRouteNormalizerASGI",
]
