import asyncio
import json

from fastmcp import Client

from app.routes.events import tool_call_events
from core.mcp import mcp

VOLATILE_KEYS = {"id", "createdAt", "updatedAt"}


def _strip(value):
    if isinstance(value, dict):
        return {key: _strip(item) for key, item in value.items() if key not in VOLATILE_KEYS}
    if isinstance(value, list):
        return [_strip(item) for item in value]
    return value


def _call_tool(api, name, arguments):
    async def call():
        async with Client(mcp) as client:
            return await client.call_tool_mcp(name, arguments)

    return api.client.portal.call(call)


def test_create_topic_is_identical_across_surfaces(api):
    arguments = {"assistant_id": "a1", "name": "Parity", "prompt": "Same"}

    rest = api.client.post("/v1/topics", json=arguments)
    api.drain()
    rest_state = api.store.snapshot()
    rest_durable = list(api.durable.records.values())

    api.reset()
    tool = _call_tool(api, "create_topic", arguments)
    api.drain()
    tool_state = api.store.snapshot()
    tool_durable = list(api.durable.records.values())

    assert rest.status_code == 201
    assert tool.isError is False
    rest_data = rest.json()["data"]
    tool_data = json.loads(tool.content[0].text)
    assert set(rest_data) == set(tool_data)
    assert _strip(rest_data) == _strip(tool_data)
    assert _strip(rest_state) == _strip(tool_state)
    assert _strip(rest_durable) == _strip(tool_durable)


def test_send_message_is_identical_across_surfaces(api):
    arguments = {"topic_id": "t1", "content": "same words", "role": "assistant", "type": "@"}

    rest = api.client.post("/v1/topics/t1/messages", json=arguments)
    rest_state = api.store.snapshot()

    api.reset()
    tool = _call_tool(api, "send_message", arguments)
    tool_state = api.store.snapshot()

    assert _strip(rest.json()["data"]) == _strip(json.loads(tool.content[0].text))
    assert _strip(rest_state) == _strip(tool_state)


def test_null_message_type_defaults_to_text_on_both_surfaces(api):
    rest = api.client.post(
        "/v1/topics/t1/messages",
        json={"content": "x", "role": "user", "type": None},
    )
    rest_stored = api.store.snapshot()["assistants"]["assistants"][0]["topics"][0]["messages"][-1]

    api.reset()
    tool = _call_tool(api, "send_message", {"topic_id": "t1", "content": "x", "role": "user", "type": None})
    tool_stored = api.store.snapshot()["assistants"]["assistants"][0]["topics"][0]["messages"][-1]

    assert rest.status_code == 201
    assert rest.json()["data"]["type"] == "text"
    assert json.loads(tool.content[0].text)["type"] == "text"
    assert rest_stored["type"] == tool_stored["type"] == "text"


def test_failures_carry_the_same_message(api):
    rest = api.client.get("/v1/topics/ghost")
    tool = _call_tool(api, "get_topic", {"topic_id": "ghost"})

    assert rest.status_code == 404
    assert tool.isError is True
    assert rest.json()["error"]["message"] in tool.content[0].text


def test_operation_events_reach_general_subscribers(api):
    events = api.runtime.events

    async def scenario():
        subscriber = events.subscribe()
        await subscriber.next_event(timeout=1)
        return subscriber

    subscriber = api.client.portal.call(scenario)
    api.client.post("/v1/topics", json={"assistant_id": "a2"})

    event = api.client.portal.call(subscriber.next_event, 1)
    events.unsubscribe(subscriber)
    assert event["type"] == "operation"
    assert event["operation"] == "create_topic"
    assert event["ok"] is True
    assert event["data"]["assistantId"] == "a2"


def test_tool_push_path_streams_ack_then_result(services):
    svc = services()

    async def scenario():
        stream = tool_call_events(
            svc.gateway,
            svc.events,
            {
                "method": "tools/call",
                "params": {"name": "create_topic", "arguments": {"assistant_id": "a1", "name": "Pushed"}},
            },
        )
        chunks = [await stream.__anext__(), await stream.__anext__()]
        await stream.aclose()
        return chunks

    ack_chunk, result_chunk = asyncio.run(scenario())

    assert ack_chunk.startswith("data: ") and ack_chunk.endswith("\n\n")
    ack = json.loads(ack_chunk[len("data: "):])
    result = json.loads(result_chunk[len("data: "):])
    assert ack["type"] == "connection"
    assert ack["status"] == "accepted"
    assert ack["method"] == "tools/call"
    assert result["type"] == "result"
    assert result["success"] is True
    assert result["data"]["name"] == "Pushed"
    assert result["data"]["assistantId"] == "a1"
    assert svc.events.status()["subscribers"] == 0


def test_tool_push_path_reports_failures_and_tool_list(services):
    svc = services()

    async def first_result(payload):
        stream = tool_call_events(svc.gateway, svc.events, payload)
        await stream.__anext__()
        chunk = await stream.__anext__()
        await stream.aclose()
        return json.loads(chunk[len("data: "):])

    async def scenario():
        return (
            await first_result({"method": "tools/call", "params": {"name": "get_topic", "arguments": {"topic_id": "x"}}}),
            await first_result({"method": "tools/list"}),
            await first_result({"method": "resources/read"}),
        )

    failed, listed, unsupported = asyncio.run(scenario())

    assert failed["success"] is False
    assert failed["error"] == {"message": "Topic with ID x not found", "kind": "NotFound"}
    assert {tool["name"] for tool in listed["data"]} >= {"send_message", "create_new_conversation"}
    assert unsupported["error"]["kind"] == "InvalidOperation"
