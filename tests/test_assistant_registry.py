import asyncio

import pytest

from conftest import OfflineStateStore, YieldingStateStore, seeded_state
from core.entities import AssistantUpdate
from core.errors import CollaboratorUnavailable, NotFound
from core.state import InMemoryStateStore


def test_create_assistant_without_fields_gets_one_default_topic(services):
    svc = services()

    async def scenario():
        assistant = await svc.assistants.create_assistant()
        await svc.queue.drain()
        return assistant

    assistant = asyncio.run(scenario())

    assert assistant.name == "New Assistant"
    assert assistant.type == "assistant"
    assert assistant.prompt == ""
    assert assistant.tags == []
    assert len(assistant.topics) == 1
    assert assistant.topics[0].assistant_id == assistant.id
    assert assistant.topics[0].messages == []

    stored = [item for item in svc.store.snapshot()["assistants"]["assistants"] if item["id"] == assistant.id]
    assert len(stored) == 1
    assert [topic["id"] for topic in stored[0]["topics"]] == [assistant.topics[0].id]
    assert svc.durable.records[assistant.topics[0].id] == {"id": assistant.topics[0].id, "messages": []}


def test_create_assistant_is_a_single_dispatch(services):
    svc = services()
    before = svc.store.dispatch_count

    asyncio.run(svc.assistants.create_assistant(AssistantUpdate(name="Planner", tags=("a", "b"))))

    assert svc.store.dispatch_count == before + 1


def test_create_assistant_ids_do_not_collide_with_existing(services):
    svc = services()

    async def scenario():
        created = [await svc.assistants.create_assistant() for _ in range(5)]
        return created

    created = asyncio.run(scenario())
    ids = [item.id for item in created] + [item.topics[0].id for item in created]
    assert len(set(ids)) == len(ids)
    assert not {"a1", "a2", "t1", "t2"} & set(ids)


def test_list_assistants_strips_topics(services):
    svc = services()

    listed = asyncio.run(svc.assistants.list_assistants())

    assert [item["id"] for item in listed] == ["a1", "a2"]
    assert all("topics" not in item for item in listed)
    # Keys owned by other parts of the application survive the projection.
    assert listed[0]["model"] == {"id": "gpt-x"}


def test_list_assistants_uninitialized_store_is_empty(services):
    svc = services(state=InMemoryStateStore({}))

    assert asyncio.run(svc.assistants.list_assistants()) == []


def test_get_assistant_missing_returns_none(services):
    svc = services()

    assert asyncio.run(svc.assistants.get_assistant("nope")) is None


def test_update_assistant_merges_and_keeps_topics(services):
    svc = services()

    async def scenario():
        updated = await svc.assistants.update_assistant("a1", AssistantUpdate(name="Editor"))
        fetched = await svc.assistants.get_assistant("a1")
        return updated, fetched

    updated, fetched = asyncio.run(scenario())

    assert updated.id == "a1"
    assert updated.name == "Editor"
    assert updated.prompt == "You write."
    assert fetched.name == "Editor"
    assert [topic.id for topic in fetched.topics] == ["t1"]
    assert fetched.extra["model"] == {"id": "gpt-x"}


def test_update_assistant_missing_is_not_found(services):
    svc = services()
    before = svc.store.snapshot()

    with pytest.raises(NotFound):
        asyncio.run(svc.assistants.update_assistant("ghost", AssistantUpdate(name="x")))

    assert svc.store.snapshot() == before


def test_concurrent_updates_on_disjoint_fields_both_land(services):
    svc = services(state=YieldingStateStore(seeded_state()))

    async def scenario():
        await asyncio.gather(
            svc.assistants.update_assistant("a1", AssistantUpdate(name="Renamed")),
            svc.assistants.update_assistant("a1", AssistantUpdate(emoji="🦉")),
        )
        return await svc.assistants.get_assistant("a1")

    result = asyncio.run(scenario())
    assert result.name == "Renamed"
    assert result.emoji == "🦉"


def test_delete_assistant_cascades_and_second_delete_fails(services):
    svc = services()

    async def scenario():
        await svc.assistants.delete_assistant("a1")
        assistant = await svc.assistants.get_assistant("a1")
        topic = await svc.topics.get_topic("t1")
        with pytest.raises(NotFound):
            await svc.assistants.delete_assistant("a1")
        return assistant, topic

    assistant, topic = asyncio.run(scenario())
    assert assistant is None
    assert topic is None


def test_store_failure_is_collaborator_unavailable(services):
    svc = services(state=OfflineStateStore())

    with pytest.raises(CollaboratorUnavailable) as excinfo:
        asyncio.run(svc.assistants.create_assistant())

    assert "state store offline" in excinfo.value.message


def test_create_on_uninitialized_store_is_collaborator_unavailable(services):
    svc = services(state=InMemoryStateStore({}))

    with pytest.raises(CollaboratorUnavailable):
        asyncio.run(svc.assistants.create_assistant())
