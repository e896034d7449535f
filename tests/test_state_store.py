import asyncio
import json

import pytest

from conftest import seeded_state
from core.errors import StoreNotReady
from core.state import (
    ADD_TOPIC,
    ASSISTANTS_PATH,
    REMOVE_TOPIC,
    UPDATE_ASSISTANT,
    UPDATE_TOPIC,
    InMemoryStateStore,
    MissingEntity,
    make_action,
)


def test_reads_are_copies():
    store = InMemoryStateStore(seeded_state())

    async def scenario():
        assistants = await store.read(ASSISTANTS_PATH)
        assistants[0]["name"] = "Mutated"
        return await store.read(ASSISTANTS_PATH)

    assert asyncio.run(scenario())[0]["name"] == "Writer"


def test_read_missing_path_is_none():
    store = InMemoryStateStore({})

    assert asyncio.run(store.read(ASSISTANTS_PATH)) is None


def test_update_assistant_never_touches_topics():
    store = InMemoryStateStore(seeded_state())

    async def scenario():
        await store.dispatch(make_action(UPDATE_ASSISTANT, {"id": "a1", "name": "X", "topics": []}))
        return await store.read(ASSISTANTS_PATH)

    assistants = asyncio.run(scenario())
    assert assistants[0]["name"] == "X"
    assert [topic["id"] for topic in assistants[0]["topics"]] == ["t1"]


def test_topic_actions_against_missing_targets_raise():
    store = InMemoryStateStore(seeded_state())

    async def scenario():
        with pytest.raises(MissingEntity):
            await store.dispatch(make_action(ADD_TOPIC, {"assistantId": "ghost", "topic": {"id": "x"}}))
        with pytest.raises(MissingEntity):
            await store.dispatch(make_action(UPDATE_TOPIC, {"assistantId": "a1", "topic": {"id": "ghost"}}))
        with pytest.raises(MissingEntity):
            await store.dispatch(make_action(REMOVE_TOPIC, {"assistantId": "a1", "topic": {"id": "ghost"}}))

    asyncio.run(scenario())
    assert store.dispatch_count == 0


def test_uninitialized_store_rejects_dispatch():
    store = InMemoryStateStore({})

    with pytest.raises(StoreNotReady):
        asyncio.run(store.dispatch(make_action(ADD_TOPIC, {"assistantId": "a1", "topic": {"id": "x"}})))


def test_unknown_action_is_rejected():
    store = InMemoryStateStore()

    with pytest.raises(ValueError):
        asyncio.run(store.dispatch(make_action("assistants/explode", {})))


def test_seed_file_accepts_flat_list(tmp_path):
    path = tmp_path / "seed.json"
    path.write_text(json.dumps({"assistants": seeded_state()["assistants"]["assistants"]}), encoding="utf-8")

    store = InMemoryStateStore.from_seed_file(str(path))

    assert [item["id"] for item in asyncio.run(store.read(ASSISTANTS_PATH))] == ["a1", "a2"]
