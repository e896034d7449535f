import asyncio
import copy
import os
import tempfile
from types import SimpleNamespace

_TEST_DATA_DIR = tempfile.mkdtemp(prefix="assistantgate-tests-")

os.environ.setdefault("DB_BACKEND", "sqlite")
os.environ.setdefault("SQLITE_PATH", os.path.join(_TEST_DATA_DIR, "assistantgate.db"))
os.environ.setdefault("AUTO_MIGRATE_ON_STARTUP", "true")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from core.db import DB
from core.entities import utc_now_iso
from core.errors import DurableStoreError
from core.models import Base
from core.services.assistants import AssistantRegistry
from core.services.durable_queue import DurableWriteQueue
from core.services.events import EventChannel
from core.services.gateway import Gateway
from core.services.registry_shared import KeyedLocks, SharedState
from core.services.topics import TopicRegistry
from core.state import InMemoryStateStore


class MemoryDurableStore:
    """Durable store fake that records every call."""

    def __init__(self):
        self.records = {}
        self.calls = []

    async def put(self, record_id, record):
        self.calls.append(("put", record_id))
        self.records[record_id] = copy.deepcopy(record)

    async def get(self, record_id):
        record = self.records.get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def delete(self, record_id):
        self.calls.append(("delete", record_id))
        self.records.pop(record_id, None)


class FailingDurableStore(MemoryDurableStore):
    async def put(self, record_id, record):
        self.calls.append(("put", record_id))
        raise DurableStoreError(f"put {record_id} failed: disk full")

    async def delete(self, record_id):
        self.calls.append(("delete", record_id))
        raise DurableStoreError(f"delete {record_id} failed: disk full")


class YieldingStateStore(InMemoryStateStore):
    """In-memory store that suspends on every call, so concurrent callers interleave."""

    async def read(self, path):
        await asyncio.sleep(0)
        return await super().read(path)

    async def dispatch(self, action):
        await asyncio.sleep(0)
        await super().dispatch(action)


class OfflineStateStore:
    """Shared store whose every call fails."""

    async def read(self, path):
        raise ConnectionError("state store offline")

    async def dispatch(self, action):
        raise ConnectionError("state store offline")


def seeded_state(message_count: int = 0) -> dict:
    now = utc_now_iso()
    messages = [
        {
            "id": f"m{index}",
            "topicId": "t1",
            "assistantId": "a1",
            "role": "user",
            "content": f"hello {index}",
            "type": "text",
            "status": "success",
            "createdAt": now,
        }
        for index in range(message_count)
    ]
    return {
        "assistants": {
            "assistants": [
                {
                    "id": "a1",
                    "name": "Writer",
                    "prompt": "You write.",
                    "type": "assistant",
                    "emoji": "✍️",
                    "description": "",
                    "tags": ["prose"],
                    "model": {"id": "gpt-x"},
                    "topics": [
                        {
                            "id": "t1",
                            "assistantId": "a1",
                            "name": "Drafts",
                            "createdAt": now,
                            "updatedAt": now,
                            "isNameManuallyEdited": False,
                            "messages": messages,
                        }
                    ],
                },
                {
                    "id": "a2",
                    "name": "Coder",
                    "prompt": "",
                    "type": "assistant",
                    "emoji": "💻",
                    "description": "",
                    "tags": [],
                    "topics": [
                        {
                            "id": "t2",
                            "assistantId": "a2",
                            "name": "Bugs",
                            "createdAt": now,
                            "updatedAt": now,
                            "isNameManuallyEdited": True,
                            "messages": [],
                        }
                    ],
                },
            ]
        }
    }


def build_services(state=None, durable=None, pulse_interval: float = 30.0):
    store = state if state is not None else InMemoryStateStore(seeded_state())
    durable = durable if durable is not None else MemoryDurableStore()
    shared = SharedState(store)
    locks = KeyedLocks()
    queue = DurableWriteQueue(durable, max_size=100)
    events = EventChannel(pulse_interval=pulse_interval, server_info={"name": "assistant-manager"})
    assistants = AssistantRegistry(shared, locks=locks, durable=queue)
    topics = TopicRegistry(shared, queue, locks=locks)
    gateway = Gateway(assistants, topics, publish=events.publish)
    return SimpleNamespace(
        store=store,
        durable=durable,
        queue=queue,
        events=events,
        assistants=assistants,
        topics=topics,
        gateway=gateway,
    )


@pytest.fixture
def services():
    return build_services


@pytest.fixture
def server_db(tmp_path):
    db_path = tmp_path / "durable.sqlite"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    previous_engine = DB.engine
    previous_session = DB.SessionLocal
    DB.engine = engine
    DB.SessionLocal = SessionLocal
    try:
        yield SessionLocal
    finally:
        DB.engine = previous_engine
        DB.SessionLocal = previous_session
        engine.dispose()


@pytest.fixture(scope="session")
def app_client():
    from fastapi.testclient import TestClient

    from app.main import app
    from core.runtime import build_runtime, reset_runtime

    build_runtime(state_store=InMemoryStateStore(seeded_state()), durable_store=MemoryDurableStore())
    with TestClient(app) as client:
        yield client
    reset_runtime()


@pytest.fixture
def api(app_client):
    """The running app with a freshly seeded runtime per test."""
    from core.runtime import Runtime, build_runtime, start_runtime, stop_runtime

    handle = SimpleNamespace(client=app_client, runtime=Runtime)

    def reset(state=None):
        app_client.portal.call(stop_runtime)
        handle.durable = MemoryDurableStore()
        handle.store = state if state is not None else InMemoryStateStore(seeded_state())
        build_runtime(state_store=handle.store, durable_store=handle.durable)
        app_client.portal.call(start_runtime)
        return handle

    def drain():
        app_client.portal.call(Runtime.durable_queue.drain)

    handle.reset = reset
    handle.drain = drain
    return reset()
