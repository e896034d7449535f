"""
Service graph wiring: stores, registries, gateway and event channel.
"""

from __future__ import annotations

from typing import Optional

import core.config as config
from core.durable import DurableStore, SqlDurableStore
from core.entities import Assistant, Topic, utc_now_iso
from core.services.assistants import AssistantRegistry
from core.services.durable_queue import DurableWriteQueue
from core.services.events import EventChannel
from core.services.gateway import OPERATION_NAMES, Gateway
from core.services.registry_shared import KeyedLocks, SharedState
from core.services.topics import TopicRegistry
from core.state import InMemoryStateStore, StateAccessor

logger = config.logger


class Runtime:
    """Runtime state holder (avoids global scoping issues)."""

    state_store: Optional[StateAccessor] = None
    durable_store: Optional[DurableStore] = None
    durable_queue: Optional[DurableWriteQueue] = None
    events: Optional[EventChannel] = None
    assistants: Optional[AssistantRegistry] = None
    topics: Optional[TopicRegistry] = None
    gateway: Optional[Gateway] = None


def server_info() -> dict:
    return {
        "name": config.SERVER_NAME,
        "version": config.SERVER_VERSION,
        "description": config.SERVER_DESCRIPTION,
        "instance_id": config.INSTANCE_ID,
        "capabilities": {"tools": True, "events": True},
        "tools": list(OPERATION_NAMES),
    }


def default_seed_state() -> InMemoryStateStore:
    """A store holding the default Assistant with one empty Topic."""
    now = utc_now_iso()
    assistant = Assistant(
        id=config.DEFAULT_ASSISTANT_ID,
        name="Default Assistant",
        emoji="😀",
        topics=[
            Topic(
                id=f"{config.DEFAULT_ASSISTANT_ID}-topic",
                assistant_id=config.DEFAULT_ASSISTANT_ID,
                created_at=now,
                updated_at=now,
            )
        ],
    )
    return InMemoryStateStore({"assistants": {"assistants": [assistant.to_dict()]}})


def load_state_store() -> InMemoryStateStore:
    if config.STATE_SEED_PATH:
        try:
            return InMemoryStateStore.from_seed_file(config.STATE_SEED_PATH)
        except (OSError, ValueError) as exc:
            logger.warning(
                "state_seed_load_failed",
                extra={"path": config.STATE_SEED_PATH, "error": str(exc)},
            )
    return default_seed_state()


def build_runtime(
    state_store: Optional[StateAccessor] = None,
    durable_store: Optional[DurableStore] = None,
    pulse_interval: Optional[float] = None,
) -> Gateway:
    """Build the full service graph and publish it on ``Runtime``."""
    state_store = state_store if state_store is not None else load_state_store()
    durable_store = durable_store if durable_store is not None else SqlDurableStore()

    shared = SharedState(state_store)
    locks = KeyedLocks()
    durable_queue = DurableWriteQueue(durable_store, config.DURABLE_QUEUE_MAX_SIZE)
    events = EventChannel(
        pulse_interval=pulse_interval if pulse_interval is not None else config.EVENT_PULSE_INTERVAL_SECONDS,
        server_info=server_info(),
    )
    assistants = AssistantRegistry(shared, locks=locks, durable=durable_queue)
    topics = TopicRegistry(shared, durable_queue, locks=locks)
    gateway = Gateway(assistants, topics, publish=events.publish)

    Runtime.state_store = state_store
    Runtime.durable_store = durable_store
    Runtime.durable_queue = durable_queue
    Runtime.events = events
    Runtime.assistants = assistants
    Runtime.topics = topics
    Runtime.gateway = gateway
    logger.info("runtime_built", extra={"store": type(state_store).__name__})
    return gateway


async def start_runtime() -> None:
    if Runtime.durable_queue is None:
        raise RuntimeError("Runtime not built - call build_runtime() first")
    Runtime.durable_queue.start()


async def stop_runtime() -> None:
    if Runtime.events is not None:
        await Runtime.events.close()
    if Runtime.durable_queue is not None:
        await Runtime.durable_queue.stop(drain=True)


def reset_runtime() -> None:
    for name in ("state_store", "durable_store", "durable_queue", "events", "assistants", "topics", "gateway"):
        setattr(Runtime, name, None)


def get_gateway() -> Gateway:
    if Runtime.gateway is None:
        raise RuntimeError("Runtime not initialized - gateway is None")
    return Runtime.gateway


def get_events() -> EventChannel:
    if Runtime.events is None:
        raise RuntimeError("Runtime not initialized - event channel is None")
    return Runtime.events
