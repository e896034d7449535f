"""
Shared helpers for the assistant and topic registries.
"""

from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Optional

import core.config as config
from core.entities import Assistant, Topic
from core.errors import CollaboratorUnavailable, GatewayError, NotFound
from core.state import ASSISTANTS_PATH, MissingEntity, StateAccessor, make_action

logger = config.logger


class KeyedLocks:
    """One ``asyncio.Lock`` per entity id, dropped once nobody holds or waits on it."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


def new_unique_id(taken: Iterable[str]) -> str:
    taken_ids = set(taken)
    while True:
        candidate = str(uuid.uuid4())
        if candidate not in taken_ids:
            return candidate


def all_ids(assistants: list[Assistant]) -> set[str]:
    ids = set()
    for assistant in assistants:
        ids.add(assistant.id)
        for topic in assistant.topics:
            ids.add(topic.id)
            ids.update(message.id for message in topic.messages)
    return ids


class SharedState:
    """Typed reads and dispatches against the shared store.

    Store failures become ``CollaboratorUnavailable``; an action rejected
    because its target vanished becomes ``NotFound``.
    """

    def __init__(self, accessor: StateAccessor):
        self._accessor = accessor

    @property
    def accessor(self) -> StateAccessor:
        return self._accessor

    async def assistants(self) -> Optional[list[Assistant]]:
        """All assistants, or ``None`` when the collection is not initialized."""
        try:
            raw = await self._accessor.read(ASSISTANTS_PATH)
        except Exception as exc:
            logger.error(
                "state_read_failed",
                extra={"path": ASSISTANTS_PATH, "error": str(exc), "error_type": type(exc).__name__},
            )
            raise CollaboratorUnavailable(f"Shared state store unavailable: {exc}") from exc
        if not isinstance(raw, list):
            return None
        return [Assistant.from_dict(item) for item in raw]

    async def assistant(self, assistant_id: str) -> Optional[Assistant]:
        for assistant in await self.assistants() or []:
            if assistant.id == assistant_id:
                return assistant
        return None

    async def topic(self, topic_id: str) -> Optional[Topic]:
        for assistant in await self.assistants() or []:
            for topic in assistant.topics:
                if topic.id == topic_id:
                    return topic
        return None

    async def dispatch(self, action_type: str, payload: Any) -> None:
        try:
            await self._accessor.dispatch(make_action(action_type, payload))
        except MissingEntity as exc:
            raise NotFound(str(exc)) from exc
        except GatewayError:
            raise
        except Exception as exc:
            logger.error(
                "state_dispatch_failed",
                extra={"action": action_type, "error": str(exc), "error_type": type(exc).__name__},
            )
            raise CollaboratorUnavailable(f"Shared state store unavailable: {exc}") from exc
