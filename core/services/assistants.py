"""
Assistant registry: CRUD on Assistant entities in the shared store.
"""

from __future__ import annotations

from typing import Optional

from core.entities import Assistant, AssistantUpdate, Topic, utc_now_iso
from core.errors import NotFound
from core.services.durable_queue import DurableWriteQueue
from core.services.registry_shared import (
    KeyedLocks,
    SharedState,
    all_ids,
    logger,
    new_unique_id,
)
from core.state import ADD_ASSISTANT, REMOVE_ASSISTANT, UPDATE_ASSISTANT


def assistant_lock_key(assistant_id: str) -> str:
    return f"assistant:{assistant_id}"


class AssistantRegistry:
    def __init__(
        self,
        state: SharedState,
        locks: Optional[KeyedLocks] = None,
        durable: Optional[DurableWriteQueue] = None,
    ):
        self._state = state
        self._locks = locks or KeyedLocks()
        self._durable = durable

    async def list_assistants(self) -> list[dict]:
        """Assistant metadata without topics; empty when the store is not initialized."""
        assistants = await self._state.assistants()
        if assistants is None:
            logger.warning("assistants_state_uninitialized")
            return []
        return [assistant.to_metadata() for assistant in assistants]

    async def get_assistant(self, assistant_id: str) -> Optional[Assistant]:
        return await self._state.assistant(assistant_id)

    async def create_assistant(self, fields: Optional[AssistantUpdate] = None) -> Assistant:
        """Create an Assistant with exactly one default Topic.

        The new Assistant and its Topic are written in one ``addAssistant``
        action. The Topic's durable record is initialised best-effort.
        """
        fields = fields or AssistantUpdate()
        taken = all_ids(await self._state.assistants() or [])
        assistant_id = new_unique_id(taken)
        taken.add(assistant_id)
        now = utc_now_iso()
        topic = Topic(
            id=new_unique_id(taken),
            assistant_id=assistant_id,
            created_at=now,
            updated_at=now,
        )
        assistant = fields.apply_to(Assistant(id=assistant_id, topics=[topic]))

        await self._state.dispatch(ADD_ASSISTANT, assistant.to_dict())

        if self._durable is not None:
            self._durable.enqueue_put(
                topic.id,
                {"id": topic.id, "messages": []},
                reason="create_assistant",
            )
        logger.info(
            "assistant_created",
            extra={"assistant_id": assistant_id, "topic_id": topic.id},
        )
        return assistant

    async def update_assistant(self, assistant_id: str, fields: AssistantUpdate) -> Assistant:
        async with self._locks.hold(assistant_lock_key(assistant_id)):
            current = await self._state.assistant(assistant_id)
            if current is None:
                raise NotFound(f"Assistant with ID {assistant_id} not found")
            merged = fields.apply_to(current)
            await self._state.dispatch(UPDATE_ASSISTANT, merged.to_dict(include_topics=False))
        logger.info(
            "assistant_updated",
            extra={"assistant_id": assistant_id, "fields": sorted(fields.changes())},
        )
        return merged

    async def delete_assistant(self, assistant_id: str) -> None:
        """Remove the Assistant and, through it, all of its Topics.

        Durable records of those Topics are left in place.
        """
        async with self._locks.hold(assistant_lock_key(assistant_id)):
            current = await self._state.assistant(assistant_id)
            if current is None:
                raise NotFound(f"Assistant with ID {assistant_id} not found")
            await self._state.dispatch(REMOVE_ASSISTANT, {"id": assistant_id})
        logger.info(
            "assistant_deleted",
            extra={
                "assistant_id": assistant_id,
                "topics_removed": len(current.topics),
                "durable_records_retained": [topic.id for topic in current.topics],
            },
        )
