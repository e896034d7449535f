"""
Topic registry: CRUD on Topics and append-only Messages.

The shared store is the success criterion for every operation. The durable
store receives write-behind copies through ``DurableWriteQueue``:

* ``create_topic``          -> put ``{"id", "messages": []}``
* ``add_message_to_topic``  -> put the full message array (overwrite)
* ``delete_topic``          -> delete

Each read-modify-write on a Topic holds that Topic's lock, so concurrent
appends are applied in arrival order and durable writes for one Topic are
enqueued in the same order.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

from core.entities import Message, MessageDraft, Topic, TopicUpdate, touch_timestamp, utc_now_iso
from core.errors import NotFound
from core.services.durable_queue import DurableWriteQueue
from core.services.registry_shared import (
    KeyedLocks,
    SharedState,
    all_ids,
    logger,
    new_unique_id,
)
from core.state import ADD_TOPIC, REMOVE_TOPIC, UPDATE_TOPIC


def topic_lock_key(topic_id: str) -> str:
    return f"topic:{topic_id}"


def _durable_record(topic: Topic) -> dict:
    return {"id": topic.id, "messages": [message.to_dict() for message in topic.messages]}


class TopicRegistry:
    def __init__(
        self,
        state: SharedState,
        durable: DurableWriteQueue,
        locks: Optional[KeyedLocks] = None,
    ):
        self._state = state
        self._durable = durable
        self._locks = locks or KeyedLocks()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def list_topics(self, assistant_id: Optional[str] = None) -> list[dict]:
        """Topic metadata (no messages), for one Assistant or across all of them."""
        if assistant_id is not None:
            assistant = await self._state.assistant(assistant_id)
            if assistant is None:
                raise NotFound(f"Assistant with ID {assistant_id} not found")
            return [topic.to_metadata() for topic in assistant.topics]

        topics = []
        for assistant in await self._state.assistants() or []:
            topics.extend(topic.to_metadata() for topic in assistant.topics)
        return topics

    async def get_topic(self, topic_id: str) -> Optional[Topic]:
        return await self._state.topic(topic_id)

    async def get_topic_messages(self, topic_id: str) -> list[Message]:
        topic = await self._state.topic(topic_id)
        if topic is None:
            raise NotFound(f"Topic with ID {topic_id} not found")
        return list(topic.messages)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def create_topic(self, assistant_id: str, fields: Optional[TopicUpdate] = None) -> Topic:
        fields = fields or TopicUpdate()
        assistants = await self._state.assistants() or []
        assistant = next((item for item in assistants if item.id == assistant_id), None)
        if assistant is None:
            raise NotFound(f"Assistant with ID {assistant_id} not found")

        now = utc_now_iso()
        topic = fields.apply_to(
            Topic(
                id=new_unique_id(all_ids(assistants)),
                assistant_id=assistant.id,
                created_at=now,
                updated_at=now,
            )
        )

        async with self._locks.hold(topic_lock_key(topic.id)):
            await self._state.dispatch(
                ADD_TOPIC, {"assistantId": assistant.id, "topic": topic.to_dict()}
            )
            self._durable.enqueue_put(topic.id, _durable_record(topic), reason="create_topic")

        logger.info(
            "topic_created",
            extra={"topic_id": topic.id, "assistant_id": assistant.id},
        )
        return topic

    async def update_topic(self, topic_id: str, fields: TopicUpdate) -> Topic:
        async with self._locks.hold(topic_lock_key(topic_id)):
            current = await self._state.topic(topic_id)
            if current is None:
                raise NotFound(f"Topic with ID {topic_id} not found")
            merged = fields.apply_to(current)
            merged = replace(merged, updated_at=touch_timestamp(merged.created_at))
            await self._state.dispatch(
                UPDATE_TOPIC, {"assistantId": merged.assistant_id, "topic": merged.to_dict()}
            )
        logger.info(
            "topic_updated",
            extra={"topic_id": topic_id, "fields": sorted(fields.changes())},
        )
        return merged

    async def delete_topic(self, topic_id: str) -> None:
        async with self._locks.hold(topic_lock_key(topic_id)):
            current = await self._state.topic(topic_id)
            if current is None:
                raise NotFound(f"Topic with ID {topic_id} not found")
            await self._state.dispatch(
                REMOVE_TOPIC,
                {"assistantId": current.assistant_id, "topic": {"id": topic_id}},
            )
            self._durable.enqueue_delete(topic_id, reason="delete_topic")
        logger.info(
            "topic_deleted",
            extra={"topic_id": topic_id, "assistant_id": current.assistant_id},
        )

    async def add_message_to_topic(self, topic_id: str, draft: MessageDraft) -> Message:
        """Append one Message and overwrite the Topic's durable message array."""
        async with self._locks.hold(topic_lock_key(topic_id)):
            assistants = await self._state.assistants() or []
            topic = next(
                (item for assistant in assistants for item in assistant.topics if item.id == topic_id),
                None,
            )
            if topic is None:
                raise NotFound(f"Topic with ID {topic_id} not found")

            message = Message(
                id=new_unique_id(all_ids(assistants)),
                topic_id=topic.id,
                assistant_id=topic.assistant_id,
                role=draft.role,
                content=draft.content,
                type=draft.type,
                status=draft.status,
                created_at=utc_now_iso(),
            )
            updated = replace(
                topic,
                messages=[*topic.messages, message],
                updated_at=touch_timestamp(topic.created_at),
            )
            await self._state.dispatch(
                UPDATE_TOPIC, {"assistantId": updated.assistant_id, "topic": updated.to_dict()}
            )
            self._durable.enqueue_put(topic.id, _durable_record(updated), reason="add_message")

        logger.info(
            "message_added",
            extra={
                "topic_id": topic_id,
                "message_id": message.id,
                "role": message.role,
                "message_count": len(updated.messages),
            },
        )
        return message
