"""
Assistant, Topic and Message records plus their field-level update descriptors.

Records live in the shared store as plain dicts using the camelCase wire keys
(``assistantId``, ``createdAt`` ...). The dataclasses here are the typed view
the registries work with; keys they do not know about are carried in ``extra``
so a read/write-back never drops data owned by other parts of the application.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Optional

import core.config as config


def utc_now_iso() -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_ts(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def touch_timestamp(created_at: str) -> str:
    """Current time, never earlier than ``created_at``."""
    now = utc_now_iso()
    created = _parse_ts(created_at)
    current = _parse_ts(now)
    if created is not None and current is not None and current < created:
        return created_at
    return now


def _split(data: dict, keymap: dict[str, str]) -> tuple[dict, dict]:
    known = {}
    extra = {}
    reverse = {wire: attr for attr, wire in keymap.items()}
    for key, value in data.items():
        if key in reverse:
            known[reverse[key]] = value
        else:
            extra[key] = value
    return known, extra


_MESSAGE_KEYS = {
    "id": "id",
    "topic_id": "topicId",
    "assistant_id": "assistantId",
    "role": "role",
    "content": "content",
    "type": "type",
    "status": "status",
    "created_at": "createdAt",
}

_TOPIC_KEYS = {
    "id": "id",
    "assistant_id": "assistantId",
    "name": "name",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
    "messages": "messages",
    "is_name_manually_edited": "isNameManuallyEdited",
    "prompt": "prompt",
    "pinned": "pinned",
}

_ASSISTANT_KEYS = {
    "id": "id",
    "name": "name",
    "prompt": "prompt",
    "type": "type",
    "emoji": "emoji",
    "description": "description",
    "tags": "tags",
    "regular_phrases": "regularPhrases",
    "topics": "topics",
}


@dataclass
class Message:
    id: str
    topic_id: str
    assistant_id: str
    role: str = config.DEFAULT_MESSAGE_ROLE
    content: str = ""
    type: str = config.DEFAULT_MESSAGE_TYPE
    status: str = config.DEFAULT_MESSAGE_STATUS
    created_at: str = ""
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        known, extra = _split(data, _MESSAGE_KEYS)
        known.setdefault("id", "")
        known.setdefault("topic_id", "")
        known.setdefault("assistant_id", "")
        return cls(extra=extra, **known)

    def to_dict(self) -> dict:
        payload = dict(self.extra)
        for attr, wire in _MESSAGE_KEYS.items():
            payload[wire] = getattr(self, attr)
        return payload


@dataclass
class Topic:
    id: str
    assistant_id: str
    name: str = config.DEFAULT_TOPIC_NAME
    created_at: str = ""
    updated_at: str = ""
    messages: list[Message] = field(default_factory=list)
    is_name_manually_edited: bool = False
    prompt: Optional[str] = None
    pinned: Optional[bool] = None
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "Topic":
        known, extra = _split(data, _TOPIC_KEYS)
        known.setdefault("id", "")
        known["messages"] = [
            Message.from_dict(item) for item in (known.get("messages") or [])
        ]
        known.setdefault("assistant_id", "")
        known["is_name_manually_edited"] = bool(known.get("is_name_manually_edited", False))
        return cls(extra=extra, **known)

    def to_dict(self, include_messages: bool = True) -> dict:
        payload = dict(self.extra)
        payload.update({
            "id": self.id,
            "assistantId": self.assistant_id,
            "name": self.name,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "isNameManuallyEdited": self.is_name_manually_edited,
        })
        if self.prompt is not None:
            payload["prompt"] = self.prompt
        if self.pinned is not None:
            payload["pinned"] = self.pinned
        if include_messages:
            payload["messages"] = [message.to_dict() for message in self.messages]
        return payload

    def to_metadata(self) -> dict:
        return self.to_dict(include_messages=False)


@dataclass
class Assistant:
    id: str
    name: str = config.DEFAULT_ASSISTANT_NAME
    prompt: str = ""
    type: str = config.DEFAULT_ASSISTANT_TYPE
    emoji: str = config.DEFAULT_ASSISTANT_EMOJI
    description: str = ""
    tags: list[str] = field(default_factory=list)
    regular_phrases: list[Any] = field(default_factory=list)
    topics: list[Topic] = field(default_factory=list)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "Assistant":
        known, extra = _split(data, _ASSISTANT_KEYS)
        known.setdefault("id", "")
        known["topics"] = [Topic.from_dict(item) for item in (known.get("topics") or [])]
        known["tags"] = list(known.get("tags") or [])
        known["regular_phrases"] = list(known.get("regular_phrases") or [])
        return cls(extra=extra, **known)

    def to_dict(self, include_topics: bool = True) -> dict:
        payload = dict(self.extra)
        payload.update({
            "id": self.id,
            "name": self.name,
            "prompt": self.prompt,
            "type": self.type,
            "emoji": self.emoji,
            "description": self.description,
            "tags": list(self.tags),
            "regularPhrases": list(self.regular_phrases),
        })
        if include_topics:
            payload["topics"] = [topic.to_dict() for topic in self.topics]
        return payload

    def to_metadata(self) -> dict:
        return self.to_dict(include_topics=False)


# =============================================================================
# Update descriptors
# =============================================================================


@dataclass(frozen=True)
class AssistantUpdate:
    """Settable Assistant fields. ``None`` means "leave unchanged"."""

    name: Optional[str] = None
    prompt: Optional[str] = None
    type: Optional[str] = None
    emoji: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[tuple[str, ...]] = None

    def changes(self) -> dict:
        values = {
            "name": self.name,
            "prompt": self.prompt,
            "type": self.type,
            "emoji": self.emoji,
            "description": self.description,
            "tags": list(self.tags) if self.tags is not None else None,
        }
        return {key: value for key, value in values.items() if value is not None}

    def apply_to(self, assistant: Assistant) -> Assistant:
        return replace(assistant, **self.changes())


@dataclass(frozen=True)
class TopicUpdate:
    """Settable Topic fields. ``None`` means "leave unchanged"."""

    name: Optional[str] = None
    prompt: Optional[str] = None
    pinned: Optional[bool] = None
    is_name_manually_edited: Optional[bool] = None

    def changes(self) -> dict:
        values = {
            "name": self.name,
            "prompt": self.prompt,
            "pinned": self.pinned,
            "is_name_manually_edited": self.is_name_manually_edited,
        }
        return {key: value for key, value in values.items() if value is not None}

    def apply_to(self, topic: Topic) -> Topic:
        return replace(topic, **self.changes())


@dataclass(frozen=True)
class MessageDraft:
    """Caller-controlled part of a new Message; identity fields are assigned."""

    content: str = ""
    role: str = config.DEFAULT_MESSAGE_ROLE
    type: str = config.DEFAULT_MESSAGE_TYPE
    status: str = config.DEFAULT_MESSAGE_STATUS
