"""
Shared application-state store access.

The registries only depend on the ``StateAccessor`` protocol: ``read(path)``
and ``dispatch(action)``. ``InMemoryStateStore`` is the process-local store
used by the service and by the tests; it applies the same
``assistants/*`` actions the desktop application's store understands.
"""

from __future__ import annotations

import copy
import json
from typing import Any, Callable, Optional, Protocol

import core.config as config
from core.errors import StoreNotReady

ASSISTANTS_PATH = "assistants.assistants"

ADD_ASSISTANT = "assistants/addAssistant"
UPDATE_ASSISTANT = "assistants/updateAssistant"
REMOVE_ASSISTANT = "assistants/removeAssistant"
ADD_TOPIC = "assistants/addTopic"
UPDATE_TOPIC = "assistants/updateTopic"
REMOVE_TOPIC = "assistants/removeTopic"

logger = config.logger


class MissingEntity(LookupError):
    """Raised by a reducer when the action targets an entity that is gone."""


class StateAccessor(Protocol):
    async def read(self, path: str) -> Any:
        ...

    async def dispatch(self, action: dict) -> None:
        ...


def make_action(action_type: str, payload: Any) -> dict:
    return {"type": action_type, "payload": payload}


def default_state() -> dict:
    return {"assistants": {"assistants": []}}


class InMemoryStateStore:
    """Process-local shared store with reducer semantics for ``assistants/*``."""

    def __init__(self, state: Optional[dict] = None):
        self._state = copy.deepcopy(state) if state is not None else default_state()
        self._reducers: dict[str, Callable[[list, Any], None]] = {
            ADD_ASSISTANT: self._add_assistant,
            UPDATE_ASSISTANT: self._update_assistant,
            REMOVE_ASSISTANT: self._remove_assistant,
            ADD_TOPIC: self._add_topic,
            UPDATE_TOPIC: self._update_topic,
            REMOVE_TOPIC: self._remove_topic,
        }
        self.dispatch_count = 0

    @classmethod
    def from_seed_file(cls, path: str) -> "InMemoryStateStore":
        with open(path, "r", encoding="utf-8") as handle:
            state = json.load(handle)
        if "assistants" in state and isinstance(state["assistants"], list):
            state = {"assistants": {"assistants": state["assistants"]}}
        logger.info("state_seed_loaded", extra={"path": path})
        return cls(state)

    async def read(self, path: str) -> Any:
        node: Any = self._state
        for part in path.split("."):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return copy.deepcopy(node)

    async def dispatch(self, action: dict) -> None:
        action_type = action.get("type")
        reducer = self._reducers.get(action_type)
        if reducer is None:
            raise ValueError(f"Unsupported action type: {action_type}")
        assistants = self._assistants()
        reducer(assistants, copy.deepcopy(action.get("payload")))
        self.dispatch_count += 1

    def snapshot(self) -> dict:
        return copy.deepcopy(self._state)

    def _assistants(self) -> list:
        slice_ = self._state.get("assistants")
        if not isinstance(slice_, dict) or not isinstance(slice_.get("assistants"), list):
            raise StoreNotReady("Assistants state is not initialized")
        return slice_["assistants"]

    @staticmethod
    def _find_assistant(assistants: list, assistant_id: str) -> dict:
        for assistant in assistants:
            if assistant.get("id") == assistant_id:
                return assistant
        raise MissingEntity(f"Assistant with ID {assistant_id} not found")

    def _add_assistant(self, assistants: list, payload: dict) -> None:
        assistants.append(payload)

    def _update_assistant(self, assistants: list, payload: dict) -> None:
        assistant = self._find_assistant(assistants, payload["id"])
        # The topic collection is owned by the topic actions.
        for key, value in payload.items():
            if key != "topics":
                assistant[key] = value

    def _remove_assistant(self, assistants: list, payload: dict) -> None:
        assistant = self._find_assistant(assistants, payload["id"])
        assistants.remove(assistant)

    def _add_topic(self, assistants: list, payload: dict) -> None:
        assistant = self._find_assistant(assistants, payload["assistantId"])
        assistant.setdefault("topics", []).append(payload["topic"])

    def _update_topic(self, assistants: list, payload: dict) -> None:
        assistant = self._find_assistant(assistants, payload["assistantId"])
        topic = payload["topic"]
        topics = assistant.setdefault("topics", [])
        for index, existing in enumerate(topics):
            if existing.get("id") == topic["id"]:
                topics[index] = topic
                return
        raise MissingEntity(f"Topic with ID {topic['id']} not found")

    def _remove_topic(self, assistants: list, payload: dict) -> None:
        assistant = self._find_assistant(assistants, payload["assistantId"])
        topic_id = payload["topic"]["id"]
        topics = assistant.get("topics") or []
        remaining = [topic for topic in topics if topic.get("id") != topic_id]
        if len(remaining) == len(topics):
            raise MissingEntity(f"Topic with ID {topic_id} not found")
        assistant["topics"] = remaining
