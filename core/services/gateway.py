"""
Operation gateway: the single entry point shared by the REST and tool surfaces.

A call is a name plus a flat, snake_case argument object. ``parse_command``
turns it into one of the command dataclasses below; ``Gateway.execute`` is
the only interpreter of those commands. ``Gateway.invoke`` wraps both and
never raises: every outcome is an ``OperationResult`` carrying either the
serialized payload or a ``{message, kind}`` error.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union, assert_never

import core.config as config
from core.entities import AssistantUpdate, MessageDraft, TopicUpdate, utc_now_iso
from core.errors import ErrorKind, GatewayError, InvalidOperation, NotFound, ValidationIssue
from core.services.assistants import AssistantRegistry
from core.services.topics import TopicRegistry
from core.validators import (
    validate_arguments,
    validate_choice,
    validate_optional_bool,
    validate_optional_text,
    validate_required_text,
    validate_string_list,
)

logger = config.logger


# =============================================================================
# Commands
# =============================================================================


@dataclass(frozen=True)
class ListAssistants:
    pass


@dataclass(frozen=True)
class GetAssistant:
    assistant_id: str


@dataclass(frozen=True)
class CreateAssistant:
    fields: AssistantUpdate


@dataclass(frozen=True)
class UpdateAssistant:
    assistant_id: str
    fields: AssistantUpdate


@dataclass(frozen=True)
class DeleteAssistant:
    assistant_id: str


@dataclass(frozen=True)
class ListTopics:
    assistant_id: Optional[str] = None


@dataclass(frozen=True)
class GetTopic:
    topic_id: str


@dataclass(frozen=True)
class CreateTopic:
    assistant_id: str
    fields: TopicUpdate


@dataclass(frozen=True)
class UpdateTopic:
    topic_id: str
    fields: TopicUpdate


@dataclass(frozen=True)
class DeleteTopic:
    topic_id: str


@dataclass(frozen=True)
class GetTopicMessages:
    topic_id: str


@dataclass(frozen=True)
class SendMessage:
    topic_id: str
    draft: MessageDraft


@dataclass(frozen=True)
class CreateNewConversation:
    name: str = config.DEFAULT_TOPIC_NAME
    prompt: Optional[str] = None


Command = Union[
    ListAssistants,
    GetAssistant,
    CreateAssistant,
    UpdateAssistant,
    DeleteAssistant,
    ListTopics,
    GetTopic,
    CreateTopic,
    UpdateTopic,
    DeleteTopic,
    GetTopicMessages,
    SendMessage,
    CreateNewConversation,
]


# =============================================================================
# Argument parsing
# =============================================================================

_ASSISTANT_FIELDS = ("name", "prompt", "type", "emoji", "description", "tags")
_TOPIC_FIELDS = ("name", "prompt", "pinned", "is_name_manually_edited")


def _required_id(args: dict, key: str) -> str:
    value = args.get(key)
    if value is None:
        raise ValidationIssue(f"{key} is required", field=key, error_type="required")
    validate_required_text(value, key, config.MAX_ID_LENGTH)
    return value


def _optional_id(args: dict, key: str) -> Optional[str]:
    value = args.get(key)
    if value is None:
        return None
    validate_required_text(value, key, config.MAX_ID_LENGTH)
    return value


def _assistant_update(args: dict) -> AssistantUpdate:
    validate_optional_text(args.get("name"), "name", config.MAX_NAME_LENGTH)
    validate_optional_text(args.get("prompt"), "prompt", config.MAX_PROMPT_LENGTH)
    validate_optional_text(args.get("type"), "type", config.MAX_NAME_LENGTH)
    validate_optional_text(args.get("emoji"), "emoji", config.MAX_EMOJI_LENGTH)
    validate_optional_text(args.get("description"), "description", config.MAX_DESCRIPTION_LENGTH)
    validate_string_list(args.get("tags"), "tags", config.MAX_TAG_ITEMS, config.MAX_TAG_LENGTH)
    tags = args.get("tags")
    return AssistantUpdate(
        name=args.get("name"),
        prompt=args.get("prompt"),
        type=args.get("type"),
        emoji=args.get("emoji"),
        description=args.get("description"),
        tags=tuple(tags) if tags is not None else None,
    )


def _topic_update(args: dict) -> TopicUpdate:
    validate_optional_text(args.get("name"), "name", config.MAX_NAME_LENGTH)
    validate_optional_text(args.get("prompt"), "prompt", config.MAX_PROMPT_LENGTH)
    validate_optional_bool(args.get("pinned"), "pinned")
    validate_optional_bool(args.get("is_name_manually_edited"), "is_name_manually_edited")
    return TopicUpdate(
        name=args.get("name"),
        prompt=args.get("prompt"),
        pinned=args.get("pinned"),
        is_name_manually_edited=args.get("is_name_manually_edited"),
    )


def _message_draft(args: dict) -> MessageDraft:
    content = args.get("content")
    if content is None:
        raise ValidationIssue("content is required", field="content", error_type="required")
    validate_optional_text(content, "content", config.MAX_CONTENT_LENGTH)
    role = args.get("role")
    if role is None:
        raise ValidationIssue("role is required", field="role", error_type="required")
    validate_choice(role, "role", config.MESSAGE_ROLES)
    message_type = args.get("type")
    if message_type is None:
        message_type = config.DEFAULT_MESSAGE_TYPE
    validate_choice(message_type, "type", config.MESSAGE_TYPES)
    return MessageDraft(content=content, role=role, type=message_type)


def _new_conversation(args: dict) -> CreateNewConversation:
    name = args.get("name")
    validate_optional_text(name, "name", config.MAX_NAME_LENGTH)
    validate_optional_text(args.get("prompt"), "prompt", config.MAX_PROMPT_LENGTH)
    return CreateNewConversation(
        name=name if name is not None else config.DEFAULT_TOPIC_NAME,
        prompt=args.get("prompt") or None,
    )


# name -> (allowed argument keys, builder)
COMMANDS: dict[str, tuple[tuple[str, ...], Callable[[dict], Command]]] = {
    "list_assistants": ((), lambda args: ListAssistants()),
    "get_assistant": (
        ("assistant_id",),
        lambda args: GetAssistant(_required_id(args, "assistant_id")),
    ),
    "create_assistant": (
        _ASSISTANT_FIELDS,
        lambda args: CreateAssistant(_assistant_update(args)),
    ),
    "update_assistant": (
        ("assistant_id", *_ASSISTANT_FIELDS),
        lambda args: UpdateAssistant(_required_id(args, "assistant_id"), _assistant_update(args)),
    ),
    "delete_assistant": (
        ("assistant_id",),
        lambda args: DeleteAssistant(_required_id(args, "assistant_id")),
    ),
    "list_topics": (
        ("assistant_id",),
        lambda args: ListTopics(_optional_id(args, "assistant_id")),
    ),
    "get_topic": (
        ("topic_id",),
        lambda args: GetTopic(_required_id(args, "topic_id")),
    ),
    "create_topic": (
        ("assistant_id", *_TOPIC_FIELDS),
        lambda args: CreateTopic(_required_id(args, "assistant_id"), _topic_update(args)),
    ),
    "update_topic": (
        ("topic_id", *_TOPIC_FIELDS),
        lambda args: UpdateTopic(_required_id(args, "topic_id"), _topic_update(args)),
    ),
    "delete_topic": (
        ("topic_id",),
        lambda args: DeleteTopic(_required_id(args, "topic_id")),
    ),
    "get_topic_messages": (
        ("topic_id",),
        lambda args: GetTopicMessages(_required_id(args, "topic_id")),
    ),
    "send_message": (
        ("topic_id", "content", "role", "type"),
        lambda args: SendMessage(_required_id(args, "topic_id"), _message_draft(args)),
    ),
    "create_new_conversation": (("name", "prompt"), _new_conversation),
}

OPERATION_NAMES = tuple(COMMANDS)


def parse_command(operation: str, arguments: Optional[dict] = None) -> Command:
    entry = COMMANDS.get(operation)
    if entry is None:
        raise InvalidOperation(f"Unknown operation: {operation}")
    allowed, build = entry
    return build(validate_arguments(arguments, allowed, operation))


# =============================================================================
# Results
# =============================================================================


@dataclass
class OperationResult:
    ok: bool
    operation: str
    data: Any = None
    error: Optional[dict] = None

    @property
    def kind(self) -> Optional[str]:
        return self.error["kind"] if self.error else None

    @property
    def message(self) -> Optional[str]:
        return self.error["message"] if self.error else None

    def to_event(self) -> dict:
        event = {
            "type": "operation",
            "operation": self.operation,
            "ok": self.ok,
            "timestamp": utc_now_iso(),
        }
        if self.ok:
            event["data"] = self.data
        else:
            event["error"] = self.error
        return event


# =============================================================================
# Gateway
# =============================================================================


class Gateway:
    def __init__(
        self,
        assistants: AssistantRegistry,
        topics: TopicRegistry,
        publish: Optional[Callable[[dict], Any]] = None,
    ):
        self.assistants = assistants
        self.topics = topics
        self._publish = publish

    async def execute(self, command: Command) -> Any:
        """Run one command and return its serialized payload."""
        match command:
            case ListAssistants():
                return await self.assistants.list_assistants()
            case GetAssistant(assistant_id=assistant_id):
                assistant = await self.assistants.get_assistant(assistant_id)
                if assistant is None:
                    raise NotFound(f"Assistant with ID {assistant_id} not found")
                return assistant.to_dict()
            case CreateAssistant(fields=fields):
                return (await self.assistants.create_assistant(fields)).to_dict()
            case UpdateAssistant(assistant_id=assistant_id, fields=fields):
                return (await self.assistants.update_assistant(assistant_id, fields)).to_dict()
            case DeleteAssistant(assistant_id=assistant_id):
                await self.assistants.delete_assistant(assistant_id)
                return {"id": assistant_id, "deleted": True}
            case ListTopics(assistant_id=assistant_id):
                return await self.topics.list_topics(assistant_id)
            case GetTopic(topic_id=topic_id):
                topic = await self.topics.get_topic(topic_id)
                if topic is None:
                    raise NotFound(f"Topic with ID {topic_id} not found")
                return topic.to_dict()
            case CreateTopic(assistant_id=assistant_id, fields=fields):
                return (await self.topics.create_topic(assistant_id, fields)).to_dict()
            case UpdateTopic(topic_id=topic_id, fields=fields):
                return (await self.topics.update_topic(topic_id, fields)).to_dict()
            case DeleteTopic(topic_id=topic_id):
                await self.topics.delete_topic(topic_id)
                return {"id": topic_id, "deleted": True}
            case GetTopicMessages(topic_id=topic_id):
                messages = await self.topics.get_topic_messages(topic_id)
                return [message.to_dict() for message in messages]
            case SendMessage(topic_id=topic_id, draft=draft):
                return (await self.topics.add_message_to_topic(topic_id, draft)).to_dict()
            case CreateNewConversation(name=name, prompt=prompt):
                return await self._create_new_conversation(name, prompt)
            case _:
                assert_never(command)

    async def _create_new_conversation(self, name: str, prompt: Optional[str]) -> dict:
        assistants = await self.assistants.list_assistants()
        target = next(
            (item for item in assistants if item["id"] == config.DEFAULT_ASSISTANT_ID),
            assistants[0] if assistants else None,
        )
        if target is None:
            raise NotFound("No assistants available to create a conversation with")
        topic = await self.topics.create_topic(
            target["id"], TopicUpdate(name=name, prompt=prompt)
        )
        return {
            "topic": topic.to_dict(),
            "assistant": {"id": target["id"], "name": target["name"]},
        }

    async def invoke(
        self,
        operation: str,
        arguments: Optional[dict] = None,
        surface: str = "internal",
    ) -> OperationResult:
        started = time.perf_counter()
        try:
            command = parse_command(operation, arguments)
            data = await self.execute(command)
            result = OperationResult(ok=True, operation=operation, data=data)
        except GatewayError as exc:
            result = OperationResult(ok=False, operation=operation, error=exc.to_payload())
        except Exception as exc:
            logger.error(
                "operation_internal_error",
                extra={
                    "operation": operation,
                    "surface": surface,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            result = OperationResult(
                ok=False,
                operation=operation,
                error={"message": "Internal error", "kind": ErrorKind.internal.value},
            )

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        if result.ok:
            logger.info(
                "operation_completed",
                extra={"operation": operation, "surface": surface, "duration_ms": duration_ms},
            )
        else:
            logger.warning(
                "operation_failed",
                extra={
                    "operation": operation,
                    "surface": surface,
                    "duration_ms": duration_ms,
                    "kind": result.kind,
                    "detail": result.message,
                },
            )

        if self._publish is not None:
            try:
                self._publish(result.to_event())
            except Exception as exc:
                logger.warning(
                    "operation_event_publish_failed",
                    extra={"operation": operation, "error": str(exc)},
                )
        return result
