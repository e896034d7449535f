"""
Shared configuration for AssistantGate core.
"""

from __future__ import annotations

import logging
import os

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("assistantgate")


def _get_bool(env_name: str, default: bool) -> bool:
    value = os.environ.get(env_name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(env_name: str, default: int) -> int:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(env_name: str, default: float) -> float:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


SERVER_NAME = os.environ.get("ASSISTANTGATE_SERVER_NAME", "assistant-manager")
SERVER_VERSION = "1.0.0"
SERVER_DESCRIPTION = "Assistant and topic management"
INSTANCE_ID = os.environ.get("ASSISTANTGATE_INSTANCE_ID", "assistantgate-1")

# Durable store settings
DB_BACKEND = os.environ.get("DB_BACKEND", "sqlite").strip().lower()
SQLITE_PATH = os.environ.get("SQLITE_PATH", "/data/assistantgate.db")
DATABASE_URL = os.environ.get("DATABASE_URL")
AUTO_MIGRATE_ON_STARTUP = _get_bool("AUTO_MIGRATE_ON_STARTUP", True)

# Shared state store settings
STATE_SEED_PATH = os.environ.get("ASSISTANTGATE_STATE_SEED_PATH")
DEFAULT_ASSISTANT_ID = os.environ.get("ASSISTANTGATE_DEFAULT_ASSISTANT_ID", "default")

# Entity defaults
DEFAULT_ASSISTANT_NAME = "New Assistant"
DEFAULT_ASSISTANT_TYPE = "assistant"
DEFAULT_ASSISTANT_EMOJI = "🤖"
DEFAULT_TOPIC_NAME = "New Conversation"
DEFAULT_MESSAGE_ROLE = "user"
DEFAULT_MESSAGE_TYPE = "text"
DEFAULT_MESSAGE_STATUS = "success"

MESSAGE_ROLES = ("user", "assistant", "system")
MESSAGE_TYPES = ("text", "@", "clear")

# Event channel
EVENT_PULSE_INTERVAL_SECONDS = _get_float("EVENT_PULSE_INTERVAL_SECONDS", 30.0)
EVENT_SUBSCRIBER_QUEUE_SIZE = _get_int("EVENT_SUBSCRIBER_QUEUE_SIZE", 256)
MAX_EVENT_SUBSCRIBERS = _get_int("MAX_EVENT_SUBSCRIBERS", 100)

# Durable write queue
DURABLE_QUEUE_MAX_SIZE = _get_int("DURABLE_QUEUE_MAX_SIZE", 1000)

# Request/input limits
MAX_ID_LENGTH = _get_int("ASSISTANTGATE_MAX_ID_LENGTH", 100)
MAX_NAME_LENGTH = _get_int("ASSISTANTGATE_MAX_NAME_LENGTH", 255)
MAX_PROMPT_LENGTH = _get_int("ASSISTANTGATE_MAX_PROMPT_LENGTH", 20000)
MAX_DESCRIPTION_LENGTH = _get_int("ASSISTANTGATE_MAX_DESCRIPTION_LENGTH", 2000)
MAX_EMOJI_LENGTH = _get_int("ASSISTANTGATE_MAX_EMOJI_LENGTH", 16)
MAX_CONTENT_LENGTH = _get_int("ASSISTANTGATE_MAX_CONTENT_LENGTH", 100000)
MAX_TAG_ITEMS = _get_int("ASSISTANTGATE_MAX_TAG_ITEMS", 50)
MAX_TAG_LENGTH = _get_int("ASSISTANTGATE_MAX_TAG_LENGTH", 100)

CORS_ALLOWED_ORIGINS = os.environ.get("CORS_ALLOWED_ORIGINS", "")


def validate_and_prepare_config() -> None:
    """Validate configuration and apply derived settings at startup."""
    global DATABASE_URL

    errors = []
    if DB_BACKEND not in {"postgres", "sqlite"}:
        errors.append("DB_BACKEND must be 'postgres' or 'sqlite'")

    if not DATABASE_URL:
        if DB_BACKEND == "sqlite":
            if not SQLITE_PATH:
                errors.append("SQLITE_PATH environment variable is required for sqlite")
            else:
                DATABASE_URL = f"sqlite:///{SQLITE_PATH}"
        else:
            errors.append("DATABASE_URL environment variable is required")
    else:
        is_sqlite_url = DATABASE_URL.lower().startswith("sqlite")
        if DB_BACKEND == "sqlite" and not is_sqlite_url:
            errors.append("DATABASE_URL must be a sqlite URL when DB_BACKEND=sqlite")
        if DB_BACKEND == "postgres" and is_sqlite_url:
            errors.append("DATABASE_URL must be a postgres URL when DB_BACKEND=postgres")

    if EVENT_PULSE_INTERVAL_SECONDS <= 0:
        errors.append("EVENT_PULSE_INTERVAL_SECONDS must be positive")
    if EVENT_SUBSCRIBER_QUEUE_SIZE <= 0:
        errors.append("EVENT_SUBSCRIBER_QUEUE_SIZE must be positive")
    if DURABLE_QUEUE_MAX_SIZE <= 0:
        errors.append("DURABLE_QUEUE_MAX_SIZE must be positive")
    if not DEFAULT_ASSISTANT_ID:
        errors.append("ASSISTANTGATE_DEFAULT_ASSISTANT_ID must not be empty")

    if STATE_SEED_PATH and not os.path.isfile(STATE_SEED_PATH):
        logger.warning(
            "state_seed_missing",
            extra={"path": STATE_SEED_PATH},
        )

    if errors:
        raise RuntimeError("Configuration invalid: " + "; ".join(errors))
