"""
AssistantGate Database Models
Durable message store schema (PostgreSQL or SQLite)
"""

from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

import core.config as config

JSON_TYPE = JSONB if config.DB_BACKEND == "postgres" else JSON

Base = declarative_base()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Topic Records (message persistence, keyed by topic id)
# =============================================================================

class TopicRecord(Base):
    __tablename__ = "topic_records"

    id = Column(String(100), primary_key=True)  # Topic id from the shared store
    messages = Column(JSON_TYPE, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=_utc_now)
    updated_at = Column(DateTime(timezone=True), default=_utc_now, onupdate=_utc_now)

    def to_record(self) -> dict:
        return {"id": self.id, "messages": list(self.messages or [])}
