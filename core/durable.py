"""
Durable message store access.

Keyed by topic id; each record is ``{"id": <topic id>, "messages": [...]}``.
The registries never read from it; it only persists message history across
restarts.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError

import core.config as config
from core.db import DB, session_scope
from core.errors import DurableStoreError
from core.models import TopicRecord

logger = config.logger


class DurableStore(Protocol):
    async def put(self, record_id: str, record: dict) -> None:
        ...

    async def get(self, record_id: str) -> Optional[dict]:
        ...

    async def delete(self, record_id: str) -> None:
        ...


class SqlDurableStore:
    """Durable store on the ``topic_records`` table.

    SQLAlchemy calls are blocking, so each operation runs in a worker thread.
    ``session_factory`` defaults to ``DB.SessionLocal`` resolved at call time.
    """

    def __init__(self, session_factory: Optional[Callable] = None):
        self._session_factory = session_factory

    def _factory(self) -> Callable:
        factory = self._session_factory or DB.SessionLocal
        if factory is None:
            raise DurableStoreError("Database not initialized - SessionLocal is None")
        return factory

    def _put_sync(self, record_id: str, record: dict) -> None:
        messages = list(record.get("messages") or [])
        try:
            with session_scope(self._factory()) as db:
                row = db.get(TopicRecord, record_id)
                if row is None:
                    db.add(TopicRecord(id=record_id, messages=messages))
                else:
                    row.messages = messages
                    row.updated_at = datetime.now(timezone.utc)
        except SQLAlchemyError as exc:
            raise DurableStoreError(f"put {record_id} failed: {exc}") from exc

    def _get_sync(self, record_id: str) -> Optional[dict]:
        try:
            with session_scope(self._factory()) as db:
                row = db.get(TopicRecord, record_id)
                return row.to_record() if row is not None else None
        except SQLAlchemyError as exc:
            raise DurableStoreError(f"get {record_id} failed: {exc}") from exc

    def _delete_sync(self, record_id: str) -> None:
        try:
            with session_scope(self._factory()) as db:
                db.query(TopicRecord).filter(TopicRecord.id == record_id).delete()
        except SQLAlchemyError as exc:
            raise DurableStoreError(f"delete {record_id} failed: {exc}") from exc

    async def put(self, record_id: str, record: dict) -> None:
        await asyncio.to_thread(self._put_sync, record_id, record)

    async def get(self, record_id: str) -> Optional[dict]:
        return await asyncio.to_thread(self._get_sync, record_id)

    async def delete(self, record_id: str) -> None:
        await asyncio.to_thread(self._delete_sync, record_id)

    def status(self) -> dict:
        factory = self._session_factory or DB.SessionLocal
        return {"backend": config.DB_BACKEND, "initialized": factory is not None}
