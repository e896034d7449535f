"""
Write-behind queue for the durable message store.

Registries enqueue durable writes instead of awaiting them, so an operation's
result depends only on the shared-store write. A single worker applies the
writes in FIFO order (per-topic ordering follows from the registries
enqueueing under the topic lock). Delivery is at-most-once: a failed or
dropped write is logged and reported to listeners, never retried.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass
from typing import Callable, Optional

import core.config as config
from core.durable import DurableStore

logger = config.logger

PUT = "put"
DELETE = "delete"


@dataclass(frozen=True)
class DurableWrite:
    seq: int
    op: str
    key: str
    record: Optional[dict] = None
    reason: str = ""


@dataclass(frozen=True)
class DurableWriteResult:
    write: DurableWrite
    ok: bool
    error: Optional[str] = None


ResultListener = Callable[[DurableWriteResult], None]


class DurableWriteQueue:
    def __init__(self, store: DurableStore, max_size: int = config.DURABLE_QUEUE_MAX_SIZE):
        self._store = store
        self._max_size = max(1, max_size)
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._listeners: list[ResultListener] = []
        self._seq = itertools.count(1)
        self._enqueued = 0
        self._succeeded = 0
        self._failed = 0
        self._dropped = 0
        self._last_error: Optional[str] = None

    @property
    def store(self) -> DurableStore:
        return self._store

    def add_listener(self, listener: ResultListener) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        """Bind the queue and worker to the running loop (idempotent)."""
        loop = asyncio.get_running_loop()
        if self._loop is loop and self._worker is not None and not self._worker.done():
            return
        self._loop = loop
        self._queue = asyncio.Queue(maxsize=self._max_size)
        self._worker = loop.create_task(self._run(), name="durable-write-worker")

    async def stop(self, drain: bool = True) -> None:
        if drain:
            await self.drain()
        # A worker bound to another (finished) loop cannot be awaited from this one.
        if self._worker is not None and self._loop is asyncio.get_running_loop():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None
        self._queue = None
        self._loop = None

    async def drain(self) -> None:
        """Wait until every write enqueued so far has been applied or failed."""
        if self._queue is not None and self._loop is asyncio.get_running_loop():
            await self._queue.join()

    def enqueue_put(self, key: str, record: dict, reason: str = "") -> bool:
        return self._enqueue(DurableWrite(next(self._seq), PUT, key, record, reason))

    def enqueue_delete(self, key: str, reason: str = "") -> bool:
        return self._enqueue(DurableWrite(next(self._seq), DELETE, key, None, reason))

    def _enqueue(self, write: DurableWrite) -> bool:
        self.start()
        try:
            self._queue.put_nowait(write)
        except asyncio.QueueFull:
            self._dropped += 1
            self._last_error = "durable write queue full"
            logger.warning(
                "durable_write_dropped",
                extra={"op": write.op, "key": write.key, "reason": write.reason},
            )
            self._notify(DurableWriteResult(write, ok=False, error=self._last_error))
            return False
        self._enqueued += 1
        return True

    async def _run(self) -> None:
        while True:
            write = await self._queue.get()
            try:
                await self._apply(write)
            finally:
                self._queue.task_done()

    async def _apply(self, write: DurableWrite) -> None:
        try:
            if write.op == PUT:
                await self._store.put(write.key, write.record or {"id": write.key, "messages": []})
            else:
                await self._store.delete(write.key)
        except Exception as exc:
            self._failed += 1
            self._last_error = str(exc)
            logger.warning(
                "durable_write_failed",
                extra={
                    "op": write.op,
                    "key": write.key,
                    "reason": write.reason,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            self._notify(DurableWriteResult(write, ok=False, error=str(exc)))
            return
        self._succeeded += 1
        self._notify(DurableWriteResult(write, ok=True))

    def _notify(self, result: DurableWriteResult) -> None:
        for listener in list(self._listeners):
            try:
                listener(result)
            except Exception as exc:
                logger.warning(
                    "durable_listener_error",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                )

    def status(self) -> dict:
        return {
            "running": self._worker is not None and not self._worker.done(),
            "pending": self._queue.qsize() if self._queue is not None else 0,
            "enqueued": self._enqueued,
            "succeeded": self._succeeded,
            "failed": self._failed,
            "dropped": self._dropped,
            "last_error": self._last_error,
        }
