"""
Single-writer fan-out loop.

Gateways publish serialized envelopes onto one FIFO queue; the dispatcher task
drains it and writes each event to every subscribed connection in turn. It is
the only code that writes to a connection, so frames never interleave.

A failed write closes that connection and drops it from the set. There is no retry,
and nothing propagates to the publisher or to other subscribers.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from backend.broadcast.connections import Connection, ConnectionSet
from backend.errors import DeliveryFailure
from backend.models import EventType, OutboundEvent

log = logging.getLogger(__name__)


class Dispatcher:
    def __init__(self, connections: ConnectionSet, maxsize: int = 0) -> None:
        self.connections = connections
        self._queue: asyncio.Queue[OutboundEvent] = asyncio.Queue(maxsize=maxsize)
        self._seq = 0
        self._publish_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    # ── Publisher side ────────────────────────────────────────────────────────

    async def publish(self, type_: EventType, payload: str) -> OutboundEvent:
        """Enqueue one envelope. Blocks while the queue is full.

        Returns as soon as the event is queued; delivery happens later.
        Numbering and the put happen under one lock, so queue order always
        matches sequence order even when publishers wait on a full queue.
        """
        async with self._publish_lock:
            self._seq += 1
            event = OutboundEvent(seq=self._seq, type=type_, payload=payload)
            await self._queue.put(event)
        return event

    def pending(self) -> int:
        return self._queue.qsize()

    # ── Subscribers ───────────────────────────────────────────────────────────

    async def subscribe(self, conn: Connection) -> None:
        # Anything already sequenced (even if still queued) predates the join.
        await self.connections.add(conn, self._seq)
        log.info("Connection joined (total: %d)", len(self.connections))

    async def unsubscribe(self, conn: Connection) -> None:
        if await self.connections.remove(conn):
            log.info("Connection left (remaining: %d)", len(self.connections))

    # ── Loop ──────────────────────────────────────────────────────────────────

    async def run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.deliver(event)
            except Exception:
                log.exception("Dispatch of event %d failed", event.seq)
            finally:
                self._queue.task_done()

    async def deliver(self, event: OutboundEvent) -> None:
        async def _write(conn: Connection, watermark: int) -> None:
            if event.seq <= watermark:
                return
            try:
                await self._send(conn, event.payload)
            except DeliveryFailure as exc:
                log.debug("Pruning connection after failed write: %s", exc.__cause__)
                await self._drop(conn)

        await self.connections.for_each(_write)

    async def _send(self, conn: Connection, payload: str) -> None:
        try:
            await conn.send_text(payload)
        except Exception as exc:
            raise DeliveryFailure() from exc

    async def _drop(self, conn: Connection) -> None:
        await self.unsubscribe(conn)
        try:
            await conn.close()
        except Exception as exc:
            log.debug("Closing pruned connection failed: %s", exc)

    async def drain(self) -> None:
        """Wait until every queued event has been delivered."""
        await self._queue.join()

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="vote-dispatcher")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
