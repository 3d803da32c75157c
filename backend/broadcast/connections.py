"""Registry of live push connections.

conn → join watermark (the last event sequence assigned before the connection
joined). Membership changes are the only mutations.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Protocol


class Connection(Protocol):
    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class ConnectionSet:
    def __init__(self) -> None:
        self._members: dict[Connection, int] = {}
        self._lock = asyncio.Lock()

    async def add(self, conn: Connection, watermark: int = 0) -> None:
        async with self._lock:
            self._members.setdefault(conn, watermark)

    async def remove(self, conn: Connection) -> bool:
        """Drop ``conn``. Returns False if it was not a member."""
        async with self._lock:
            return self._members.pop(conn, None) is not None

    async def snapshot(self) -> list[tuple[Connection, int]]:
        async with self._lock:
            return list(self._members.items())

    async def for_each(self, fn: Callable[[Connection, int], Awaitable[None]]) -> None:
        """Call ``fn`` once per member of a snapshot taken under the lock.

        The lock is released before ``fn`` runs so a slow write never blocks
        joins or leaves.
        """
        for conn, watermark in await self.snapshot():
            await fn(conn, watermark)

    def __len__(self) -> int:
        # Lock-free read; also called from outside the event loop.
        return len(self._members)
