"""In-memory vote state, one asyncio.Lock per store.

Every mutation returns a snapshot copied while the lock is held, so callers
can serialize it after releasing the lock without seeing a torn view.
"""
from __future__ import annotations

import asyncio
from typing import Optional

from backend.models import Room, TallySnapshot, Vote


class RoomRegistry:
    """room name → Room. Re-voting overwrites the voter's previous record."""

    def __init__(self) -> None:
        self._rooms: dict[str, Room] = {}
        self._lock = asyncio.Lock()

    async def upsert_vote(self, voter: str, score: Optional[str], room: str = "") -> dict[str, Room]:
        """Store the vote and return a copy of every room.

        ``voter`` is assumed non-empty; the gateway rejects empty voters first.
        """
        async with self._lock:
            target = self._rooms.get(room)
            if target is None:
                target = self._rooms[room] = Room()
            target.voters[voter] = Vote(voter=voter, score=score, room=room)
            return self._copy_all()

    async def list_room_names(self) -> list[str]:
        async with self._lock:
            return list(self._rooms)

    async def get_room(self, room: str) -> Room:
        """Unknown rooms read as empty rather than failing."""
        async with self._lock:
            found = self._rooms.get(room)
            return found.model_copy(deep=True) if found else Room()

    def _copy_all(self) -> dict[str, Room]:
        return {name: r.model_copy(deep=True) for name, r in self._rooms.items()}


class TallyBoard:
    """Once-per-voter counters keyed by score."""

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}
        self._voted: set[str] = set()
        self._lock = asyncio.Lock()

    async def cast(self, voter: str, score: str) -> Optional[TallySnapshot]:
        """Count the vote. Returns None if ``voter`` already voted."""
        async with self._lock:
            if voter in self._voted:
                return None
            self._voted.add(voter)
            self._counts[score] = self._counts.get(score, 0) + 1
            return TallySnapshot(voter=voter, score=score, counts=dict(self._counts))

    async def counts(self) -> dict[str, int]:
        async with self._lock:
            return dict(self._counts)
