"""
Mutation gateways, the one entry point per inbound vote.

Two policies, picked when the hub is built and never mixed:

  OverwriteGateway  re-voting replaces the voter's record in its room
  TallyGateway      each voter counts once; later attempts are refused

Both validate, mutate the store under its lock, serialize the returned
snapshot and hand it to the dispatcher without waiting for delivery. The
mutation and the enqueue share one ordering lock, so snapshots reach the
queue in the order they were taken.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Union

from pydantic import BaseModel, ValidationError
from pydantic_core import PydanticSerializationError

from backend.broadcast.dispatcher import Dispatcher
from backend.errors import DecodeError, DuplicateVoter, InvalidVote, SerializationFailure
from backend.models import (
    EventType, Room, RoomsEvent, StatusEvent, StatusRequest, TallyCounts,
    TallySnapshot, TallyVote, UpdateEvent, Vote,
)
from backend.registry import RoomRegistry, TallyBoard

log = logging.getLogger(__name__)


def decode_vote(raw: Union[bytes, str], model: type[BaseModel] = Vote) -> BaseModel:
    try:
        return model.model_validate_json(raw)
    except ValidationError as exc:
        raise DecodeError() from exc


def encode_event(event: BaseModel) -> str:
    try:
        return event.model_dump_json()
    except (PydanticSerializationError, TypeError, ValueError) as exc:
        raise SerializationFailure(str(exc)) from exc


class _Gateway:
    def __init__(self, dispatcher: Dispatcher) -> None:
        self.dispatcher = dispatcher
        self._order = asyncio.Lock()

    async def _broadcast(self, type_: EventType, event: BaseModel) -> bool:
        """Serialize and enqueue. A failed encode drops only the broadcast."""
        try:
            payload = encode_event(event)
        except SerializationFailure:
            log.exception("Dropping %s broadcast: snapshot could not be encoded", type_)
            return False
        await self.dispatcher.publish(type_, payload)
        return True


class OverwriteGateway(_Gateway):
    def __init__(self, registry: RoomRegistry, dispatcher: Dispatcher) -> None:
        super().__init__(dispatcher)
        self.registry = registry

    async def submit(self, vote: Vote) -> dict[str, Room]:
        if not vote.voter:
            raise InvalidVote()
        async with self._order:
            rooms = await self.registry.upsert_vote(vote.voter, vote.score, vote.room)
            await self._broadcast("update", UpdateEvent(data=rooms))
        return rooms


class TallyGateway(_Gateway):
    def __init__(self, board: TallyBoard, dispatcher: Dispatcher) -> None:
        super().__init__(dispatcher)
        self.board = board

    async def submit(self, vote: TallyVote) -> TallySnapshot:
        if not vote.voter or not vote.score:
            raise InvalidVote()
        async with self._order:
            snapshot = await self.board.cast(vote.voter, vote.score)
            if snapshot is None:
                raise DuplicateVoter()
            await self._broadcast("update", UpdateEvent(data=snapshot))
        return snapshot


# ── Read-only views (no broadcast) ────────────────────────────────────────────

async def rooms_event(registry: RoomRegistry) -> RoomsEvent:
    return RoomsEvent(rooms=await registry.list_room_names())


async def status_event(registry: RoomRegistry, room: str) -> StatusEvent:
    return StatusEvent(data=await registry.get_room(room))


async def tally_event(board: TallyBoard) -> StatusEvent:
    return StatusEvent(data=TallyCounts(counts=await board.counts()))


Gateway = Union[OverwriteGateway, TallyGateway]


def vote_model_for(gateway: Gateway) -> type[BaseModel]:
    return TallyVote if isinstance(gateway, TallyGateway) else Vote


def parse_room_name(raw: Union[bytes, str]) -> Optional[str]:
    """Status requests carry the room name as a bare JSON string."""
    try:
        name = StatusRequest.model_validate_json(raw).root
    except ValidationError:
        return None
    return name or None
