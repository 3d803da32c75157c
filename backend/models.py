"""Pydantic models for votes, rooms and the outbound event envelopes."""
from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field, RootModel

EventType = Literal["update", "status", "rooms"]


# ── Votes & rooms ─────────────────────────────────────────────────────────────

class Vote(BaseModel):
    voter: str = ""
    score: Optional[str] = None
    room: str = ""  # votes without a room share the "" room


class Room(BaseModel):
    voters: dict[str, Vote] = Field(default_factory=dict)


class StatusRequest(RootModel[str]):
    """Bare JSON string naming a room."""


class TallyVote(BaseModel):
    voter: str = ""
    score: str = ""


class TallyCounts(BaseModel):
    counts: dict[str, int] = Field(default_factory=dict)


class TallySnapshot(TallyCounts):
    voter: str
    score: str


# ── Envelopes ─────────────────────────────────────────────────────────────────

class UpdateEvent(BaseModel):
    type: Literal["update"] = "update"
    data: dict[str, Room] | TallySnapshot


class StatusEvent(BaseModel):
    type: Literal["status"] = "status"
    data: Room | TallyCounts


class RoomsEvent(BaseModel):
    type: Literal["rooms"] = "rooms"
    rooms: list[str]


class OutboundEvent(BaseModel):
    """Serialized envelope as queued for the dispatcher."""
    seq: int
    type: EventType
    payload: str
