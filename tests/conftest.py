import asyncio

import pytest

from backend.broadcast.connections import ConnectionSet
from backend.broadcast.dispatcher import Dispatcher
from backend.registry import RoomRegistry, TallyBoard


class MockConnection:
    """Records every frame written to it; optionally fails on the Nth write."""

    def __init__(self, name: str = "conn", fail_on: int | None = None):
        self.name = name
        self.fail_on = fail_on
        self.sent: list[str] = []
        self.attempts = 0
        self.closed = False

    async def send_text(self, data: str) -> None:
        self.attempts += 1
        if self.closed:
            raise RuntimeError("connection closed")
        if self.fail_on is not None and self.attempts >= self.fail_on:
            raise ConnectionResetError(f"{self.name} went away")
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed = True

    def __repr__(self) -> str:
        return f"MockConnection({self.name!r})"


class SlowConnection(MockConnection):
    def __init__(self, name: str = "slow", delay: float = 0.05):
        super().__init__(name)
        self.delay = delay

    async def send_text(self, data: str) -> None:
        await asyncio.sleep(self.delay)
        await super().send_text(data)


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def board():
    return TallyBoard()


@pytest.fixture
def connections():
    return ConnectionSet()


@pytest.fixture
def dispatcher(connections):
    return Dispatcher(connections)
