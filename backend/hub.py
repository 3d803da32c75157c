"""VoteHub: the process-wide state block, built once by the app lifespan."""
from __future__ import annotations

from dataclasses import dataclass, field

from backend.broadcast.connections import ConnectionSet
from backend.broadcast.dispatcher import Dispatcher
from backend.config import BROADCAST_QUEUE_SIZE, MODE_OVERWRITE, MODE_TALLY, VOTE_MODES
from backend.gateway import Gateway, OverwriteGateway, TallyGateway
from backend.registry import RoomRegistry, TallyBoard


@dataclass
class VoteHub:
    mode: str
    registry: RoomRegistry
    board: TallyBoard
    connections: ConnectionSet
    dispatcher: Dispatcher
    gateway: Gateway = field(init=False)

    def __post_init__(self) -> None:
        if self.mode == MODE_TALLY:
            self.gateway = TallyGateway(self.board, self.dispatcher)
        else:
            self.gateway = OverwriteGateway(self.registry, self.dispatcher)


def build_hub(mode: str = MODE_OVERWRITE, queue_size: int = BROADCAST_QUEUE_SIZE) -> VoteHub:
    if mode not in VOTE_MODES:
        raise ValueError(f"Unknown vote mode {mode!r} (expected one of {', '.join(VOTE_MODES)})")
    connections = ConnectionSet()
    return VoteHub(
        mode=mode,
        registry=RoomRegistry(),
        board=TallyBoard(),
        connections=connections,
        dispatcher=Dispatcher(connections, maxsize=queue_size),
    )
