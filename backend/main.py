"""
FastAPI application entry point.

Routes:
  POST /event            submit a vote
  GET  /rooms            list room names
  POST /status           room snapshot, body is the room name as a JSON string
  GET  /status/{room}    room snapshot addressed by path
  GET  /tally            per-score counts (tally mode)

  WS   /ws               live updates; inbound frames are ignored

Run with `uvicorn backend.main:app` or the `votehub` console script.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import HTTPConnection
from fastapi.responses import JSONResponse

from backend.config import (
    ALLOWED_HEADERS, ALLOWED_METHODS, ALLOWED_ORIGINS, HOST, LOG_LEVEL, PORT,
    SHUTDOWN_FLUSH_SECONDS, VOTE_MODE, WS_POLICY_VIOLATION,
)
from backend.errors import VoteHubError
from backend.gateway import (
    decode_vote, parse_room_name, rooms_event, status_event, tally_event, vote_model_for,
)
from backend.hub import VoteHub, build_hub
from backend.models import TallySnapshot

log = logging.getLogger("uvicorn.error")

router = APIRouter()


def get_hub(conn: HTTPConnection) -> VoteHub:
    return conn.app.state.hub


# ── Votes ─────────────────────────────────────────────────────────────────────

@router.post("/event")
async def submit_vote(request: Request, hub: VoteHub = Depends(get_hub)):
    vote = decode_vote(await request.body(), vote_model_for(hub.gateway))
    result = await hub.gateway.submit(vote)
    if isinstance(result, TallySnapshot):
        return {"ok": True, "counts": result.counts}
    return {"ok": True}


# ── Introspection ─────────────────────────────────────────────────────────────

@router.get("/rooms")
async def list_rooms(hub: VoteHub = Depends(get_hub)):
    return (await rooms_event(hub.registry)).model_dump()


@router.post("/status")
async def room_status(request: Request, hub: VoteHub = Depends(get_hub)):
    room = parse_room_name(await request.body())
    if room is None:
        raise HTTPException(400, "Invalid room data")
    return (await status_event(hub.registry, room)).model_dump()


@router.get("/status/{room}")
async def room_status_by_path(room: str, hub: VoteHub = Depends(get_hub)):
    return (await status_event(hub.registry, room)).model_dump()


@router.get("/tally")
async def tally_status(hub: VoteHub = Depends(get_hub)):
    return (await tally_event(hub.board)).model_dump()


# ── WebSocket live updates ────────────────────────────────────────────────────

@router.websocket("/ws")
async def ws_votes(websocket: WebSocket, hub: VoteHub = Depends(get_hub)):
    origin = websocket.headers.get("origin")
    if origin not in websocket.app.state.allowed_origins:
        log.warning("Rejected WebSocket from origin %r", origin)
        await websocket.close(code=WS_POLICY_VIOLATION)
        return

    await websocket.accept()
    await hub.dispatcher.subscribe(websocket)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    except WebSocketDisconnect:
        pass
    except Exception as exc:
        log.debug("WebSocket read failed: %s", exc)
    finally:
        await hub.dispatcher.unsubscribe(websocket)


# ── App factory ───────────────────────────────────────────────────────────────

async def _vote_hub_error(request: Request, exc: VoteHubError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def create_app(vote_mode: str = VOTE_MODE, allowed_origins: Optional[list[str]] = None) -> FastAPI:
    origins = list(ALLOWED_ORIGINS if allowed_origins is None else allowed_origins)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.hub = build_hub(vote_mode)
        app.state.hub.dispatcher.start()
        log.info("Vote hub starting (mode=%s)", vote_mode)
        yield
        dispatcher = app.state.hub.dispatcher
        try:
            await asyncio.wait_for(dispatcher.drain(), SHUTDOWN_FLUSH_SECONDS)
        except asyncio.TimeoutError:
            log.warning("Shutdown with %d undelivered events", dispatcher.pending())
        await dispatcher.stop()

    app = FastAPI(title="VoteHub", lifespan=lifespan)
    app.state.allowed_origins = origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
    )
    app.add_exception_handler(VoteHubError, _vote_hub_error)
    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    log.info("Server starting on %s:%d", HOST, PORT)
    uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
