"""Mutation gateway tests for both voting policies."""
import asyncio
import json

import pytest

from backend import gateway as gateway_module
from backend.broadcast.dispatcher import Dispatcher
from backend.errors import DecodeError, DuplicateVoter, InvalidVote, SerializationFailure
from backend.gateway import (
    OverwriteGateway, TallyGateway, decode_vote, parse_room_name, rooms_event, status_event,
    tally_event,
)
from backend.models import TallyVote, Vote
from conftest import MockConnection


@pytest.fixture
def overwrite(registry, dispatcher):
    return OverwriteGateway(registry, dispatcher)


@pytest.fixture
def tally(board, dispatcher):
    return TallyGateway(board, dispatcher)


class TestDecoding:
    def test_decodes_vote(self):
        vote = decode_vote(b'{"voter": "a", "score": "5", "room": "r1"}')
        assert vote == Vote(voter="a", score="5", room="r1")

    @pytest.mark.parametrize("raw", [b"", b"not json", b'"just a string"', b'{"voter": 5}'])
    def test_malformed_body_is_decode_error(self, raw):
        with pytest.raises(DecodeError):
            decode_vote(raw)

    def test_decodes_tally_vote(self):
        vote = decode_vote('{"voter": "a", "score": "yes"}', TallyVote)
        assert vote == TallyVote(voter="a", score="yes")

    def test_room_name(self):
        assert parse_room_name(b'"r1"') == "r1"
        assert parse_room_name(b'""') is None
        assert parse_room_name(b"{}") is None


class TestOverwriteGateway:
    @pytest.mark.asyncio
    async def test_submit_updates_and_enqueues(self, overwrite, dispatcher):
        await overwrite.submit(Vote(voter="a", score="5", room="r1"))

        assert dispatcher.pending() == 1
        event = dispatcher._queue.get_nowait()
        assert event.type == "update"
        assert json.loads(event.payload) == {
            "type": "update",
            "data": {"r1": {"voters": {"a": {"voter": "a", "score": "5", "room": "r1"}}}},
        }

    @pytest.mark.asyncio
    async def test_empty_voter_rejected_without_side_effects(self, overwrite, registry, dispatcher):
        with pytest.raises(InvalidVote):
            await overwrite.submit(Vote(voter="", score="5", room="r1"))

        assert await registry.list_room_names() == []
        assert dispatcher.pending() == 0

    @pytest.mark.asyncio
    async def test_serialization_failure_drops_broadcast_only(self, overwrite, registry, dispatcher, monkeypatch):
        def broken(event):
            raise SerializationFailure("nope")

        monkeypatch.setattr(gateway_module, "encode_event", broken)
        rooms = await overwrite.submit(Vote(voter="a", score="5", room="r1"))

        assert rooms["r1"].voters["a"].score == "5"
        assert (await registry.get_room("r1")).voters["a"].score == "5"
        assert dispatcher.pending() == 0

    @pytest.mark.asyncio
    async def test_rooms_and_status(self, overwrite, registry):
        await overwrite.submit(Vote(voter="a", score="5", room="r1"))
        await overwrite.submit(Vote(voter="b", score="3", room="r1"))

        status = (await status_event(registry, "r1")).model_dump()
        assert status["type"] == "status"
        assert {k: v["score"] for k, v in status["data"]["voters"].items()} == {"a": "5", "b": "3"}
        assert (await rooms_event(registry)).model_dump() == {"type": "rooms", "rooms": ["r1"]}

    @pytest.mark.asyncio
    async def test_snapshots_queued_in_mutation_order_when_queue_full(self, registry, connections):
        dispatcher = Dispatcher(connections, maxsize=1)
        gw = OverwriteGateway(registry, dispatcher)
        viewer = MockConnection("viewer")
        await dispatcher.subscribe(viewer)

        await gw.submit(Vote(voter="a", score="1", room="r1"))
        second = asyncio.ensure_future(gw.submit(Vote(voter="b", score="2", room="r1")))
        await asyncio.sleep(0.01)
        assert not second.done()

        # free the slot; "b" is woken but has not resumed yet
        dispatcher._queue.get_nowait()
        dispatcher._queue.task_done()
        dispatcher.start()
        await gw.submit(Vote(voter="c", score="3", room="r1"))
        await second
        await dispatcher.drain()
        await dispatcher.stop()

        frames = [set(json.loads(p)["data"]["r1"]["voters"]) for p in viewer.sent]
        assert frames == [{"a", "b"}, {"a", "b", "c"}]


class TestTallyGateway:
    @pytest.mark.asyncio
    async def test_duplicate_voter_refused(self, tally, board, dispatcher):
        first = await tally.submit(TallyVote(voter="a", score="yes"))
        assert first.counts == {"yes": 1}

        with pytest.raises(DuplicateVoter):
            await tally.submit(TallyVote(voter="a", score="yes"))

        assert await board.counts() == {"yes": 1}
        assert dispatcher.pending() == 1

    @pytest.mark.parametrize("voter,score", [("", "yes"), ("a", ""), ("", "")])
    @pytest.mark.asyncio
    async def test_empty_fields_are_invalid(self, tally, board, voter, score):
        with pytest.raises(InvalidVote):
            await tally.submit(TallyVote(voter=voter, score=score))
        assert await board.counts() == {}
        assert board._voted == set()

    @pytest.mark.asyncio
    async def test_envelope_carries_voter_score_counts(self, tally, dispatcher):
        await tally.submit(TallyVote(voter="a", score="yes"))
        await tally.submit(TallyVote(voter="b", score="no"))

        dispatcher._queue.get_nowait()
        body = json.loads(dispatcher._queue.get_nowait().payload)
        assert body["type"] == "update"
        assert body["data"]["voter"] == "b"
        assert body["data"]["score"] == "no"
        assert body["data"]["counts"] == {"yes": 1, "no": 1}

    @pytest.mark.asyncio
    async def test_tally_status(self, tally, board):
        await tally.submit(TallyVote(voter="a", score="yes"))
        assert (await tally_event(board)).model_dump() == {
            "type": "status",
            "data": {"counts": {"yes": 1}},
        }
