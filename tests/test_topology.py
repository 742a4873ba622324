import asyncio
import contextlib
import json

import aiohttp
import pytest

from signalhub.matchmaking.topology import matchmaking_builder
from signalhub.protocol import IdAssigned, NewPeer, PeerLeft, SignalEvent, event_from_json


async def next_event(ws):
    msg = await asyncio.wait_for(ws.receive(), 5)
    assert msg.type == aiohttp.WSMsgType.TEXT
    return event_from_json(msg.data)


@contextlib.asynccontextmanager
async def matchmaker():
    """Run a matchmaking server; yield a coroutine that joins a room.

    Joining returns the socket and the id the server assigned to it.
    """
    server = matchmaking_builder(("127.0.0.1", 0)).build()
    host, port = server.bind()
    serving = asyncio.create_task(server.serve())
    sockets = []

    async with aiohttp.ClientSession() as session:

        async def join(path):
            ws = await session.ws_connect(f"ws://{host}:{port}/{path}")
            sockets.append(ws)
            assigned = await next_event(ws)
            assert isinstance(assigned, IdAssigned)
            return ws, assigned.peer_id

        try:
            yield join
        finally:
            for ws in sockets:
                with contextlib.suppress(Exception):
                    await asyncio.wait_for(ws.close(), 2)
            serving.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await serving


SCENARIOS = {
    "uuid_assigned": (["room_a"], []),
    "new_peer": (["room_a", "room_a"], [(0, 1)]),
    "match_pairs": (["room_name?next=2"] * 4, [(0, 1), (2, 3)]),
    "match_pair_and_other_alone_room_without_next": (
        ["room_name?next=2", "room_name", "room_name?next=2"],
        [(0, 2)],
    ),
    "match_different_id_same_next": (
        ["scope_1?next=2", "scope_2?next=2", "scope_1?next=2", "scope_2?next=2"],
        [(0, 2), (1, 3)],
    ),
    "match_same_id_different_next": (
        [
            "scope_1?next=2",
            "scope_1?next=3",
            "scope_1?next=2",
            "scope_1?next=3",
            "scope_1?next=3",
        ],
        [(0, 2), (1, 3), (1, 4), (3, 4)],
    ),
    "unparsable_next_joins_room_without_next": (["room_x?next=abc", "room_x"], [(0, 1)]),
}


@pytest.mark.asyncio
@pytest.mark.parametrize("paths,announcements", SCENARIOS.values(), ids=SCENARIOS.keys())
async def test_matchmaking(paths, announcements):
    async with matchmaker() as join:
        joined = [await join(path) for path in paths]
        for listener, newcomer in announcements:
            ws = joined[listener][0]
            assert await next_event(ws) == NewPeer(joined[newcomer][1])
        for ws, _ in joined:
            with pytest.raises((asyncio.TimeoutError, TimeoutError)):
                await ws.receive(timeout=0.1)


@pytest.mark.asyncio
async def test_disconnect_peer():
    async with matchmaker() as join:
        client_a, _ = await join("room_a")
        client_b, b_uuid = await join("room_a")
        assert await next_event(client_a) == NewPeer(b_uuid)
        await client_b.close()
        assert await next_event(client_a) == PeerLeft(b_uuid)


@pytest.mark.asyncio
async def test_signal():
    async with matchmaker() as join:
        client_a, a_uuid = await join("room_a")
        client_b, _ = await join("room_a")
        announced = await next_event(client_a)
        assert isinstance(announced, NewPeer)
        await client_a.send_str(
            json.dumps({"Signal": {"receiver": str(announced.peer_id), "data": "123"}})
        )
        assert await next_event(client_b) == SignalEvent(sender=a_uuid, data="123")