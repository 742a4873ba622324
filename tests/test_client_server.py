import asyncio

import pytest
from aiohttp import WSMessage, WSMsgType

from signalhub.callbacks import Callback
from signalhub.client_server import ClientServer, ClientServerCallbacks, ClientServerState
from signalhub.common import SignalingChannel, WsStateMeta
from signalhub.errors import UndeliverableError, UnknownPeerError
from signalhub.protocol import (
    NewPeer,
    PeerId,
    PeerLeft,
    SignalEvent,
    SignalRequest,
    event_from_json,
)

CLOSE_FRAME = WSMessage(WSMsgType.CLOSE, 1000, "")


def signal(receiver, data):
    return WSMessage(WSMsgType.TEXT, SignalRequest(receiver=receiver, data=data).to_json(), None)


async def expect(channel, *events):
    """Assert that ``channel`` holds exactly ``events``, in order."""
    for wanted in events:
        got = event_from_json(await asyncio.wait_for(channel.get(), 1))
        assert got == wanted
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(channel.get(), 0.05)


async def run_as(peer, state, *frames):
    """Run the client/server state machine for ``peer``; return lifecycle events."""
    log = []

    def record(kind):
        return Callback(lambda p: log.append((kind, p)))

    callbacks = ClientServerCallbacks(
        on_client_connected=record("client_connected"),
        on_client_disconnected=record("client_disconnected"),
        on_host_connected=record("host_connected"),
        on_host_disconnected=record("host_disconnected"),
    )

    async def receiver():
        for frame in frames:
            yield frame

    meta = WsStateMeta(
        peer_id=peer,
        sender=SignalingChannel(),
        receiver=receiver(),
        callbacks=callbacks,
        state=state,
    )
    await ClientServer().state_machine(meta)
    return log


def test_get_and_set_host():
    state = ClientServerState()
    assert state.get_host() is None
    for host in (PeerId.new(), PeerId.new()):
        state.set_host(host, SignalingChannel())
        assert state.get_host() == host


def test_sending_without_host_or_client_raises():
    state = ClientServerState()
    with pytest.raises(UnknownPeerError):
        state.try_send_to_host("hello")
    with pytest.raises(UnknownPeerError):
        state.try_send_to_client(PeerId.new(), "hello")


@pytest.mark.asyncio
async def test_remove_client_notifies_host():
    state = ClientServerState()
    host, client = PeerId.new(), PeerId.new()
    host_ch = SignalingChannel()
    state.set_host(host, host_ch)
    state.add_client(client, SignalingChannel())
    state.remove_client(client)
    await expect(host_ch, PeerLeft(client))
    assert state.clients == {}


@pytest.mark.asyncio
async def test_reset_tells_clients_host_left():
    state = ClientServerState()
    host = PeerId.new()
    state.set_host(host, SignalingChannel())
    channels = [SignalingChannel(), SignalingChannel()]
    for channel in channels:
        state.add_client(PeerId.new(), channel)
    state.reset()
    for channel in channels:
        await expect(channel, PeerLeft(host))
    assert state.get_host() is None
    assert state.clients == {}


@pytest.mark.asyncio
async def test_first_peer_becomes_host_and_signals_clients():
    state = ClientServerState()
    host, client = PeerId.new(), PeerId.new()
    client_ch = SignalingChannel()
    state.add_client(client, client_ch)
    log = await run_as(host, state, signal(client, "123"), CLOSE_FRAME)
    await expect(client_ch, SignalEvent(sender=host, data="123"), PeerLeft(host))
    assert log == [("host_connected", host), ("host_disconnected", host)]
    assert state.get_host() is None


@pytest.mark.asyncio
async def test_client_lifecycle_goes_through_host():
    state = ClientServerState()
    host, client = PeerId.new(), PeerId.new()
    host_ch = SignalingChannel()
    state.set_host(host, host_ch)
    log = await run_as(
        client,
        state,
        WSMessage(WSMsgType.TEXT, "not json", None),
        signal(PeerId.new(), "123"),
        CLOSE_FRAME,
    )
    await expect(
        host_ch,
        NewPeer(client),
        SignalEvent(sender=client, data="123"),
        PeerLeft(client),
    )
    assert log == [("client_connected", client), ("client_disconnected", client)]
    assert state.clients == {}
    assert state.get_host() == host


@pytest.mark.asyncio
async def test_client_rejected_when_host_unreachable():
    state = ClientServerState()
    host, client = PeerId.new(), PeerId.new()
    host_ch = SignalingChannel()
    host_ch.close()
    state.set_host(host, host_ch)
    log = await run_as(client, state, CLOSE_FRAME)
    assert log == []
    assert client not in state.clients
    with pytest.raises(UndeliverableError):
        state.try_send_to_host("hello")


@pytest.mark.asyncio
async def test_host_signal_to_unknown_client_is_not_fatal():
    state = ClientServerState()
    host, client = PeerId.new(), PeerId.new()
    client_ch = SignalingChannel()
    state.add_client(client, client_ch)
    log = await run_as(host, state, signal(PeerId.new(), "lost"), signal(client, "found"))
    await expect(client_ch, SignalEvent(sender=host, data="found"), PeerLeft(host))
    assert log[-1] == ("host_disconnected", host)