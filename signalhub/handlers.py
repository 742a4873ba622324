"""The HTTP handler that upgrades a connection and runs it through a topology."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from aiohttp import web

from .callbacks import SharedCallbacks
from .common import (
    SignalingChannel,
    SignalingTopology,
    WsStateMeta,
    WsUpgradeMeta,
    spawn_sender_task,
    try_send,
)
from .errors import SignalingError
from .protocol import IdAssigned, PeerId

__all__ = ["make_ws_handler"]

log = logging.getLogger(__name__)

_FLUSH_TIMEOUT = 1.0

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def _origin(request: web.Request) -> tuple[str, int]:
    transport = request.transport
    peer = transport.get_extra_info("peername") if transport is not None else None
    if isinstance(peer, tuple) and len(peer) >= 2:
        return str(peer[0]), int(peer[1])
    return request.remote or "", 0


async def _flush(sender: SignalingChannel, ws: web.WebSocketResponse) -> None:
    """Give messages still queued for the peer a chance to be written."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + _FLUSH_TIMEOUT
    while (
        not ws.closed
        and not sender.closed
        and not sender._queue.empty()
        and loop.time() < deadline
    ):
        await asyncio.sleep(0.01)
    await asyncio.sleep(0)


def make_ws_handler(
    shared_callbacks: SharedCallbacks,
    callbacks: Any,
    state: Any,
    topology: SignalingTopology,
) -> Handler:
    """Create the request handler that upgrades to a websocket.

    The connection-request callback decides whether the upgrade happens: True
    allows it, False answers 401, and a response object is sent back as is.
    """

    async def ws_handler(request: web.Request) -> web.StreamResponse:
        origin = _origin(request)
        log.info("`%s:%s` connected.", origin[0], origin[1])

        meta = WsUpgradeMeta(
            origin=origin,
            path=request.match_info.get("path"),
            query_params=dict(request.query),
            headers=request.headers,
        )

        verdict = shared_callbacks.on_connection_request.emit(meta)
        if verdict is False:
            return web.Response(status=401)
        if verdict is not True:
            if isinstance(verdict, web.StreamResponse):
                return verdict
            raise TypeError(
                f"connection request callback returned {verdict!r}; "
                "expected a bool or a response"
            )

        peer_id = PeerId.new()
        shared_callbacks.on_id_assignment.emit((origin, peer_id))

        ws = web.WebSocketResponse()
        await ws.prepare(request)
        sender = spawn_sender_task(ws)

        event_text = IdAssigned(peer_id).to_json()
        try:
            try_send(sender, event_text)
        except SignalingError as exc:
            log.error("error sending to %s: %r", peer_id, exc)
        else:
            log.info("%s -> %s", peer_id, event_text)

        state_meta = WsStateMeta(
            peer_id=peer_id,
            sender=sender,
            receiver=ws,
            callbacks=callbacks,
            state=state,
        )
        try:
            await topology.state_machine(state_meta)
            await _flush(sender, ws)
        finally:
            sender.close()
            await ws.close()
        return ws

    return ws_handler