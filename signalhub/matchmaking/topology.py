"""Matchmaking topology: peers meet others who asked for the same room."""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..common import SignalingTopology, WsStateMeta, WsUpgradeMeta, parse_request
from ..errors import (
    JsonRequestError,
    SignalingError,
    SocketClosedError,
    TransportError,
    UnsupportedTypeError,
)
from ..protocol import NewPeer, PeerId, PeerLeft, SignalEvent, SignalRequest
from ..server import SignalingServerBuilder
from .state import Peer, RequestedRoom, ServerState

__all__ = ["MatchmakingDemoTopology", "matchmaking_builder"]

log = logging.getLogger(__name__)


class MatchmakingDemoTopology(SignalingTopology):
    """Groups peers by requested room, optionally in matches of ``next`` players."""

    async def state_machine(self, meta: WsStateMeta) -> None:
        peer_id = meta.peer_id
        state: ServerState = meta.state

        room = state.remove_waiting_peer(peer_id)
        peers = state.add_peer(Peer(uuid=peer_id, room=room, sender=meta.sender))

        event_text = NewPeer(peer_id).to_json()
        for other in peers:
            try:
                state.try_send(other, event_text)
            except SignalingError as exc:
                log.error("error sending to %s: %r", other, exc)
            else:
                log.info("%s -> %s", other, event_text)

        try:
            async for message in meta.receiver:
                try:
                    request = parse_request(message)
                except TransportError as exc:
                    log.warning("Unrecoverable error with %s: %r", peer_id, exc)
                    break
                except SocketClosedError:
                    log.info("Connection closed by %s", peer_id)
                    break
                except (JsonRequestError, UnsupportedTypeError) as exc:
                    log.error("Error with request: %r", exc)
                    continue

                if isinstance(request, SignalRequest):
                    event = SignalEvent(sender=peer_id, data=request.data).to_json()
                    receiver = state.get_peer(request.receiver)
                    if receiver is None:
                        log.warning("peer not found (%s), ignoring signal", request.receiver)
                        continue
                    try:
                        receiver.sender.send(event)
                    except SignalingError as exc:
                        log.error("error sending signal event: %r", exc)
                # KeepAlive needs no answer: it only keeps idle proxies from closing us.
        finally:
            log.info("Removing peer: %s", peer_id)
            removed = state.remove_peer(peer_id)
            if removed is not None:
                event = PeerLeft(removed.uuid).to_json()
                for other in state.get_room_peers(removed.room):
                    if other == peer_id:
                        continue
                    try:
                        state.try_send(other, event)
                    except SignalingError as exc:
                        log.error("Failure sending peer remove: %r", exc)
                    else:
                        log.info("Sent peer remove to: %s", other)


def _parse_next(value: Optional[str]) -> Optional[int]:
    """Parse a non-negative integer the way a plain unsigned parse would."""
    if value is None:
        return None
    digits = value[1:] if value.startswith("+") else value
    if not digits or not all("0" <= ch <= "9" for ch in digits):
        return None
    return int(digits)


def matchmaking_builder(socket_addr: Any) -> SignalingServerBuilder:
    """A builder for a matchmaking server that accepts every connection."""
    state = ServerState()

    def on_connection_request(connection: WsUpgradeMeta) -> bool:
        room = RequestedRoom(
            id=connection.path or "",
            next=_parse_next(connection.query_params.get("next")),
        )
        state.add_waiting_client(connection.origin, room)
        return True

    def on_id_assignment(assignment: tuple[tuple[str, int], PeerId]) -> None:
        origin, peer_id = assignment
        log.info("Client connected %r: %s", origin, peer_id)
        state.assign_id_to_waiting_client(origin, peer_id)

    return (
        SignalingServerBuilder(socket_addr, MatchmakingDemoTopology(), state)
        .on_connection_request(on_connection_request)
        .on_id_assignment(on_id_assignment)
    )