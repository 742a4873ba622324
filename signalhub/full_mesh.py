"""Full-mesh topology: every peer is told about every other peer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

from .callbacks import Callback
from .common import SignalingChannel, SignalingTopology, WsStateMeta, parse_request, try_send
from .errors import (
    JsonRequestError,
    SignalingError,
    SocketClosedError,
    TransportError,
    UnknownPeerError,
    UnsupportedTypeError,
)
from .protocol import NewPeer, PeerId, PeerLeft, SignalEvent, SignalRequest

__all__ = ["FullMesh", "FullMeshCallbacks", "FullMeshState"]

log = logging.getLogger(__name__)


@dataclass
class FullMeshCallbacks:
    """Lifecycle callbacks for full-mesh topologies."""

    on_peer_connected: Callback = field(default_factory=Callback.noop)
    on_peer_disconnected: Callback = field(default_factory=Callback.noop)


@dataclass
class FullMeshState:
    """Connected peers and the channels to reach them."""

    peers: dict[PeerId, SignalingChannel] = field(default_factory=dict)

    def _broadcast(self, event: str, failure: str) -> list[PeerId]:
        """Send ``event`` to every known peer, returning those it reached."""
        reached = []
        for peer_id in list(self.peers):
            try:
                self.try_send_to_peer(peer_id, event)
            except SignalingError as exc:
                log.error(failure, peer_id, exc)
            else:
                reached.append(peer_id)
        return reached

    def add_peer(self, peer: PeerId, sender: SignalingChannel) -> None:
        """Announce ``peer`` to everyone already connected, then register it."""
        self._broadcast(NewPeer(peer).to_json(), "error sending to %s: %r")
        self.peers[peer] = sender

    def remove_peer(self, peer_id: PeerId) -> None:
        """Forget ``peer_id`` if known and tell the remaining peers it left."""
        removed: Optional[SignalingChannel] = self.peers.pop(peer_id, None)
        if removed is None:
            return
        reached = self._broadcast(
            PeerLeft(peer_id).to_json(), "Failure sending peer remove to %s: %r"
        )
        for other in reached:
            log.info("Sent peer remove to: %s", other)

    def try_send_to_peer(self, peer_id: PeerId, message: str) -> None:
        """Send a message to a peer without blocking."""
        sender = self.peers.get(peer_id)
        if sender is None:
            raise UnknownPeerError()
        try_send(sender, message)


async def _requests(peer_id: PeerId, receiver) -> AsyncIterator[object]:
    """Yield parsed requests until the connection ends or fails for good."""
    async for message in receiver:
        try:
            request = parse_request(message)
        except TransportError as exc:
            log.warning("Unrecoverable error with %s: %r", peer_id, exc)
            return
        except SocketClosedError:
            log.info("Connection closed by %s", peer_id)
            return
        except (JsonRequestError, UnsupportedTypeError) as exc:
            log.error("Error with request: %r", exc)
            continue
        yield request


class FullMesh(SignalingTopology):
    """A full-mesh network topology."""

    async def state_machine(self, meta: WsStateMeta) -> None:
        peer_id = meta.peer_id
        state: FullMeshState = meta.state
        callbacks: FullMeshCallbacks = meta.callbacks

        state.add_peer(peer_id, meta.sender)
        callbacks.on_peer_connected.emit(peer_id)

        try:
            async for request in _requests(peer_id, meta.receiver):
                # KeepAlive needs no answer: it only keeps idle proxies from closing us.
                if not isinstance(request, SignalRequest):
                    continue
                event = SignalEvent(sender=peer_id, data=request.data).to_json()
                try:
                    state.try_send_to_peer(request.receiver, event)
                except SignalingError as exc:
                    log.error("error sending: %r", exc)
        finally:
            state.remove_peer(peer_id)
            callbacks.on_peer_disconnected.emit(peer_id)