"""Client/server topology: the first peer is the host, everyone else a client."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

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

__all__ = ["ClientServer", "ClientServerCallbacks", "ClientServerState"]

log = logging.getLogger(__name__)


@dataclass
class ClientServerCallbacks:
    """Lifecycle callbacks for client/server topologies."""

    on_client_connected: Callback = field(default_factory=Callback.noop)
    on_client_disconnected: Callback = field(default_factory=Callback.noop)
    on_host_connected: Callback = field(default_factory=Callback.noop)
    on_host_disconnected: Callback = field(default_factory=Callback.noop)


@dataclass
class ClientServerState:
    """The host, if any, and the connected clients."""

    host: Optional[tuple[PeerId, SignalingChannel]] = None
    clients: dict[PeerId, SignalingChannel] = field(default_factory=dict)

    def get_host(self) -> Optional[PeerId]:
        """The host's id, or None when there is no host."""
        return self.host[0] if self.host is not None else None

    def set_host(self, peer: PeerId, sender: SignalingChannel) -> None:
        """Make ``peer`` the host."""
        self.host = (peer, sender)

    def add_client(self, peer: PeerId, sender: SignalingChannel) -> None:
        """Register a client."""
        self.clients[peer] = sender

    def remove_client(self, peer_id: PeerId) -> None:
        """Tell the host the client left, then forget it."""
        try:
            self.try_send_to_host(PeerLeft(peer_id).to_json())
        except SignalingError as exc:
            log.error("Failure sending peer remove to host: %r", exc)
        else:
            log.info("Notified host of peer remove: %s", peer_id)
        self.clients.pop(peer_id, None)

    def try_send_to_client(self, peer_id: PeerId, message: str) -> None:
        """Send a message to a client without blocking."""
        sender = self.clients.get(peer_id)
        if sender is None:
            raise UnknownPeerError()
        try_send(sender, message)

    def try_send_to_host(self, message: str) -> None:
        """Send a message to the host without blocking."""
        if self.host is None:
            raise UnknownPeerError()
        try_send(self.host[1], message)

    def reset(self) -> None:
        """Drop the host, tell every client it left, and forget the clients."""
        host, self.host = self.host, None
        if host is not None:
            event = PeerLeft(host[0]).to_json()
            for peer_id in list(self.clients):
                try:
                    self.try_send_to_client(peer_id, event)
                except SignalingError as exc:
                    log.error("Failure sending host peer remove to %s: %r", peer_id, exc)
                else:
                    log.info("Sent host peer remove to: %s", peer_id)
        self.clients.clear()


class ClientServer(SignalingTopology):
    """A client/server network topology."""

    async def state_machine(self, meta: WsStateMeta) -> None:
        peer_id = meta.peer_id
        state: ClientServerState = meta.state
        callbacks: ClientServerCallbacks = meta.callbacks

        if state.get_host() is None:
            state.set_host(peer_id, meta.sender)
            callbacks.on_host_connected.emit(peer_id)
        else:
            try:
                state.try_send_to_host(NewPeer(peer_id).to_json())
            except SignalingError as exc:
                log.error("error sending peer %s to host: %r", peer_id, exc)
                return
            state.add_client(peer_id, meta.sender)
            callbacks.on_client_connected.emit(peer_id)

        is_host = state.get_host() == peer_id

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
                    try:
                        if is_host:
                            state.try_send_to_client(request.receiver, event)
                        else:
                            state.try_send_to_host(event)
                    except SignalingError as exc:
                        log.error("error sending signal event: %r", exc)
                # KeepAlive needs no answer: it only keeps idle proxies from closing us.
        finally:
            if is_host:
                state.reset()
                callbacks.on_host_disconnected.emit(peer_id)
            else:
                state.remove_client(peer_id)
                callbacks.on_client_disconnected.emit(peer_id)