"""Server state for the matchmaking demo: waiting clients, peers and rooms."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from ..common import SignalingChannel, try_send
from ..errors import UnknownPeerError
from ..protocol import PeerId

__all__ = ["RequestedRoom", "Peer", "ServerState"]

Origin = tuple[str, int]


@dataclass(frozen=True)
class RequestedRoom:
    """A room by name and, optionally, the number of players that completes it."""

    id: str = ""
    next: Optional[int] = None


@dataclass
class Peer:
    """A connected peer, the room it asked for and the channel to reach it."""

    uuid: PeerId
    room: RequestedRoom
    sender: SignalingChannel


@dataclass
class ServerState:
    """Shared matchmaking state.

    Clients pass through three stages: waiting (known by origin address before
    an id is assigned), queued (known by id, not yet running) and connected.
    """

    clients_waiting: dict[Origin, RequestedRoom] = field(default_factory=dict)
    clients_in_queue: dict[PeerId, RequestedRoom] = field(default_factory=dict)
    clients: dict[PeerId, Peer] = field(default_factory=dict)
    # Values are dicts used as insertion-ordered sets.
    rooms: dict[RequestedRoom, dict[PeerId, None]] = field(default_factory=dict)

    def add_waiting_client(self, origin: Origin, room: RequestedRoom) -> None:
        """Add a waiting client to matchmaking."""
        self.clients_waiting[origin] = room

    def assign_id_to_waiting_client(self, origin: Origin, peer_id: PeerId) -> None:
        """Move the client waiting at ``origin`` into the queue under ``peer_id``."""
        try:
            room = self.clients_waiting.pop(origin)
        except KeyError:
            raise KeyError(f"no waiting client at {origin!r}") from None
        self.clients_in_queue[peer_id] = room

    def remove_waiting_peer(self, peer_id: PeerId) -> RequestedRoom:
        """Remove the queued peer, returning the room it requested."""
        try:
            return self.clients_in_queue.pop(peer_id)
        except KeyError:
            raise KeyError(f"no waiting peer {peer_id}") from None

    def add_peer(self, peer: Peer) -> list[PeerId]:
        """Add a peer, returning the peers already in its room.

        A room with ``next`` set is emptied once it is complete, so the
        following arrivals start a fresh match.
        """
        self.clients[peer.uuid] = peer
        peers = self.rooms.setdefault(peer.room, {})
        previous = list(peers)
        if peer.room.next is not None and len(peers) == peer.room.next - 1:
            peers.clear()
        else:
            peers[peer.uuid] = None
        return previous

    def get_peer(self, peer_id: PeerId) -> Optional[Peer]:
        """The connected peer with this id, if any."""
        return self.clients.get(peer_id)

    def get_room_peers(self, room: RequestedRoom) -> list[PeerId]:
        """The peers currently in ``room``."""
        return list(self.rooms.get(room, ()))

    def remove_peer(self, peer_id: PeerId) -> Optional[Peer]:
        """Remove a peer if it existed, returning the peer removed."""
        peer = self.clients.pop(peer_id, None)
        if peer is not None:
            room = self.rooms.get(peer.room)
            if room is not None:
                room.pop(peer_id, None)
        return peer

    def try_send(self, peer_id: PeerId, message: str) -> None:
        """Send a message to a peer without blocking."""
        peer = self.clients.get(peer_id)
        if peer is None:
            raise UnknownPeerError()
        try_send(peer.sender, message)