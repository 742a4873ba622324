"""Wire protocol between peers and the signaling server.

Requests travel from a peer to the server, events from the server to a peer.
Both are encoded as JSON using externally tagged variants: a unit variant is a
bare string (``"KeepAlive"``), any other variant is a one-key object whose key
names the variant (``{"NewPeer": "<uuid>"}``).
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Any, Union

__all__ = [
    "PeerId",
    "SignalRequest",
    "KeepAlive",
    "IdAssigned",
    "NewPeer",
    "PeerLeft",
    "SignalEvent",
    "PeerRequest",
    "PeerEvent",
    "request_from_json",
    "event_from_json",
]


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


@dataclass(frozen=True, order=True)
class PeerId:
    """The identifier the signaling server hands to a peer."""

    uuid: uuid.UUID

    @classmethod
    def new(cls) -> PeerId:
        """Create a fresh random identifier."""
        return cls(uuid.uuid4())

    @classmethod
    def parse(cls, text: Any) -> PeerId:
        """Parse an identifier from its textual form; raise ValueError if malformed."""
        if not isinstance(text, str):
            raise ValueError(f"peer id must be a string, got {type(text).__name__}")
        try:
            return cls(uuid.UUID(text))
        except ValueError as exc:
            raise ValueError(f"invalid peer id {text!r}: {exc}") from exc

    def __str__(self) -> str:
        return str(self.uuid)


@dataclass(frozen=True)
class SignalRequest:
    """Ask the server to forward ``data`` to ``receiver``."""

    receiver: PeerId
    data: Any

    def to_json(self) -> str:
        return _dumps({"Signal": {"receiver": str(self.receiver), "data": self.data}})


@dataclass(frozen=True)
class KeepAlive:
    """Keeps an idle connection from being dropped by proxies."""

    def to_json(self) -> str:
        return _dumps("KeepAlive")


@dataclass(frozen=True)
class IdAssigned:
    """Sent to a peer right after it connects, before any other event."""

    peer_id: PeerId

    def to_json(self) -> str:
        return _dumps({"IdAssigned": str(self.peer_id)})


@dataclass(frozen=True)
class NewPeer:
    """Another peer has joined."""

    peer_id: PeerId

    def to_json(self) -> str:
        return _dumps({"NewPeer": str(self.peer_id)})


@dataclass(frozen=True)
class PeerLeft:
    """Another peer has gone away."""

    peer_id: PeerId

    def to_json(self) -> str:
        return _dumps({"PeerLeft": str(self.peer_id)})


@dataclass(frozen=True)
class SignalEvent:
    """Signalling data forwarded from ``sender``."""

    sender: PeerId
    data: Any

    def to_json(self) -> str:
        return _dumps({"Signal": {"sender": str(self.sender), "data": self.data}})


PeerRequest = Union[SignalRequest, KeepAlive]
PeerEvent = Union[IdAssigned, NewPeer, PeerLeft, SignalEvent]


def _variant(value: Any) -> tuple[str, Any]:
    if isinstance(value, str):
        return value, None
    if isinstance(value, dict) and len(value) == 1:
        ((tag, body),) = value.items()
        return tag, body
    raise ValueError(f"expected an enum variant, got {value!r}")


def _struct_fields(tag: str, body: Any, *names: str) -> list[Any]:
    if not isinstance(body, dict):
        raise ValueError(f"variant {tag!r} expects an object, got {body!r}")
    missing = [name for name in names if name not in body]
    if missing:
        raise ValueError(f"variant {tag!r} is missing field {missing[0]!r}")
    return [body[name] for name in names]


def request_from_json(text: str) -> PeerRequest:
    """Decode a request sent by a peer; raise ValueError on malformed input."""
    tag, body = _variant(json.loads(text))
    if tag == "KeepAlive" and body is None:
        return KeepAlive()
    if tag == "Signal":
        receiver, data = _struct_fields(tag, body, "receiver", "data")
        return SignalRequest(receiver=PeerId.parse(receiver), data=data)
    raise ValueError(f"unknown request variant {tag!r}")


_ID_EVENTS = {"IdAssigned": IdAssigned, "NewPeer": NewPeer, "PeerLeft": PeerLeft}


def event_from_json(text: str) -> PeerEvent:
    """Decode an event sent by the server; raise ValueError on malformed input."""
    tag, body = _variant(json.loads(text))
    if tag in _ID_EVENTS:
        if body is None:
            raise ValueError(f"variant {tag!r} expects a peer id")
        return _ID_EVENTS[tag](PeerId.parse(body))
    if tag == "Signal":
        sender, data = _struct_fields(tag, body, "sender", "data")
        return SignalEvent(sender=PeerId.parse(sender), data=data)
    raise ValueError(f"unknown event variant {tag!r}")