"""Types and helpers shared by every signaling topology."""

from __future__ import annotations

import abc
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from aiohttp import WSMessage, WSMsgType

from .errors import (
    JsonRequestError,
    SocketClosedError,
    TransportError,
    UndeliverableError,
    UnsupportedTypeError,
)
from .protocol import PeerId, PeerRequest, request_from_json

log = logging.getLogger(__name__)

_CLOSED = object()


class SignalingChannel:
    """An unbounded queue of text messages destined for one peer's websocket."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, message: str) -> None:
        """Queue ``message`` without blocking; raise UndeliverableError if closed."""
        if self._closed:
            raise UndeliverableError(message)
        self._queue.put_nowait(message)

    def close(self) -> None:
        """Stop accepting messages and wake any reader."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    async def get(self) -> Optional[str]:
        """Wait for the next message; None once the channel is closed."""
        if self._closed:
            return None
        item = await self._queue.get()
        return None if item is _CLOSED else item


@dataclass
class WsUpgradeMeta:
    """Metadata captured at the time of the websocket upgrade."""

    origin: tuple[str, int]
    path: Optional[str] = None
    query_params: dict[str, str] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass
class WsStateMeta:
    """Everything a topology's state machine needs for one connected peer."""

    peer_id: PeerId
    sender: SignalingChannel
    receiver: Any
    callbacks: Any
    state: Any


@dataclass
class NoCallbacks:
    """Topology callbacks for topologies that have none."""


@dataclass
class NoState:
    """Topology state for topologies that keep none."""


class SignalingTopology(abc.ABC):
    """A network topology: runs one connection to completion."""

    @abc.abstractmethod
    async def state_machine(self, meta: WsStateMeta) -> None:
        """Drive the connection described by ``meta`` until it ends."""


def try_send(sender: SignalingChannel, message: str) -> None:
    """Send a message to a channel without blocking."""
    sender.send(message)


_CLOSE_TYPES = {WSMsgType.CLOSE, WSMsgType.CLOSING, WSMsgType.CLOSED}


def parse_request(message: WSMessage) -> PeerRequest:
    """Parse a websocket message; only JSON text messages are supported."""
    if message.type == WSMsgType.ERROR:
        raise TransportError(message.data)
    if message.type in _CLOSE_TYPES:
        raise SocketClosedError()
    if message.type == WSMsgType.TEXT:
        try:
            return request_from_json(message.data)
        except ValueError as exc:
            raise JsonRequestError(exc) from exc
    raise UnsupportedTypeError(message)


def spawn_sender_task(ws: Any) -> SignalingChannel:
    """Start forwarding a new channel's messages to ``ws`` and return the channel.

    The channel is closed once the websocket can no longer be written to.
    """
    channel = SignalingChannel()

    async def forward() -> None:
        try:
            while (message := await channel.get()) is not None:
                await ws.send_str(message)
        except (ConnectionError, RuntimeError) as exc:
            log.debug("websocket sender stopped: %s", exc)
        finally:
            channel.close()

    channel._task = asyncio.get_running_loop().create_task(forward())
    return channel