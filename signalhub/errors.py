"""Exceptions raised by the signaling server."""

from __future__ import annotations

from typing import Any

__all__ = [
    "SignalingServerError",
    "BindError",
    "ServeError",
    "SignalingError",
    "UnknownPeerError",
    "UndeliverableError",
    "ClientRequestError",
    "TransportError",
    "SocketClosedError",
    "JsonRequestError",
    "UnsupportedTypeError",
]


class SignalingServerError(Exception):
    """Errors that can occur in the lifetime of a signaling server."""


class BindError(SignalingServerError):
    """The server could not bind its socket."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"Bind error: {cause}")
        self.cause = cause


class ServeError(SignalingServerError):
    """The server failed while serving."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"Serve error: {cause}")
        self.cause = cause


class SignalingError(SignalingServerError):
    """An error in server logic."""


class UnknownPeerError(SignalingError):
    """The recipient peer is unknown."""

    def __init__(self) -> None:
        super().__init__("Unknown recipient peer")


class UndeliverableError(SignalingError):
    """The message could not be delivered because the channel is closed."""

    def __init__(self, message: Any) -> None:
        super().__init__("Undeliverable message: channel closed")
        self.message = message


class ClientRequestError(Exception):
    """An error derived from a client's request."""


class TransportError(ClientRequestError):
    """The websocket transport reported an error."""

    def __init__(self, cause: Any) -> None:
        super().__init__(f"Transport error: {cause}")
        self.cause = cause


class SocketClosedError(ClientRequestError):
    """The socket is closed."""

    def __init__(self) -> None:
        super().__init__("Socket is closed.")


class JsonRequestError(ClientRequestError):
    """The message received was not a valid JSON request."""

    def __init__(self, cause: Any) -> None:
        super().__init__(f"Json error: {cause}")
        self.cause = cause


class UnsupportedTypeError(ClientRequestError):
    """The message type is not supported (only JSON text is)."""

    def __init__(self, message: Any) -> None:
        super().__init__(f"Unsupported message type: {message!r}")
        self.message = message