"""Building and running a signaling server."""

from __future__ import annotations

import asyncio
import logging
import os
import socket
import time
from typing import Any, Callable, Optional, Union

from aiohttp import web

from .callbacks import Callback, SharedCallbacks
from .client_server import ClientServer, ClientServerCallbacks, ClientServerState
from .common import NoCallbacks, NoState, SignalingTopology
from .errors import BindError, ServeError
from .full_mesh import FullMesh, FullMeshCallbacks, FullMeshState
from .handlers import make_ws_handler

__all__ = ["SignalingServerBuilder", "SignalingServer"]

log = logging.getLogger(__name__)

Address = tuple[str, int]
AddressLike = Union[str, tuple[Any, int]]

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "*",
    "Access-Control-Allow-Headers": "*",
}


def _parse_addr(addr: AddressLike) -> Address:
    """Turn ``"host:port"`` or ``(host, port)`` into a ``(host, port)`` tuple."""
    if isinstance(addr, str):
        host, sep, port = addr.rpartition(":")
        if not sep or not port:
            raise ValueError(f"invalid socket address {addr!r}")
        if host.startswith("[") and host.endswith("]"):
            host = host[1:-1]
        try:
            return host, int(port)
        except ValueError as exc:
            raise ValueError(f"invalid port in socket address {addr!r}") from exc
    host, port = addr
    return str(host), int(port)


def _default_callbacks(topology: SignalingTopology) -> Any:
    if isinstance(topology, FullMesh):
        return FullMeshCallbacks()
    if isinstance(topology, ClientServer):
        return ClientServerCallbacks()
    return NoCallbacks()


@web.middleware
async def _cors_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
    if request.method == "OPTIONS" and "Access-Control-Request-Method" in request.headers:
        response: web.StreamResponse = web.Response(status=200)
    else:
        try:
            response = await handler(request)
        except web.HTTPException as exc:
            exc.headers.update(_CORS_HEADERS)
            raise
    if not response.prepared:
        response.headers.update(_CORS_HEADERS)
    return response


@web.middleware
async def _trace_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
    started = time.perf_counter()
    status: Any = "error"
    try:
        response = await handler(request)
        status = response.status
        return response
    except web.HTTPException as exc:
        status = exc.status
        raise
    finally:
        latency = int((time.perf_counter() - started) * 1_000_000)
        log.info(
            "finished processing request method=%s path=%s latency=%d μs status=%s",
            request.method,
            request.path,
            latency,
            status,
        )


class SignalingServerBuilder:
    """Collects the settings of a signaling server; ``build`` produces it."""

    def __init__(
        self,
        socket_addr: AddressLike,
        topology: SignalingTopology,
        state: Any = None,
        callbacks: Any = None,
    ) -> None:
        self.socket_addr = _parse_addr(socket_addr)
        self.router = web.Application()
        self.shared_callbacks = SharedCallbacks()
        self.callbacks = callbacks if callbacks is not None else _default_callbacks(topology)
        self.topology = topology
        self.state = state if state is not None else NoState()

    def mutate_router(
        self, alter: Callable[[web.Application], web.Application]
    ) -> SignalingServerBuilder:
        """Let ``alter`` change the application, e.g. to add routes or middleware."""
        router = alter(self.router)
        if not isinstance(router, web.Application):
            raise TypeError("mutate_router callback must return the application")
        self.router = router
        return self

    def on_connection_request(self, callback: Callable[[Any], Any]) -> SignalingServerBuilder:
        """Decide before the upgrade whether a connection is allowed."""
        self.shared_callbacks.on_connection_request = Callback(callback)
        return self

    def on_id_assignment(self, callback: Callable[[Any], Any]) -> SignalingServerBuilder:
        """Be told ``(origin, peer_id)`` when a socket receives its id."""
        self.shared_callbacks.on_id_assignment = Callback(callback)
        return self

    def _set_topology_callback(self, name: str, callback: Callable[[Any], Any]) -> None:
        if not hasattr(self.callbacks, name):
            raise TypeError(
                f"{type(self.topology).__name__} topology has no {name!r} callback"
            )
        setattr(self.callbacks, name, Callback(callback))

    def on_peer_connected(self, callback: Callable[[Any], Any]) -> SignalingServerBuilder:
        """Full mesh: called on every websocket connection."""
        self._set_topology_callback("on_peer_connected", callback)
        return self

    def on_peer_disconnected(self, callback: Callable[[Any], Any]) -> SignalingServerBuilder:
        """Full mesh: called on every websocket disconnection."""
        self._set_topology_callback("on_peer_disconnected", callback)
        return self

    def on_client_connected(self, callback: Callable[[Any], Any]) -> SignalingServerBuilder:
        """Client/server: called when a client connects."""
        self._set_topology_callback("on_client_connected", callback)
        return self

    def on_client_disconnected(self, callback: Callable[[Any], Any]) -> SignalingServerBuilder:
        """Client/server: called when a client disconnects."""
        self._set_topology_callback("on_client_disconnected", callback)
        return self

    def on_host_connected(self, callback: Callable[[Any], Any]) -> SignalingServerBuilder:
        """Client/server: called when the host connects."""
        self._set_topology_callback("on_host_connected", callback)
        return self

    def on_host_disconnected(self, callback: Callable[[Any], Any]) -> SignalingServerBuilder:
        """Client/server: called when the host disconnects."""
        self._set_topology_callback("on_host_disconnected", callback)
        return self

    def cors(self) -> SignalingServerBuilder:
        """Apply permissive CORS headers, for debugging."""
        self.router.middlewares.append(_cors_middleware)
        return self

    def trace(self) -> SignalingServerBuilder:
        """Log every finished request with its latency, for debugging."""
        self.router.middlewares.append(_trace_middleware)
        return self

    def build(self) -> SignalingServer:
        """Create the server."""
        ws_handler = make_ws_handler(
            self.shared_callbacks, self.callbacks, self.state, self.topology
        )
        active: set[asyncio.Task[Any]] = set()

        async def tracked_handler(request: web.Request) -> web.StreamResponse:
            task = asyncio.current_task()
            if task is not None:
                active.add(task)
            try:
                return await ws_handler(request)
            finally:
                if task is not None:
                    active.discard(task)

        async def cancel_connections(_app: web.Application) -> None:
            for task in list(active):
                task.cancel()

        app = self.router
        app.router.add_get("/", tracked_handler)
        app.router.add_get("/{path}", tracked_handler)
        app.on_shutdown.append(cancel_connections)
        return SignalingServer(self.socket_addr, app)


class SignalingServer:
    """A signaling server ready to bind and serve."""

    def __init__(self, requested_addr: AddressLike, app: web.Application) -> None:
        self.requested_addr = _parse_addr(requested_addr)
        self.app = app
        self._listener: Optional[socket.socket] = None

    @staticmethod
    def full_mesh_builder(socket_addr: AddressLike) -> SignalingServerBuilder:
        """A builder for a server with full-mesh topology."""
        return SignalingServerBuilder(
            socket_addr, FullMesh(), FullMeshState(), FullMeshCallbacks()
        )

    @staticmethod
    def client_server_builder(socket_addr: AddressLike) -> SignalingServerBuilder:
        """A builder for a server with client/server topology."""
        return SignalingServerBuilder(
            socket_addr, ClientServer(), ClientServerState(), ClientServerCallbacks()
        )

    def local_addr(self) -> Optional[Address]:
        """The address the server is bound to, or None before ``bind``."""
        if self._listener is None:
            return None
        host, port = self._listener.getsockname()[:2]
        return host, port

    def bind(self) -> Address:
        """Bind and listen on the requested address; raise BindError on failure."""
        host, port = self.requested_addr
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            if os.name != "nt":
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            sock.listen(128)
            sock.setblocking(False)
        except OSError as exc:
            sock.close()
            raise BindError(exc) from exc
        if self._listener is not None:
            self._listener.close()
        self._listener = sock
        host, port = sock.getsockname()[:2]
        return host, port

    async def serve(self) -> None:
        """Serve until cancelled, binding first if needed."""
        if self._listener is None:
            self.bind()
        sock = self._listener
        assert sock is not None
        runner = web.AppRunner(self.app, handle_signals=False, access_log=None)
        try:
            await runner.setup()
            site = web.SockSite(runner, sock)
            await site.start()
        except OSError as exc:
            await runner.cleanup()
            raise ServeError(exc) from exc
        try:
            await asyncio.get_running_loop().create_future()
        finally:
            await runner.cleanup()
            sock.close()
            self._listener = None