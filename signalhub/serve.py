"""Run a plain signaling server with a full-mesh or client/server topology."""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Any, Optional, Sequence

from .common import WsUpgradeMeta
from .errors import SignalingServerError
from .server import SignalingServer

__all__ = ["build_server", "main"]

log = logging.getLogger(__name__)

TOPOLOGIES = ("full_mesh", "client_server")
DEFAULT_ADDR = "0.0.0.0:3536"


def _allow_connection(connection: WsUpgradeMeta) -> bool:
    log.info("Connecting: %r", connection)
    return True


def _log_assignment(assignment: Any) -> None:
    (host, port), peer_id = assignment
    log.info("%s:%s received %s", host, port, peer_id)


def build_server(topology: str, socket_addr: Any) -> SignalingServer:
    """Build a server of the named topology that logs its lifecycle events.

    ``topology`` is ``"full_mesh"`` or ``"client_server"``; anything else
    raises ValueError, as does a malformed address.
    """
    if topology == "full_mesh":
        builder = (
            SignalingServer.full_mesh_builder(socket_addr)
            .on_peer_connected(lambda peer_id: log.info("Joined: %s", peer_id))
            .on_peer_disconnected(lambda peer_id: log.info("Left: %s", peer_id))
        )
    elif topology == "client_server":
        builder = (
            SignalingServer.client_server_builder(socket_addr)
            .on_host_connected(lambda peer_id: log.info("Host joined: %s", peer_id))
            .on_host_disconnected(lambda peer_id: log.info("Host left: %s", peer_id))
            .on_client_connected(lambda peer_id: log.info("Client joined: %s", peer_id))
            .on_client_disconnected(lambda peer_id: log.info("Client left: %s", peer_id))
        )
    else:
        raise ValueError(f"unknown topology {topology!r}; expected one of {TOPOLOGIES}")
    return (
        builder.on_connection_request(_allow_connection)
        .on_id_assignment(_log_assignment)
        .cors()
        .trace()
        .build()
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run a signaling server until interrupted."""
    parser = argparse.ArgumentParser(
        prog="signalhub-serve", description="Run a signaling server."
    )
    parser.add_argument("topology", choices=TOPOLOGIES, help="network topology to serve")
    parser.add_argument(
        "--addr", default=DEFAULT_ADDR, help=f"address to listen on (default: {DEFAULT_ADDR})"
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s %(message)s")
    try:
        server = build_server(args.topology, args.addr)
    except ValueError as exc:
        parser.error(str(exc))
    try:
        asyncio.run(server.serve())
    except SignalingServerError as exc:
        raise SystemExit(str(exc)) from exc
    except KeyboardInterrupt:
        pass
    return 0