"""Command line entry point for the matchmaking signaling server."""

from __future__ import annotations

import argparse
import asyncio
import ipaddress
import logging
import os
from typing import Optional, Sequence

from aiohttp import web

from ..errors import SignalingServerError
from ..server import SignalingServer
from .topology import matchmaking_builder

__all__ = ["parse_args", "health_handler", "build_app_server", "main"]

log = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0:3536"
HOST_ENV = "HOST"


def _socket_addr(text: str) -> tuple[str, int]:
    """Parse ``ip:port`` (IPv6 in brackets) into a ``(host, port)`` tuple."""
    host, sep, port = text.rpartition(":")
    if not sep or not host:
        raise argparse.ArgumentTypeError(f"invalid socket address syntax: {text!r}")
    bracketed = host.startswith("[") and host.endswith("]")
    if bracketed:
        host = host[1:-1]
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid socket address syntax: {text!r}") from None
    if (ip.version == 6) != bracketed:
        raise argparse.ArgumentTypeError(f"invalid socket address syntax: {text!r}")
    if not port.isdigit() or not port.isascii() or int(port) > 65535:
        raise argparse.ArgumentTypeError(f"invalid port in socket address: {text!r}")
    return str(ip), int(port)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="signalhub-matchmaking",
        description="Run a matchmaking signaling server.",
    )
    parser.add_argument(
        "host",
        nargs="?",
        type=_socket_addr,
        default=os.environ.get(HOST_ENV, DEFAULT_HOST),
        help=f"address to listen on (default: {DEFAULT_HOST}, or ${HOST_ENV})",
    )
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments; the host falls back to $HOST, then the default."""
    return _parser().parse_args(argv)


async def health_handler(request: web.Request) -> web.Response:
    """Answer health checks with 200 OK."""
    return web.Response(status=200)


def build_app_server(host) -> SignalingServer:
    """Build the matchmaking server with CORS, tracing and a /health route."""

    def add_health(app: web.Application) -> web.Application:
        app.router.add_get("/health", health_handler)
        return app

    return matchmaking_builder(host).cors().trace().mutate_router(add_health).build()


def _setup_logging() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the matchmaking server until interrupted."""
    _setup_logging()
    args = parse_args(argv)
    host, port = args.host
    log.info("Signaling server: %s:%s", host, port)
    server = build_app_server(args.host)
    try:
        asyncio.run(server.serve())
    except SignalingServerError as exc:
        raise SystemExit(
            f"Unable to run signaling server, is it already running? {exc}"
        ) from exc
    except KeyboardInterrupt:
        pass
    return 0