# signalhub

A small WebSocket signaling server built on aiohttp. It helps browsers and
native clients find each other and exchange the offers, answers and ICE
candidates they need to open peer-to-peer WebRTC connections. Once the peers
are connected, the signaling server plays no further part in their traffic.

Three topologies are included:

- **Full mesh** (`signalhub.full_mesh.FullMesh`): when a peer joins, every
  peer already connected is told about it. When it leaves, the remaining
  peers are told. Signals can be sent between any two peers.
- **Client-server** (`signalhub.client_server.ClientServer`): the first
  peer to connect becomes the host. Later peers are clients and are only
  introduced to the host. Clients can signal only the host, and the host can
  signal any client. When the host leaves, every client is told and the
  session is reset, so the next peer to connect becomes the new host.
- **Matchmaking** (`signalhub.matchmaking.topology.MatchmakingDemoTopology`):
  the room is named by the URL path, for example `/my_game`. The optional
  `?next=N` query parameter groups peers into matches of `N` players as they
  arrive.

## Installation

```
pip install signalhub
```

Python 3.10 or later is required.

## Running the matchmaking server

```
signalhub-matchmaking
signalhub-matchmaking 127.0.0.1:4000
HOST=127.0.0.1:4000 signalhub-matchmaking
```

The listening address is `ip:port`, with IPv6 addresses in brackets
(`[::1]:4000`). If no address is given it is taken from the `HOST`
environment variable and, failing that, defaults to `0.0.0.0:3536`.
Permissive CORS headers are added to responses and each finished request is
logged with its latency. `GET /health` answers `200 OK`, which is useful for
load balancers and container health checks.

Clients connect with a WebSocket to a room, for example:

```
ws://localhost:3536/my_game?next=2
```

A room is the pair of path and `next` value. Peers that ask for the same
path and the same `next` are matched in groups of that size: each newcomer
is announced to the peers already waiting, and once the group is full the
room starts empty again for the next arrivals. Peers that give the same path
without `next` (or with a value that is not a non-negative whole number)
share one open room that never fills up. A peer that leaves is announced to
the peers still in its room.

## Running a full-mesh or client-server server

```
signalhub-serve full_mesh
signalhub-serve client_server --addr 127.0.0.1:4000
```

The topology argument is `full_mesh` or `client_server`. `--addr` sets the
listening address, by default `0.0.0.0:3536`. The server accepts every
connection, logs connections and lifecycle events at debug level, adds
permissive CORS headers and logs each finished request.

## Using it as a library

Build a server with one of the builders, attach the lifecycle callbacks you
need, and serve it:

```python
import asyncio

from signalhub.server import SignalingServer


async def run() -> None:
    server = (
        SignalingServer.full_mesh_builder(("0.0.0.0", 3536))
        .on_connection_request(lambda meta: True)  # allow everyone
        .on_id_assignment(lambda pair: print(f"{pair[0]} received {pair[1]}"))
        .on_peer_connected(lambda peer: print(f"joined: {peer}"))
        .on_peer_disconnected(lambda peer: print(f"left: {peer}"))
        .cors()
        .trace()
        .build()
    )
    await server.serve()


asyncio.run(run())
```

Addresses may be given as a `(host, port)` tuple or as a `"host:port"`
string.

`SignalingServer.client_server_builder` works the same way and offers
`on_host_connected`, `on_host_disconnected`, `on_client_connected` and
`on_client_disconnected` instead of the peer callbacks. Setting a callback
that the builder's topology does not have raises `TypeError`.

The connection-request callback receives a
`signalhub.common.WsUpgradeMeta` with the client's `origin`, the URL `path`,
its `query_params` and `headers`. It returns `True` to allow the upgrade,
`False` to refuse it with `401 Unauthorized`, or an aiohttp response to send
back as is. The id-assignment callback receives an `(origin, peer_id)` pair.

`mutate_router` hands you the underlying `aiohttp.web.Application` to add
routes or middleware; the callback must return the application.

`bind()` binds the socket and returns the actual `(host, port)`, which is
handy when binding to port `0` in tests; `local_addr()` returns it later, or
`None` before binding. `serve()` binds first if needed and then serves until
it is cancelled. Failing to bind raises `signalhub.errors.BindError`;
failing to start serving raises `signalhub.errors.ServeError`.

The matchmaking server is available the same way:
`signalhub.matchmaking.topology.matchmaking_builder(addr)` returns a builder
already wired to a fresh `signalhub.matchmaking.state.ServerState`, and
`signalhub.matchmaking.cli.build_app_server(addr)` returns the server the
command runs, `/health` route included.

Your own topology is a subclass of `signalhub.common.SignalingTopology`
with an async `state_machine(meta)` method, passed to
`signalhub.server.SignalingServerBuilder` together with its state and
callbacks objects.

## Protocol

All messages are JSON text frames. Other frame types and malformed JSON are
logged and ignored.

Events from the server to a peer:

```json
{"IdAssigned": "<uuid>"}
{"NewPeer": "<uuid>"}
{"PeerLeft": "<uuid>"}
{"Signal": {"sender": "<uuid>", "data": <any JSON>}}
```

`IdAssigned` is always the first message a peer receives.

Requests from a peer to the server:

```json
{"Signal": {"receiver": "<uuid>", "data": <any JSON>}}
"KeepAlive"
```

`KeepAlive` does nothing except keep idle connections open through proxies
that would otherwise close them. The `signalhub.protocol` module offers
typed classes for every message (`SignalRequest`, `KeepAlive`,
`IdAssigned`, `NewPeer`, `PeerLeft`, `SignalEvent`), each with `to_json()`,
together with `request_from_json` and `event_from_json` for parsing; these
raise `ValueError` on malformed input.

## What it does not do

signalhub is only the signaling server. It has no client: it does not open
WebRTC peer connections or data channels, so your clients must speak the
protocol above themselves. It serves plain `ws://` only; put it behind a
TLS-terminating proxy for `wss://`. All state is kept in memory and is lost
when the server stops.

## Running the tests

```
pip install "signalhub[test]"
pytest
```