"""WebSocket signaling server for peer-to-peer WebRTC connections."""

__version__ = "0.1.0"