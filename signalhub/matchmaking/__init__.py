"""Room-based matchmaking signaling server and its command line entry point."""

__version__ = "0.1.0"