"""Callback wrappers used for server lifecycle events."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable


class Callback:
    """A shareable, serialised wrapper around a callable."""

    def __init__(self, func: Callable[[Any], Any]) -> None:
        self._func = func
        self._lock = threading.RLock()

    def emit(self, value: Any) -> Any:
        """Call the wrapped function with ``value`` and return its result."""
        with self._lock:
            return self._func(value)

    @classmethod
    def noop(cls) -> Callback:
        """A callback that does nothing."""
        return cls(lambda _value: None)

    def __repr__(self) -> str:
        return "Callback<_>"


@dataclass
class SharedCallbacks:
    """Callbacks common to every topology.

    ``on_connection_request`` returns True to allow the connection, False to
    refuse it, or a ready response to send back instead of upgrading. By
    default every connection is allowed.
    """

    on_connection_request: Callback = field(
        default_factory=lambda: Callback(lambda _meta: True)
    )
    on_id_assignment: Callback = field(default_factory=Callback.noop)