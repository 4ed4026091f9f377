from __future__ import annotations
"""Minimal change notification used by the state holders."""
import threading
from typing import Callable

Listener = Callable[[str], None]


class Signal:
    """Broadcasts the name of a changed field to connected listeners."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    def connect(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def disconnect() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return disconnect

    def emit(self, name: str) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(name)

    def emit_all(self, names) -> None:
        for name in dict.fromkeys(names):
            self.emit(name)
