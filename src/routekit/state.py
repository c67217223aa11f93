"""
Shared state that outlives a single request.

Worker threads serve requests concurrently, so any value handlers share
must be guarded. NameStore is a single optional string behind a lock; the
sample's /hello handlers receive one instance when the router is built
instead of reaching for a module-level variable.
"""

from typing import Callable, Optional
import threading


class NameStore:
    """
    Thread-safe holder for one optional string.

        store = NameStore()
        store.get_or("World")      # "World"
        store.set("Alice")
        store.get_or("World")      # "Alice"
        store.clear()
    """

    def __init__(self, initial: Optional[str] = None):
        self._value = initial
        self._lock = threading.Lock()

    def get(self) -> Optional[str]:
        with self._lock:
            return self._value

    def get_or(self, default: str) -> str:
        with self._lock:
            return self._value if self._value is not None else default

    def set(self, value: Optional[str]) -> None:
        with self._lock:
            self._value = value

    def clear(self) -> None:
        self.set(None)

    def update(self, func: Callable[[Optional[str]], Optional[str]]) -> Optional[str]:
        """Atomically replace the value with func(current); returns the new value."""
        with self._lock:
            self._value = func(self._value)
            return self._value
