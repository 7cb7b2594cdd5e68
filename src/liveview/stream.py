"""Push-based event stream used for named signals.

Views and lifecycles expose their notifications ("render started",
"title changed", ...) as EventStreams. Listeners subscribe and get back a
function that removes them; dispose() drops every listener.
"""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

T = TypeVar("T")

Disposer = Callable[[], None]


class EventStream(Generic[T]):
    """Named push-based signal."""

    def __init__(self, name: str | None = None) -> None:
        self.name = name
        self._subscribers: list[Callable[[T], None]] = []
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def emit(self, value: T = None) -> None:
        """Push a value to all subscribers."""
        if self._disposed:
            return
        # Snapshot: listeners may unsubscribe while being notified.
        for cb in list(self._subscribers):
            cb(value)

    def subscribe(self, callback: Callable[[T], None]) -> Disposer:
        """Register a callback. Returns a function that removes it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass  # already removed

        return _unsubscribe

    def dispose(self) -> None:
        """Drop every subscriber; later emits are ignored."""
        self._disposed = True
        self._subscribers.clear()

    def __repr__(self) -> str:
        label = self.name or "anonymous"
        return f"EventStream({label}, {len(self._subscribers)} subscribers)"
