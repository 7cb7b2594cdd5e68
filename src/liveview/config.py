"""ConfigStore — in-memory key/value configuration that can be observed.

This is the host side of the key-observation contract: it hands out one
Subscription per observe() call, notifies handlers whenever a key's value
changes, and forwards deferred work to a scheduler.

Mutations inside `with store.transaction()` (or update()) are collected and
notified once, when the outermost scope exits.

Thread safety: pass marshal= (e.g. app.call_from_thread) to have set() calls
from other threads re-dispatched onto the thread that created the store.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterator

from liveview.scheduling import Scheduler, asyncio_scheduler

logger = logging.getLogger("liveview.config")

Handler = Callable[[object], None]

_MISSING = object()


class Subscription:
    """Handle returned by ConfigStore.observe(). Cancelling is idempotent."""

    __slots__ = ("key", "_handler", "_store")

    def __init__(self, store: ConfigStore, key: str, handler: Handler) -> None:
        self.key = key
        self._handler = handler
        self._store = store

    @property
    def active(self) -> bool:
        return self._store is not None

    def dispose(self) -> None:
        store, self._store = self._store, None
        if store is None:
            return
        subs = store._observers.get(self.key)
        if subs is not None:
            subs.discard(self)
            if not subs:
                del store._observers[self.key]

    def _deliver(self, value: object) -> None:
        if self._store is not None:
            self._handler(value)

    def __repr__(self) -> str:
        state = "active" if self.active else "cancelled"
        return f"Subscription({self.key!r}, {state})"


class ConfigStore:
    """Observable configuration values keyed by name.

    Usage:
        config = ConfigStore({"editor.fontSize": 14})
        sub = config.observe("editor.fontSize", print)   # prints 14
        config.set("editor.fontSize", 16)                 # prints 16
        config.cancel(sub)
    """

    def __init__(
        self,
        values: dict[str, object] | None = None,
        *,
        scheduler: Scheduler | None = None,
        marshal: Callable[[Callable[[], None]], None] | None = None,
        notify_on_observe: bool = True,
    ) -> None:
        self._values: dict[str, object] = dict(values) if values else {}
        self._observers: dict[str, set[Subscription]] = {}
        self._scheduler = scheduler if scheduler is not None else asyncio_scheduler()
        self._marshal = marshal
        self._owner_thread = threading.current_thread()
        self._batch_depth = 0
        self._changed: dict[str, None] = {}
        self.notify_on_observe = notify_on_observe

    # --- Reads ---

    def get(self, key: str, default: object = None) -> object:
        return self._values.get(key, default)

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def keys(self) -> list[str]:
        return list(self._values)

    # --- Writes ---

    def set(self, key: str, value: object) -> None:
        """Write a value. Observers are notified only if it changed."""
        if self._marshal is not None and threading.current_thread() is not self._owner_thread:
            self._marshal(lambda: self._write(key, value))
        else:
            self._write(key, value)

    def unset(self, key: str) -> None:
        """Remove a key. Observers see None."""
        self.set(key, _MISSING)

    def update(self, values: dict[str, object]) -> None:
        with self.transaction():
            for key, value in values.items():
                self.set(key, value)

    @contextmanager
    def transaction(self) -> Iterator[ConfigStore]:
        """Batch notifications until the outermost transaction exits."""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0:
                self._flush()

    def _write(self, key: str, value: object) -> None:
        old = self._values.get(key, _MISSING)
        if old is value or (old is not _MISSING and value is not _MISSING and old == value):
            return
        if value is _MISSING:
            del self._values[key]
        else:
            self._values[key] = value
        if self._batch_depth > 0:
            self._changed[key] = None
        else:
            self._notify(key)

    def _flush(self) -> None:
        # Handlers may write again; those writes notify directly.
        changed = list(self._changed)
        self._changed.clear()
        for key in changed:
            self._notify(key)

    def _notify(self, key: str) -> None:
        value = self._values.get(key)
        for sub in list(self._observers.get(key, ())):
            sub._deliver(value)

    # --- Host contract ---

    def observe(self, key: str, handler: Handler) -> Subscription:
        """Call handler with key's value now (if notify_on_observe) and on every change."""
        sub = Subscription(self, key, handler)
        self._observers.setdefault(key, set()).add(sub)
        logger.debug("Observing %r (%d handlers)", key, len(self._observers[key]))
        if self.notify_on_observe:
            sub._deliver(self._values.get(key))
        return sub

    def cancel(self, subscription: Subscription) -> None:
        subscription.dispose()

    def schedule_deferred(self, fn: Callable[[], None]) -> None:
        self._scheduler(fn)

    def observer_count(self, key: str | None = None) -> int:
        """Live subscriptions for key, or across all keys."""
        if key is not None:
            return len(self._observers.get(key, ()))
        return sum(len(subs) for subs in self._observers.values())

    def observed_keys(self) -> list[str]:
        """Keys with at least one live subscription."""
        return list(self._observers)

    def __repr__(self) -> str:
        return f"ConfigStore({self._values!r})"
