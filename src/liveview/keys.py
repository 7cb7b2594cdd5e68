"""KeyObserverSet — watch many config keys, get one callback per burst.

Each key in the set holds exactly one subscription on the host. Whenever any
observed key changes, a single dispatch is scheduled for the next turn;
further changes before that dispatch runs are absorbed. Dispatch resets the
state before calling the callback, so a change made from inside the callback
opens a new window.

The host is injected (see KeyHost), never looked up globally.
"""

from __future__ import annotations

import contextvars
import enum
import numbers
from typing import Callable, Iterator, Protocol

from liveview.disposables import Disposable, MappedDisposable

# The set whose callback is currently running.
_current_observer: contextvars.ContextVar[KeyObserverSet | None] = contextvars.ContextVar(
    "current_observer", default=None
)


class KeyHost(Protocol):
    """What KeyObserverSet needs from its environment."""

    def observe(self, key: str, handler: Callable[..., None]) -> object: ...

    def cancel(self, handle: object) -> None: ...

    def schedule_deferred(self, fn: Callable[[], None]) -> None: ...


class DispatchState(enum.Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"


def current_observer() -> KeyObserverSet | None:
    """The KeyObserverSet dispatching right now, or None outside a callback."""
    return _current_observer.get()


def normalise_keys(value, _seen: dict[int, object] | None = None) -> list[str]:
    """Flatten strings and (nested) iterables of strings into key names.

    Strings are split on whitespace. None and blank strings vanish, numbers
    are coerced with str(), and a collection that contains itself is only
    walked once.

        >>> normalise_keys(["a b", ["c", ("d",)], " e  "])
        ['a', 'b', 'c', 'd', 'e']
    """
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    if isinstance(value, numbers.Number):
        return str(value).split()
    # Visited objects stay referenced so a freed generator's id is never reused.
    seen = _seen if _seen is not None else {}
    if id(value) in seen:
        return []
    try:
        items = iter(value)
    except TypeError:
        raise TypeError(f"{type(value).__name__!r} object is not iterable") from None
    seen[id(value)] = value
    keys: list[str] = []
    for item in items:
        keys.extend(normalise_keys(item, seen))
    return keys


def _check_callback(callback) -> None:
    if callback is not None and not callable(callback):
        raise TypeError("Callback argument is not a function")


class KeyObserverSet:
    """A set of observed keys sharing one coalesced callback.

    Usage:
        keys = KeyObserverSet(config, redraw, "editor.fontSize editor.tabLength")
        keys.add(["markdown.theme"])
        config.set("editor.fontSize", 16)
        config.set("markdown.theme", "dark")
        # ... next turn: redraw() runs once
    """

    def __init__(self, host: KeyHost, callback: Callable[[], None] | None = None, *keys) -> None:
        _check_callback(callback)
        self._host = host
        self._callback = callback
        self._keys: dict[str, None] = {}
        self._state = DispatchState.IDLE
        self.disposables = MappedDisposable()
        if keys:
            self.add(*keys)

    # --- Callback ---

    @property
    def callback(self) -> Callable[[], None] | None:
        return self._callback

    @callback.setter
    def callback(self, fn: Callable[[], None] | None) -> None:
        _check_callback(fn)
        self._callback = fn

    @property
    def state(self) -> DispatchState:
        return self._state

    # --- Membership ---

    def add(self, *keys) -> KeyObserverSet:
        """Observe keys. Keys already present are left alone.

        Keys are added one at a time: if a later argument is invalid, the
        earlier ones stay observed.
        """
        seen: dict[int, object] = {}
        for value in keys:
            for key in normalise_keys(value, seen):
                if key in self._keys:
                    continue
                handle = self._host.observe(key, self._on_change)
                self._keys[key] = None
                self.disposables.add(key, Disposable(lambda h=handle: self._host.cancel(h)))
        return self

    def delete(self, *keys) -> KeyObserverSet:
        """Stop observing keys. Absent keys are ignored."""
        seen: dict[int, object] = {}
        for value in keys:
            for key in normalise_keys(value, seen):
                self._keys.pop(key, None)
                self.disposables.dispose(key)
        return self

    def clear(self) -> None:
        """Drop every key and subscription. The callback is kept."""
        self._keys.clear()
        self.disposables.dispose()
        self.disposables = MappedDisposable()

    observe = add
    unobserve = delete

    def has(self, key: str) -> bool:
        return key in self._keys

    @property
    def size(self) -> int:
        return len(self._keys)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._keys))

    # --- Coalescing ---

    def _on_change(self, *_args) -> None:
        if self._state is DispatchState.SCHEDULED or self._callback is None:
            return
        self._state = DispatchState.SCHEDULED
        self._host.schedule_deferred(self._dispatch)

    def _dispatch(self) -> None:
        self._state = DispatchState.IDLE
        callback = self._callback
        if callback is None:
            return
        token = _current_observer.set(self)
        try:
            callback()
        finally:
            _current_observer.reset(token)

    def __repr__(self) -> str:
        return f"KeyObserverSet({list(self._keys)!r}, {self._state.value})"

