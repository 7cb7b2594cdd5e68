"""Disposables — idempotent cleanup handles, optionally grouped by key.

A Disposable wraps a single teardown function. MappedDisposable groups
disposables under string keys so a whole group can be released at once,
which is how KeyObserverSet tracks one subscription per observed key.
"""

from __future__ import annotations

from typing import Callable, Iterator


class Disposable:
    """Runs its teardown function at most once."""

    __slots__ = ("_fn", "_disposed")

    def __init__(self, fn: Callable[[], None] | None = None) -> None:
        self._fn = fn
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        fn, self._fn = self._fn, None
        if fn is not None:
            fn()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        return f"Disposable({state})"


def _release(item) -> None:
    # Plain unsubscribe callables (EventStream.subscribe) are accepted too.
    if hasattr(item, "dispose"):
        item.dispose()
    else:
        item()


class MappedDisposable:
    """Disposables grouped by key.

    Usage:
        subs = MappedDisposable()
        subs.add("editor.fontSize", handle)
        subs.dispose("editor.fontSize")   # release one group
        subs.dispose()                    # release everything
    """

    def __init__(self) -> None:
        self._groups: dict[object, list] = {}
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def add(self, key, *disposables) -> None:
        """File disposables under key. Adding to a disposed map releases them at once."""
        if self._disposed:
            for d in disposables:
                _release(d)
            return
        self._groups.setdefault(key, []).extend(disposables)

    def dispose(self, *keys) -> None:
        """Dispose the named groups, or every group when called without keys."""
        if not keys:
            self._disposed = True
            keys = tuple(self._groups)
        for key in keys:
            for d in self._groups.pop(key, ()):
                _release(d)

    def has(self, key) -> bool:
        return key in self._groups

    def __contains__(self, key) -> bool:
        return key in self._groups

    def __len__(self) -> int:
        return len(self._groups)

    def __iter__(self) -> Iterator:
        return iter(list(self._groups))

    def __repr__(self) -> str:
        return f"MappedDisposable({list(self._groups)!r})"
