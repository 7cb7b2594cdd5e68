"""Textual integration for liveview. Opt-in — requires textual.

Bridges the pieces that need an application loop: deferred scheduling for
KeyObserverSet, widget visibility for LiveViewLifecycle, and render guards
that stay quiet while the widget tree is being swapped out.
"""

import inspect
import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

# Module-owned pause state — keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend guarded renders during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def scheduler(app):
    """Deferred scheduler backed by app.call_later.

    Calls from other threads are marshalled with call_from_thread first.
    Use it as the scheduler= of a ConfigStore.
    """
    _main = threading.get_ident()

    def schedule(fn):
        if threading.get_ident() != _main:
            app.call_from_thread(app.call_later, fn)
        else:
            app.call_later(fn)

    return schedule


def marshal(app):
    """Run callbacks on the app thread; direct call when already there."""
    _main = threading.get_ident()

    def run(fn):
        if threading.get_ident() != _main:
            app.call_from_thread(fn)
        else:
            fn()

    return run


def widget_visibility(widget):
    """is_visible predicate for a LiveViewLifecycle rendering into widget."""

    def is_visible() -> bool:
        return bool(widget.is_mounted and widget.display and widget.visible)

    return is_visible


def guarded_render(app, render):
    """Wrap a render procedure so it skips while unsafe and ignores NoMatches.

    Works with plain and async render functions.
    """

    async def _await(result):
        try:
            await result
        except NoMatches:
            pass

    def _guarded():
        if not is_safe(app):
            return None
        try:
            result = render()
        except NoMatches:
            return None
        if inspect.isawaitable(result):
            return _await(result)
        return result

    return _guarded
