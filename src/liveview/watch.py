"""watch_file() — follow a single file with a watchdog Observer.

The change callback runs on the observer thread; callers that touch UI or
config state hand it a marshal function (see FileSource).
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Callable

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

logger = logging.getLogger("liveview.watch")

_CHANGE_EVENTS = {EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED}


class WatchHandle:
    """Disposable handle for a running Observer."""

    __slots__ = ("_observer", "_disposed")

    def __init__(self, observer):
        self._observer = observer
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Stop the observer. Safe to call from its own callbacks."""
        if self._disposed:
            return
        self._disposed = True
        self._observer.stop()
        if threading.current_thread() is not self._observer:
            self._observer.join(timeout=1)


class _FileHandler(FileSystemEventHandler):
    """Forwards events touching one path; the rest of the directory is ignored."""

    def __init__(self, path: str, on_change: Callable[[str], None]) -> None:
        self.path = path
        self.on_change = on_change

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _CHANGE_EVENTS:
            return
        paths = {os.path.abspath(os.fsdecode(event.src_path))}
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.add(os.path.abspath(os.fsdecode(dest)))
        if self.path not in paths:
            return
        logger.debug("%s event for %s", event.event_type, self.path)
        try:
            self.on_change(self.path)
        except Exception:
            logger.exception("File change handler failed for %s", self.path)


def watch_file(path: str, on_change: Callable[[str], None]) -> WatchHandle:
    """Call on_change(path) whenever path is modified, created, removed or moved.

    Usage:
        handle = watch_file("notes.md", print)
        ...
        handle.dispose()
    """
    target = os.path.abspath(path)
    observer = Observer()
    observer.daemon = True
    observer.schedule(_FileHandler(target, on_change), os.path.dirname(target), recursive=False)
    observer.start()
    return WatchHandle(observer)
