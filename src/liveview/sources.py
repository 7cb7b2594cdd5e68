"""Sources a live view can render from: a file on disk or an open document."""

from __future__ import annotations

import os
from typing import Callable

from liveview.stream import EventStream
from liveview.watch import WatchHandle, watch_file


class SourceError(RuntimeError):
    """A source could not be located or read."""


class FileSource:
    """A file on disk, watched for changes.

    on_did_change emits the path. Pass marshal= to deliver it on another
    thread (e.g. app.call_from_thread); otherwise it fires on the observer
    thread. watch=False skips the observer entirely.
    """

    def __init__(
        self,
        path: str,
        *,
        marshal: Callable[[Callable[[], None]], None] | None = None,
        watch: bool = True,
    ) -> None:
        self.path = path
        self.on_did_change: EventStream[str] = EventStream("did-change")
        self._marshal = marshal
        self._handle: WatchHandle | None = (
            watch_file(path, self._changed) if watch else None
        )

    @property
    def basename(self) -> str:
        return os.path.basename(self.path)

    def read(self) -> str:
        try:
            with open(self.path, encoding="utf-8") as fh:
                return fh.read()
        except OSError as exc:
            raise SourceError(f"Unable to load {self.basename}") from exc

    def _changed(self, path: str) -> None:
        if self._marshal is not None:
            self._marshal(lambda: self.on_did_change.emit(path))
        else:
            self.on_did_change.emit(path)

    def dispose(self) -> None:
        if self._handle is not None:
            self._handle.dispose()
            self._handle = None
        self.on_did_change.dispose()

    def __repr__(self) -> str:
        return f"FileSource({self.path!r})"


class DocumentSource:
    """An in-memory document, such as an editor buffer.

    Edits and saves emit on_did_change; moving the document emits
    on_did_change_path; destroy() emits on_did_destroy.
    """

    _ids = 0

    def __init__(self, text: str = "", *, path: str | None = None, title: str = "untitled") -> None:
        DocumentSource._ids += 1
        self.id = DocumentSource._ids
        self.path = path
        self._text = text
        self._title = title
        self.on_did_change: EventStream[DocumentSource] = EventStream("did-change")
        self.on_did_change_path: EventStream[str | None] = EventStream("did-change-path")
        self.on_did_destroy: EventStream[DocumentSource] = EventStream("did-destroy")
        self.destroyed = False

    @property
    def title(self) -> str:
        return os.path.basename(self.path) if self.path else self._title

    def read(self) -> str:
        if self.destroyed:
            raise SourceError(f"Document {self.title} has been closed")
        return self._text

    def set_text(self, text: str) -> None:
        if text == self._text:
            return
        self._text = text
        self.on_did_change.emit(self)

    def save(self, path: str | None = None) -> None:
        if path is not None and path != self.path:
            self.set_path(path)
        if self.path is None:
            raise SourceError("Document has no path to save to")
        with open(self.path, "w", encoding="utf-8") as fh:
            fh.write(self._text)
        self.on_did_change.emit(self)

    def set_path(self, path: str | None) -> None:
        self.path = path
        self.on_did_change_path.emit(path)

    def destroy(self) -> None:
        if self.destroyed:
            return
        self.destroyed = True
        self.on_did_destroy.emit(self)
        for stream in (self.on_did_change, self.on_did_change_path, self.on_did_destroy):
            stream.dispose()

    def __repr__(self) -> str:
        return f"DocumentSource({self.id}, {self.title!r})"
