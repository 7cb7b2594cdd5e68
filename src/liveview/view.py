"""LiveView — a preview pane that redraws when its source or config changes.

A LiveView renders either a file on disk or an open document. It wires the
source's change signals and its observed config keys into a
LiveViewLifecycle, so redraws only happen while the pane is visible.

Subclasses override render() and usually set protocol_name / icon_name:

    class MarkdownPreview(LiveView):
        protocol_name = "markdown-preview"

        async def render(self):
            self.html = to_html(self.get_source())

Host integration lives behind the Workspace protocol.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Callable, Protocol
from urllib.parse import quote, unquote

from liveview.disposables import MappedDisposable
from liveview.keys import KeyHost
from liveview.lifecycle import LiveViewLifecycle
from liveview.sources import DocumentSource, FileSource, SourceError
from liveview.stream import EventStream

logger = logging.getLogger("liveview.view")

_WORD_BOUNDARY = re.compile(r"([a-z]+)([A-Z])")


def _slugify(name: str) -> str:
    return _WORD_BOUNDARY.sub(r"\1-\2", name).lower()


class Workspace(Protocol):
    """The window/pane environment a LiveView lives in."""

    def is_item_visible(self, item: object) -> bool: ...

    def activate_item(self, item: object) -> None: ...

    def document_for_id(self, document_id: str) -> DocumentSource | None: ...


class LiveView:
    """Live-updating preview of a file or document."""

    protocol_name = "live-view"
    icon_name = "device-desktop"
    slug = "live-view"

    def __init_subclass__(cls, **kwargs) -> None:
        super().__init_subclass__(**kwargs)
        if "slug" not in cls.__dict__:
            cls.slug = _slugify(cls.__name__)

    def __init__(
        self,
        host: KeyHost,
        workspace: Workspace,
        state: dict | None = None,
        *,
        marshal: Callable[[Callable[[], None]], None] | None = None,
        watch: bool = True,
    ) -> None:
        state = state or {}
        self.host = host
        self.workspace = workspace
        self.auto_refresh = True
        self.editor_id = state.get("editor_id")
        self.file_path = state.get("file_path")
        self.offsets = state.get("offsets")
        self.cached_title = state.get("title")
        self.scroll = (0, 0)
        self.file: FileSource | None = None
        self.document: DocumentSource | None = None
        self.destroyed = False
        # File events arrive on the observer thread; without a marshal they
        # wait for the host's next turn.
        self._marshal = marshal if marshal is not None else host.schedule_deferred
        self._watch = watch

        self.subscriptions = MappedDisposable()
        self.on_did_change_title: EventStream[LiveView] = EventStream("did-change-title")
        self.on_did_destroy: EventStream[LiveView] = EventStream("did-destroy")
        self.lifecycle = LiveViewLifecycle(
            host, self.render, self.is_visible, after_render=self.restore_offsets
        )

        document = workspace.document_for_id(str(self.editor_id)) if self.editor_id else None
        if document is not None:
            self._attach_document(document)
        elif self.file_path:
            self.watch_file(self.file_path)

    # --- Construction from URIs and sessions ---

    @classmethod
    def deserialize(cls, params: dict, host: KeyHost, workspace: Workspace, **kwargs) -> LiveView:
        """Restore a view saved by serialize()."""
        state = {k: v for k, v in params.items() if k != "deserializer"}
        return cls(host, workspace, state, **kwargs)

    @classmethod
    def create_view(cls, state: dict, host: KeyHost, workspace: Workspace, **kwargs) -> LiveView | None:
        """Build a view if state points at a document or an existing file."""
        path = state.get("file_path")
        if state.get("editor_id") or (path and os.path.isfile(path)):
            return cls(host, workspace, state, **kwargs)
        return None

    @classmethod
    def opener(cls, uri: str, host: KeyHost, workspace: Workspace, **kwargs) -> LiveView | None:
        """Open a view for one of this class's URIs; None for foreign URIs."""
        protocol, sep, rest = uri.partition("://")
        if not sep or protocol != cls.protocol_name:
            return None
        target = unquote(rest)
        if target.startswith("source:editor@"):
            state = {"editor_id": target[len("source:editor@"):]}
        else:
            state = {"file_path": re.sub(r"^source:file@", "", target, flags=re.IGNORECASE)}
        return cls.create_view(state, host, workspace, **kwargs)

    @classmethod
    def uri_for_document(cls, document: DocumentSource) -> str:
        return f"{cls.protocol_name}://source:editor@{document.id}"

    def serialize(self, **extra) -> dict:
        return {
            "deserializer": type(self).__name__,
            "file_path": self.file_path,
            "editor_id": self.editor_id,
            "offsets": list(self.scroll),
            "title": self.title,
            **extra,
        }

    # --- Derived properties ---

    @property
    def path(self) -> str | None:
        if self.file is not None:
            return self.file.path
        if self.document is not None:
            return self.document.path
        return self.file_path

    @property
    def title(self) -> str:
        if self.file is not None and self.path:
            return f"{os.path.basename(self.path)} preview"
        if self.document is not None:
            return f"{self.document.title} preview"
        return self.cached_title or "Preview"

    @property
    def uri(self) -> str:
        if self.file is not None:
            return f"{self.protocol_name}://source:file@{quote(self.path)}"
        return f"{self.protocol_name}://source:editor@{self.editor_id}"

    # --- Sources ---

    def watch_file(self, path: str) -> None:
        """Switch to rendering the file at path."""
        if self.file is not None:
            self.subscriptions.dispose("file")
        self.file = FileSource(path, marshal=self._marshal, watch=self._watch)
        self.file_path = path
        self.on_did_change_title.emit(self)
        self.subscriptions.add(
            "file", self.file.on_did_change.subscribe(self._source_changed), self.file
        )
        self.host.schedule_deferred(self.request_render)

    def _attach_document(self, document: DocumentSource) -> None:
        self.document = document
        self.on_did_change_title.emit(self)
        self.subscriptions.add(
            "document",
            document.on_did_change.subscribe(self._source_changed),
            document.on_did_change_path.subscribe(lambda _path: self.on_did_change_title.emit(self)),
            document.on_did_destroy.subscribe(self._document_destroyed),
        )
        self.host.schedule_deferred(self.request_render)

    def _document_destroyed(self, document: DocumentSource) -> None:
        path = document.path
        self.subscriptions.dispose("document")
        self.document = None
        if path:
            logger.info("Document %s closed, following %s", document.id, path)
            self.watch_file(path)
        else:
            self.on_did_change_title.emit(self)

    def _source_changed(self, _value=None) -> None:
        if not self.auto_refresh or self.destroyed:
            return
        self.request_render()
        if not self.is_visible():
            self.workspace.activate_item(self)

    def get_source(self) -> str:
        if self.file is not None:
            return self.file.read()
        if self.document is not None:
            return self.document.read()
        raise SourceError("Unable to locate source")

    # --- Rendering ---

    def render(self):
        """Redraw the view. Subclasses override; may be async."""

    def request_render(self):
        if self.destroyed:
            return None
        return self.lifecycle.handle_render_request()

    def is_visible(self) -> bool:
        return self.workspace.is_item_visible(self)

    def on_visibility_regained(self):
        """Called by the workspace when this view becomes the active item."""
        return self.lifecycle.on_visibility_regained()

    def restore_offsets(self) -> None:
        """Apply scroll offsets saved by the last session, once."""
        if isinstance(self.offsets, (list, tuple)) and len(self.offsets) >= 2:
            self.scroll = (_to_int(self.offsets[0]), _to_int(self.offsets[1]))
        self.offsets = None

    @property
    def observed_keys(self):
        return self.lifecycle.observed_keys

    def observe_config(self, *keys) -> None:
        """Redraw whenever any of these config keys change."""
        self.lifecycle.observed_keys.add(*keys)

    def unobserve_config(self, *keys) -> None:
        self.lifecycle.observed_keys.delete(*keys)

    def destroy(self) -> None:
        """Release everything when the view is closed."""
        if self.destroyed:
            return
        self.destroyed = True
        self.lifecycle.dispose()
        self.on_did_destroy.emit(self)
        self.on_did_destroy.dispose()
        self.on_did_change_title.dispose()
        self.subscriptions.dispose()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.title!r}, {self.lifecycle.render_state.value})"


def _to_int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
