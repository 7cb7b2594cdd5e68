"""LiveViewLifecycle — decides when a live view is allowed to redraw.

Render requests come from the view's KeyObserverSet (one per burst of
config changes) or directly from the view (source changed, first load).
A request only renders while the view is visible; otherwise it is parked
as `pending` and flushed by on_visibility_regained().

    none/finished --request, visible--> rendering --done--> finished
    none/finished --request, hidden---> pending --visible again--> none -> (request)

Requests arriving while `rendering` or `pending` are swallowed. A failing
render still ends in `finished`, so the lifecycle never wedges.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import logging
from typing import Awaitable, Callable

from liveview.keys import KeyHost, KeyObserverSet
from liveview.stream import EventStream

logger = logging.getLogger("liveview.lifecycle")

RenderFn = Callable[[], "Awaitable[None] | None"]


class RenderState(str, enum.Enum):
    NONE = "none"
    RENDERING = "rendering"
    PENDING = "pending"
    FINISHED = "finished"


class LiveViewLifecycle:
    """Render gate for a single view.

    render may be a plain function or return an awaitable; awaitable renders
    run as an asyncio task, which handle_render_request() returns.

    Signals (each emits the lifecycle itself):
        on_render_started, on_render_finished, on_render_queued
    """

    def __init__(
        self,
        host: KeyHost,
        render: RenderFn,
        is_visible: Callable[[], bool],
        *keys,
        after_render: Callable[[], None] | None = None,
    ) -> None:
        self._render = render
        self._is_visible = is_visible
        self._after_render = after_render
        self.render_state = RenderState.NONE
        self.on_render_started: EventStream[LiveViewLifecycle] = EventStream("render-started")
        self.on_render_finished: EventStream[LiveViewLifecycle] = EventStream("render-finished")
        self.on_render_queued: EventStream[LiveViewLifecycle] = EventStream("render-queued")
        self.observed_keys = KeyObserverSet(host, self.handle_render_request, *keys)

    def handle_render_request(self) -> asyncio.Task | None:
        """Render now if visible, otherwise queue one render for later."""
        if self.render_state in (RenderState.RENDERING, RenderState.PENDING):
            return None

        if not self._is_visible():
            self.render_state = RenderState.PENDING
            self.on_render_queued.emit(self)
            return None

        self.render_state = RenderState.RENDERING
        self.on_render_started.emit(self)
        try:
            result = self._render()
        except Exception:
            logger.exception("Render failed")
            self._finish(succeeded=False)
            raise

        if not inspect.isawaitable(result):
            self._finish(succeeded=True)
            return None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(result):
                result.close()
            self._finish(succeeded=False)
            raise RuntimeError("Asynchronous render needs a running event loop") from None
        return loop.create_task(self._complete(result))

    def on_visibility_regained(self) -> asyncio.Task | None:
        """Flush a parked render request, if there is one."""
        if self.render_state is not RenderState.PENDING:
            return None
        self.render_state = RenderState.NONE
        return self.handle_render_request()

    async def _complete(self, pending: Awaitable[None]) -> None:
        succeeded = False
        try:
            await pending
            succeeded = True
        except Exception:
            logger.exception("Render failed")
            raise
        finally:
            self._finish(succeeded=succeeded)

    def _finish(self, *, succeeded: bool) -> None:
        self.render_state = RenderState.FINISHED
        self.on_render_finished.emit(self)
        if succeeded and self._after_render is not None:
            self._after_render()

    def dispose(self) -> None:
        """Release observed keys and signal listeners."""
        self.observed_keys.clear()
        self.observed_keys.callback = None
        for stream in (self.on_render_started, self.on_render_finished, self.on_render_queued):
            stream.dispose()

    def __repr__(self) -> str:
        return f"LiveViewLifecycle({self.render_state.value}, keys={list(self.observed_keys)!r})"
