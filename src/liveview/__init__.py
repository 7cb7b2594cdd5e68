"""liveview: coalesced config-key observation and live-redrawing views."""

from importlib.metadata import version as _version

__version__ = _version("liveview")

from liveview.config import ConfigStore, Subscription
from liveview.disposables import Disposable, MappedDisposable
from liveview.keys import KeyHost, KeyObserverSet, DispatchState, current_observer, normalise_keys
from liveview.lifecycle import LiveViewLifecycle, RenderState
from liveview.scheduling import TickScheduler, asyncio_scheduler
from liveview.sources import DocumentSource, FileSource, SourceError
from liveview.stream import EventStream
from liveview.view import LiveView, Workspace
from liveview.watch import watch_file, WatchHandle
# textual bridge NOT auto-imported — opt-in only

__all__ = [
    "ConfigStore",
    "Subscription",
    "Disposable",
    "MappedDisposable",
    "KeyHost",
    "KeyObserverSet",
    "DispatchState",
    "current_observer",
    "normalise_keys",
    "LiveViewLifecycle",
    "RenderState",
    "TickScheduler",
    "asyncio_scheduler",
    "DocumentSource",
    "FileSource",
    "SourceError",
    "EventStream",
    "LiveView",
    "Workspace",
    "watch_file",
    "WatchHandle",
]
