# src/core/worker.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from config.constants import PRECACHE_MANIFEST
from ..models.config import CacheVersionConfig
from ..models.events import (
    ActivateEvent,
    EventKind,
    EventOutcome,
    FetchEvent,
    InstallEvent,
    Notification,
    NotificationClickEvent,
    PeriodicSyncEvent,
    PushEvent,
    SyncEvent,
    WorkerEvent,
)
from ..models.exceptions import InstallException
from ..models.http import Request, Response
from .background import BackgroundTasks
from .cache_store import CacheStorage
from .host import ClientRegistry, NotificationCenter
from .lifecycle import CacheLifecycleManager
from .relay import NotificationRelay, SyncRelay
from .resolver import FetchResolver, OriginClass
from .strategies import CacheFirstStrategy, NetworkFirstStrategy

logger = logging.getLogger(__name__)

STRATEGY_TABLE = {
    OriginClass.SAME_ORIGIN: NetworkFirstStrategy,
    OriginClass.THIRD_PARTY: CacheFirstStrategy,
}


def build_strategies(config, storage, fetcher, background, table: Optional[Mapping] = None):
    return {
        origin_class: strategy_cls(config, storage, fetcher, background)
        for origin_class, strategy_cls in (table if table is not None else STRATEGY_TABLE).items()
    }


@dataclass
class WorkerContext:
    config: CacheVersionConfig
    storage: CacheStorage
    fetcher: object
    background: BackgroundTasks
    clients: ClientRegistry = field(default_factory=ClientRegistry)
    notifications: NotificationCenter = field(default_factory=NotificationCenter)
    manifest: Sequence[str] = field(default_factory=lambda: list(PRECACHE_MANIFEST))

    def __post_init__(self):
        self.lifecycle = CacheLifecycleManager(self.config, self.storage, self.fetcher, self.clients)
        self.resolver = FetchResolver(
            self.config, build_strategies(self.config, self.storage, self.fetcher, self.background)
        )
        self.notification_relay = NotificationRelay(self.config, self.notifications, self.clients)
        self.sync_relay = SyncRelay(self.config, self.fetcher, self.notifications, self.clients)


Handler = Callable[[WorkerEvent, WorkerContext], EventOutcome]


def handle_install(event: InstallEvent, ctx: WorkerContext) -> EventOutcome:
    manifest = event.manifest if event.manifest is not None else ctx.manifest
    try:
        result = ctx.lifecycle.install(manifest)
    except InstallException as e:
        logger.error(f"Install failed: {e}")
        return EventOutcome(EventKind.INSTALL, detail=dict(e.context), error=e.message)
    return EventOutcome(EventKind.INSTALL, detail=result.to_dict())


def handle_activate(event: ActivateEvent, ctx: WorkerContext) -> EventOutcome:
    result = ctx.lifecycle.activate()
    return EventOutcome(EventKind.ACTIVATE, detail=result.to_dict())


def handle_fetch(event: FetchEvent, ctx: WorkerContext) -> EventOutcome:
    response = ctx.resolver.resolve(event.request)
    return EventOutcome(EventKind.FETCH, handled=response is not None, response=response)


def handle_push(event: PushEvent, ctx: WorkerContext) -> EventOutcome:
    notification = ctx.notification_relay.on_push(event.data)
    return EventOutcome(
        EventKind.PUSH,
        detail={"notification_id": notification.id, "title": notification.title, "url": notification.data.get("url")},
    )


def handle_notification_click(event: NotificationClickEvent, ctx: WorkerContext) -> EventOutcome:
    client = ctx.notification_relay.on_click(event.notification)
    return EventOutcome(EventKind.NOTIFICATION_CLICK, detail={"client_id": client.id, "url": client.url})


def _handle_refresh(kind: EventKind, tag: str, expected: str, ctx: WorkerContext) -> EventOutcome:
    if tag != expected:
        return EventOutcome(kind, handled=False, detail={"tag": tag})
    refreshed = ctx.sync_relay.on_sync(tag)
    return EventOutcome(kind, detail={"tag": tag, "refreshed": refreshed})


def handle_sync(event: SyncEvent, ctx: WorkerContext) -> EventOutcome:
    return _handle_refresh(EventKind.SYNC, event.tag, ctx.config.refresh_sync_tag, ctx)


def handle_periodic_sync(event: PeriodicSyncEvent, ctx: WorkerContext) -> EventOutcome:
    return _handle_refresh(EventKind.PERIODIC_SYNC, event.tag, ctx.config.periodic_sync_tag, ctx)


DISPATCH_TABLE: Dict[EventKind, Handler] = {
    EventKind.INSTALL: handle_install,
    EventKind.ACTIVATE: handle_activate,
    EventKind.FETCH: handle_fetch,
    EventKind.PUSH: handle_push,
    EventKind.NOTIFICATION_CLICK: handle_notification_click,
    EventKind.SYNC: handle_sync,
    EventKind.PERIODIC_SYNC: handle_periodic_sync,
}


class ServiceWorker:
    def __init__(self, context: WorkerContext, handlers: Optional[Mapping[EventKind, Handler]] = None):
        self.context = context
        self.handlers = dict(handlers if handlers is not None else DISPATCH_TABLE)
        self.state = "parsed"

    @property
    def version_tag(self) -> str:
        return self.context.config.version_tag

    def dispatch(self, event: WorkerEvent) -> EventOutcome:
        handler = self.handlers.get(event.kind)
        if handler is None:
            return EventOutcome(event.kind, handled=False)
        return handler(event, self.context)

    def __repr__(self) -> str:
        return f"ServiceWorker(version={self.version_tag!r}, state={self.state!r})"


class ServiceWorkerHost:
    """Registration for one origin: which version is active, and routing to it."""

    def __init__(
        self,
        storage: CacheStorage,
        fetcher,
        clients: Optional[ClientRegistry] = None,
        notifications: Optional[NotificationCenter] = None,
        background: Optional[BackgroundTasks] = None,
    ):
        self.storage = storage
        self.fetcher = fetcher
        self.clients = clients if clients is not None else ClientRegistry()
        self.notifications = notifications if notifications is not None else NotificationCenter()
        self.background = background if background is not None else BackgroundTasks()
        self.active: Optional[ServiceWorker] = None
        self.waiting: Optional[ServiceWorker] = None
        self.redundant: List[ServiceWorker] = []
        self._lock = threading.Lock()

    def create_worker(self, config: CacheVersionConfig, manifest: Optional[Sequence[str]] = None) -> ServiceWorker:
        ctx = WorkerContext(
            config=config,
            storage=self.storage,
            fetcher=self.fetcher,
            background=self.background,
            clients=self.clients,
            notifications=self.notifications,
            manifest=list(manifest) if manifest is not None else list(PRECACHE_MANIFEST),
        )
        return ServiceWorker(ctx)

    def register(self, config: CacheVersionConfig, manifest: Optional[Sequence[str]] = None) -> EventOutcome:
        """Install ``config`` and, when it may skip waiting, activate it at once.

        A failed install leaves the current active version in place.
        """
        worker = self.create_worker(config, manifest)
        worker.state = "installing"
        outcome = worker.dispatch(InstallEvent())
        if not outcome.ok:
            worker.state = "redundant"
            return outcome

        worker.state = "installed"
        with self._lock:
            if self.waiting is not None:
                self.waiting.state = "redundant"
            self.waiting = worker
        if config.skip_waiting or self.active is None:
            return self.activate_waiting()
        logger.info(f"Version {config.version_tag} installed, waiting for clients to close")
        return outcome

    def activate_waiting(self) -> EventOutcome:
        with self._lock:
            worker = self.waiting
            if worker is None:
                return EventOutcome(EventKind.ACTIVATE, handled=False)
            self.waiting = None
        worker.state = "activating"
        outcome = worker.dispatch(ActivateEvent())
        worker.state = "activated"
        with self._lock:
            previous, self.active = self.active, worker
        if previous is not None:
            previous.state = "redundant"
            self.redundant.append(previous)
        return outcome

    def resume(self, config: CacheVersionConfig) -> Optional[ServiceWorker]:
        """Re-attach a version installed by an earlier run, if its stores survived."""
        if not all(self.storage.has(name) for name in config.store_names):
            return None
        worker = self.create_worker(config)
        worker.state = "activated"
        with self._lock:
            self.active = worker
        return worker

    @property
    def version_tag(self) -> Optional[str]:
        return self.active.version_tag if self.active else None

    def fetch(self, request: Request) -> Response:
        """What the page gets for ``request``. Pass-through goes straight to the network."""
        worker = self.active
        if worker is not None:
            outcome = worker.dispatch(FetchEvent(request=request))
            if outcome.response is not None:
                return outcome.response
        return self.fetcher.fetch(request)

    def _dispatch_active(self, event: WorkerEvent) -> EventOutcome:
        worker = self.active
        if worker is None:
            return EventOutcome(event.kind, handled=False)
        return worker.dispatch(event)

    def push(self, data=None) -> EventOutcome:
        return self._dispatch_active(PushEvent(data=data))

    def notification_click(self, notification: Notification) -> EventOutcome:
        return self._dispatch_active(NotificationClickEvent(notification=notification))

    def sync(self, tag: str) -> EventOutcome:
        return self._dispatch_active(SyncEvent(tag=tag))

    def periodic_sync(self, tag: str) -> EventOutcome:
        return self._dispatch_active(PeriodicSyncEvent(tag=tag))

    def close(self):
        self.background.shutdown(wait=True)
        close = getattr(self.fetcher, "close", None)
        if close:
            close()
        self.storage.close()
