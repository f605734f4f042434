from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union
import itertools

from .http import Request, Response

_notification_ids = itertools.count(1)


class EventKind(str, Enum):
    INSTALL = "install"
    ACTIVATE = "activate"
    FETCH = "fetch"
    PUSH = "push"
    NOTIFICATION_CLICK = "notificationclick"
    SYNC = "sync"
    PERIODIC_SYNC = "periodicsync"


@dataclass
class NotificationIntent:
    title: str
    body: str
    url: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_options(self, base_options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        options = dict(base_options or {})
        options["body"] = self.body
        options["data"] = {"url": self.url, **self.metadata}
        return options


@dataclass(eq=False)
class Notification:
    title: str
    options: Dict[str, Any] = field(default_factory=dict)
    id: int = field(default_factory=lambda: next(_notification_ids))
    closed: bool = False

    @property
    def body(self) -> str:
        return self.options.get("body", "")

    @property
    def data(self) -> Dict[str, Any]:
        return self.options.get("data") or {}

    def close(self):
        self.closed = True


@dataclass
class WorkerEvent:
    kind: ClassVar[EventKind]


@dataclass
class InstallEvent(WorkerEvent):
    kind: ClassVar[EventKind] = EventKind.INSTALL
    manifest: Optional[List[str]] = None


@dataclass
class ActivateEvent(WorkerEvent):
    kind: ClassVar[EventKind] = EventKind.ACTIVATE


@dataclass
class FetchEvent(WorkerEvent):
    kind: ClassVar[EventKind] = EventKind.FETCH
    request: Request = None


@dataclass
class PushEvent(WorkerEvent):
    kind: ClassVar[EventKind] = EventKind.PUSH
    data: Optional[Union[bytes, str]] = None


@dataclass
class NotificationClickEvent(WorkerEvent):
    kind: ClassVar[EventKind] = EventKind.NOTIFICATION_CLICK
    notification: Notification = None


@dataclass
class SyncEvent(WorkerEvent):
    kind: ClassVar[EventKind] = EventKind.SYNC
    tag: str = ""


@dataclass
class PeriodicSyncEvent(WorkerEvent):
    kind: ClassVar[EventKind] = EventKind.PERIODIC_SYNC
    tag: str = ""


@dataclass
class EventOutcome:
    kind: EventKind
    handled: bool = True
    response: Optional[Response] = None
    detail: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "handled": self.handled,
            "status": self.response.status if self.response is not None else None,
            "detail": dict(self.detail),
            "error": self.error,
        }
