import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..models.events import Notification

logger = logging.getLogger(__name__)

_client_ids = itertools.count(1)


@dataclass(eq=False)
class Client:
    url: str
    type: str = "window"
    id: str = field(default_factory=lambda: f"client-{next(_client_ids)}")
    controller: Optional[str] = None
    focused: bool = False
    messages: List[Dict[str, Any]] = field(default_factory=list)

    def focus(self) -> "Client":
        self.focused = True
        return self

    def post_message(self, message: Dict[str, Any]):
        self.messages.append(dict(message))


class ClientRegistry:
    """Open client windows as seen by the worker."""

    def __init__(self):
        self._clients: List[Client] = []
        self._lock = threading.Lock()

    def connect(self, url: str, controller: Optional[str] = None, type: str = "window") -> Client:
        client = Client(url=url, type=type, controller=controller)
        with self._lock:
            self._clients.append(client)
        return client

    def disconnect(self, client: Client):
        with self._lock:
            self._clients = [c for c in self._clients if c is not client]

    def get(self, client_id: str) -> Optional[Client]:
        with self._lock:
            return next((c for c in self._clients if c.id == client_id), None)

    def match_all(self, type: str = "window", include_uncontrolled: bool = False,
                  controller: Optional[str] = None) -> List[Client]:
        with self._lock:
            out = [c for c in self._clients if type == "all" or c.type == type]
        if not include_uncontrolled:
            out = [c for c in out if c.controller is not None and (controller is None or c.controller == controller)]
        return out

    def claim(self, controller: str) -> int:
        """Make ``controller`` the active version for every open client, now."""
        with self._lock:
            for c in self._clients:
                c.controller = controller
            return len(self._clients)

    def open_window(self, url: str, controller: Optional[str] = None) -> Client:
        logger.info(f"Opening window: {url}")
        client = self.connect(url, controller=controller)
        return client.focus()

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)


class NotificationCenter:
    def __init__(self):
        self._shown: List[Notification] = []
        self._lock = threading.Lock()

    def show(self, title: str, options: Optional[Dict[str, Any]] = None) -> Notification:
        notification = Notification(title=title, options=dict(options or {}))
        with self._lock:
            self._shown.append(notification)
        logger.info(f"Notification shown: {title}")
        return notification

    def visible(self) -> List[Notification]:
        with self._lock:
            return [n for n in self._shown if not n.closed]

    @property
    def history(self) -> List[Notification]:
        with self._lock:
            return list(self._shown)
