import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from config.constants import (
    BACKGROUND_REFRESH_MESSAGE,
    NOTIFICATION_OPTIONS,
    PUSH_DEFAULTS,
    REFRESH_NOTIFICATION,
)
from ..models.config import CacheVersionConfig
from ..models.events import Notification, NotificationIntent
from ..models.exceptions import NetworkException, PayloadDecodeException, RefreshException
from ..models.http import Request
from .host import Client, ClientRegistry, NotificationCenter

logger = logging.getLogger(__name__)


def parse_push_payload(data: Optional[Union[bytes, str]]) -> Dict[str, Any]:
    if data is None:
        return {}
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise PayloadDecodeException(f"Push payload is not UTF-8: {e}")
    if not data.strip():
        return {}
    try:
        payload = json.loads(data)
    except ValueError as e:
        raise PayloadDecodeException(f"Push payload is not JSON: {e}", payload_sample=data)
    if not isinstance(payload, dict):
        raise PayloadDecodeException("Push payload must be a JSON object", payload_sample=data)
    return payload


def build_intent(data: Optional[Union[bytes, str]]) -> NotificationIntent:
    """Intent from a raw push payload; absent, malformed or empty fields take the defaults."""
    try:
        payload = parse_push_payload(data)
    except PayloadDecodeException as e:
        logger.warning(f"Falling back to default notification: {e.message}")
        payload = {}

    def _text(key: str) -> str:
        value = payload.get(key)
        return value if isinstance(value, str) and value else PUSH_DEFAULTS[key]

    metadata = {k: v for k, v in payload.items() if k not in ("title", "body", "url")}
    return NotificationIntent(title=_text("title"), body=_text("body"), url=_text("url"), metadata=metadata)


class NotificationRelay:
    def __init__(self, config: CacheVersionConfig, notifications: NotificationCenter, clients: ClientRegistry):
        self.config = config
        self.notifications = notifications
        self.clients = clients

    def on_push(self, data: Optional[Union[bytes, str]]) -> Notification:
        intent = build_intent(data)
        return self.notifications.show(intent.title, intent.to_options(NOTIFICATION_OPTIONS))

    def on_click(self, notification: Notification) -> Client:
        notification.close()
        target = notification.data.get("url") or PUSH_DEFAULTS["url"]
        target_abs = self.config.resolve(target)

        for client in self.clients.match_all(type="window", include_uncontrolled=True):
            if client.url in (target, target_abs):
                logger.debug(f"Focusing existing window {client.id} at {client.url}")
                return client.focus()

        return self.clients.open_window(target_abs)


class SyncRelay:
    def __init__(self, config: CacheVersionConfig, fetcher, notifications: NotificationCenter,
                 clients: ClientRegistry, confirm: bool = True):
        self.config = config
        self.fetcher = fetcher
        self.notifications = notifications
        self.clients = clients
        self.confirm = confirm

    def handles(self, tag: str) -> bool:
        return tag in (self.config.refresh_sync_tag, self.config.periodic_sync_tag)

    def refresh(self) -> Dict[str, Any]:
        """One call to the refresh endpoint; raises RefreshException on any failure."""
        url = self.config.refresh_url
        try:
            response = self.fetcher.fetch(Request(url=url))
        except NetworkException as e:
            raise RefreshException(f"Sync failed: {e.message}", url=url)
        if not response.ok:
            raise RefreshException("Sync failed", url=url, status_code=response.status)
        try:
            return response.json()
        except ValueError as e:
            raise RefreshException(f"Sync response is not JSON: {e}", url=url, status_code=response.status)

    def on_sync(self, tag: str) -> bool:
        if not self.handles(tag):
            logger.debug(f"Ignoring sync tag: {tag}")
            return False
        try:
            self.refresh()
        except RefreshException as e:
            logger.error(f"Background sync failed: {e}")
            return False

        logger.info("Background sync successful")
        message = {
            "type": BACKGROUND_REFRESH_MESSAGE,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        for client in self.clients.match_all(type="all", include_uncontrolled=True):
            client.post_message(message)
        if self.confirm:
            self.notifications.show(
                REFRESH_NOTIFICATION["title"],
                {"body": REFRESH_NOTIFICATION["body"], "icon": REFRESH_NOTIFICATION["icon"]},
            )
        return True
