"""
Tests for push notifications, notification clicks and background refresh.
"""

from datetime import datetime

import pytest

from src.core.relay import NotificationRelay, SyncRelay, build_intent, parse_push_payload
from src.models.events import NotificationIntent
from src.models.exceptions import PayloadDecodeException, RefreshException
from tests.conftest import ORIGIN

DEFAULT_INTENT = NotificationIntent(
    title="Monitoring Babinsa",
    body="Ada update baru dari sistem monitoring",
    url="/",
    metadata={},
)


@pytest.fixture
def notification_relay(config, notifications, clients):
    return NotificationRelay(config, notifications, clients)


@pytest.fixture
def sync_relay(config, network, notifications, clients):
    return SyncRelay(config, network, notifications, clients)


class TestPushDecoding:
    """Absent or broken payloads fall back to the documented defaults."""

    @pytest.mark.parametrize("data", [None, b"", "", "   "])
    def test_absent_payload_defaults(self, data):
        assert build_intent(data) == DEFAULT_INTENT

    @pytest.mark.parametrize("data", [b"not json", b"\xff\xfe", "[1, 2]", "42"])
    def test_undecodable_payload_defaults(self, data):
        assert build_intent(data) == DEFAULT_INTENT

    def test_parse_raises_on_garbage(self):
        with pytest.raises(PayloadDecodeException):
            parse_push_payload(b"{broken")

    def test_partial_payload(self):
        intent = build_intent(b'{"title": "Laporan baru", "priority": "high"}')
        assert intent.title == "Laporan baru"
        assert intent.body == DEFAULT_INTENT.body
        assert intent.url == "/"
        assert intent.metadata == {"priority": "high"}

    def test_full_payload(self):
        intent = build_intent('{"title": "T", "body": "B", "url": "/laporan/7"}')
        assert (intent.title, intent.body, intent.url) == ("T", "B", "/laporan/7")

    def test_wrong_field_types_default(self):
        intent = build_intent('{"title": 5, "body": null, "url": ""}')
        assert (intent.title, intent.body, intent.url) == (DEFAULT_INTENT.title, DEFAULT_INTENT.body, "/")


class TestNotificationRelay:
    def test_push_shows_notification(self, notification_relay, notifications):
        shown = notification_relay.on_push(b'{"title": "Alert", "url": "/peta"}')
        assert shown.title == "Alert"
        assert shown.options["icon"] == "./icon-192.png"
        assert shown.options["badge"] == "./icon-96.png"
        assert shown.options["vibrate"] == [200, 100, 200]
        assert shown.data["url"] == "/peta"
        assert notifications.visible() == [shown]

    def test_click_focuses_matching_window(self, notification_relay, clients):
        other = clients.connect(f"{ORIGIN}/")
        target = clients.connect(f"{ORIGIN}/peta")
        shown = notification_relay.on_push(b'{"url": "/peta"}')
        chosen = notification_relay.on_click(shown)
        assert chosen is target
        assert target.focused
        assert not other.focused
        assert shown.closed

    def test_click_considers_uncontrolled_windows(self, notification_relay, clients):
        uncontrolled = clients.connect(f"{ORIGIN}/peta", controller=None)
        shown = notification_relay.on_push(b'{"url": "/peta"}')
        assert notification_relay.on_click(shown) is uncontrolled

    def test_click_opens_window_when_no_match(self, notification_relay, clients):
        clients.connect(f"{ORIGIN}/peta/1")
        shown = notification_relay.on_push(b'{"url": "/peta"}')
        opened = notification_relay.on_click(shown)
        assert opened.url == f"{ORIGIN}/peta"
        assert opened.focused
        assert len(clients) == 2

    def test_click_matches_first_of_several(self, notification_relay, clients):
        first = clients.connect(f"{ORIGIN}/")
        clients.connect(f"{ORIGIN}/")
        shown = notification_relay.on_push(None)
        assert notification_relay.on_click(shown) is first


class TestSyncRelay:
    def test_refresh_success_messages_clients(self, sync_relay, clients, notifications):
        a = clients.connect(f"{ORIGIN}/", controller="v2.0")
        b = clients.connect(f"{ORIGIN}/peta")
        assert sync_relay.on_sync("refresh-data") is True
        for c in (a, b):
            assert len(c.messages) == 1
            assert c.messages[0]["type"] == "BACKGROUND_REFRESH"
            datetime.fromisoformat(c.messages[0]["timestamp"])
        assert notifications.history[-1].title == "Data tersinkronisasi"

    def test_periodic_tag_accepted(self, sync_relay, network):
        assert sync_relay.on_sync("periodic-sync") is True
        assert network.count("/api/sync") == 1

    def test_unknown_tag_ignored(self, sync_relay, network):
        assert sync_relay.on_sync("sync-data") is False
        assert network.count("/api/sync") == 0

    def test_non_2xx_is_failure(self, sync_relay, network, clients, notifications):
        network.add("/api/sync", "down", status=503)
        c = clients.connect(f"{ORIGIN}/")
        assert sync_relay.on_sync("refresh-data") is False
        assert c.messages == []
        assert notifications.history == []

    def test_unreachable_is_failure_without_retry(self, sync_relay, network):
        network.online = False
        assert sync_relay.on_sync("refresh-data") is False
        assert network.count("/api/sync") == 1

    def test_refresh_raises_on_bad_json(self, sync_relay, network):
        network.add("/api/sync", "<html>", status=200)
        with pytest.raises(RefreshException):
            sync_relay.refresh()

    def test_refresh_returns_payload(self, sync_relay):
        assert sync_relay.refresh() == {"ok": True}

    def test_confirmation_optional(self, config, network, notifications, clients):
        relay = SyncRelay(config, network, notifications, clients, confirm=False)
        assert relay.on_sync("refresh-data") is True
        assert notifications.history == []
