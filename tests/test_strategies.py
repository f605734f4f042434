"""
Tests for the network-first and cache-first request strategies.
"""

from unittest.mock import patch

import pytest

from src.core.strategies import CacheFirstStrategy, NetworkFirstStrategy
from src.models.exceptions import CacheStorageException
from src.models.http import Request, RequestIdentity, StoredResponse
from tests.conftest import CDN_CSS, MANIFEST, ORIGIN


@pytest.fixture
def installed(config, storage, network):
    from src.core.lifecycle import CacheLifecycleManager
    manager = CacheLifecycleManager(config, storage, network)
    manager.install(MANIFEST)
    manager.activate()
    return storage


@pytest.fixture
def network_first(config, installed, network, background):
    return NetworkFirstStrategy(config, installed, network, background)


@pytest.fixture
def cache_first(config, installed, network, background):
    return CacheFirstStrategy(config, installed, network, background)


def _runtime_hit(storage, url):
    return storage.handle("runtime-v2.0").match(RequestIdentity.of("GET", url))


class TestNetworkFirst:
    """Same-origin traffic."""

    def test_success_returned_and_cached(self, network_first, network, storage, background):
        resp = network_first.handle(Request(url=f"{ORIGIN}/api/data"))
        assert resp.status == 200
        assert resp.read() == b'{"rows": 3}'
        assert not resp.from_cache
        assert background.drain(timeout=5)
        hit = _runtime_hit(storage, f"{ORIGIN}/api/data")
        assert hit is not None
        assert hit.body == b'{"rows": 3}'

    def test_caller_may_consume_before_write_lands(self, network_first, network, storage, background):
        resp = network_first.handle(Request(url=f"{ORIGIN}/api/data"))
        resp.read()
        background.drain(timeout=5)
        assert _runtime_hit(storage, f"{ORIGIN}/api/data").body == b'{"rows": 3}'

    def test_non_200_passed_through_not_cached(self, network_first, network, storage, background):
        network.add("/api/broken", "oops", status=500)
        resp = network_first.handle(Request(url=f"{ORIGIN}/api/broken"))
        assert resp.status == 500
        background.drain(timeout=5)
        assert _runtime_hit(storage, f"{ORIGIN}/api/broken") is None

    def test_404_is_not_a_transport_failure(self, network_first):
        resp = network_first.handle(Request.navigate(f"{ORIGIN}/nowhere"))
        assert resp.status == 404

    def test_offline_hit_returned_verbatim(self, network_first, network, storage, background):
        network_first.handle(Request(url=f"{ORIGIN}/api/data")).read()
        background.drain(timeout=5)
        network.online = False
        resp = network_first.handle(Request(url=f"{ORIGIN}/api/data"))
        assert resp.from_cache
        assert resp.status == 200
        assert resp.read() == b'{"rows": 3}'
        assert resp.headers["Content-Type"] == "application/json"

    def test_offline_precached_hit(self, network_first, network):
        network.online = False
        resp = network_first.handle(Request(url=f"{ORIGIN}/index.html"))
        assert resp.read() == b"<html>index</html>"

    def test_offline_navigation_miss_gets_app_shell(self, network_first, network):
        network.online = False
        resp = network_first.handle(Request.navigate(f"{ORIGIN}/laporan/42"))
        assert resp.status == 200
        assert resp.read() == b"<html>shell</html>"

    def test_offline_subresource_miss_gets_408(self, network_first, network):
        network.online = False
        resp = network_first.handle(Request(url=f"{ORIGIN}/api/unknown"))
        assert resp.status == 408
        assert resp.headers["Content-Type"] == "text/plain"
        assert resp.text() == "Network error occurred"

    def test_navigation_without_app_shell_gets_408(self, config, storage, network, background):
        strategy = NetworkFirstStrategy(config, storage, network, background)
        network.online = False
        assert strategy.handle(Request.navigate(f"{ORIGIN}/")).status == 408

    def test_broken_cache_lookup_treated_as_miss(self, network_first, network, storage):
        network.online = False
        with patch.object(storage, "match", side_effect=CacheStorageException("corrupt")):
            resp = network_first.handle(Request(url=f"{ORIGIN}/index.html"))
        assert resp.status == 408

    def test_write_failure_is_swallowed(self, network_first, storage, background):
        with patch.object(storage, "_put_many", side_effect=CacheStorageException("disk full")):
            resp = network_first.handle(Request(url=f"{ORIGIN}/api/data"))
            assert background.drain(timeout=5)
        assert resp.status == 200
        assert resp.read() == b'{"rows": 3}'
        assert background.failures == 1

    def test_write_into_deleted_store_is_dropped(self, network_first, storage, background):
        storage.delete("runtime-v2.0")
        resp = network_first.handle(Request(url=f"{ORIGIN}/api/data"))
        background.drain(timeout=5)
        assert resp.status == 200
        assert not storage.has("runtime-v2.0")


class TestCacheFirst:
    """Third-party traffic."""

    def test_hit_served_without_waiting_for_network(self, cache_first, network, storage, background):
        network.add(CDN_CSS, "body{color:red}", headers={"Content-Type": "text/css"})
        gate = network.hold(CDN_CSS)
        resp = cache_first.handle(Request(url=CDN_CSS))
        assert resp.from_cache
        assert resp.read() == b"body{}"
        assert not gate.is_set()

        gate.set()
        assert background.drain(timeout=5)
        updated = cache_first.lookup(RequestIdentity.of("GET", CDN_CSS))
        assert updated.body == b"body{color:red}"

    def test_revalidation_non_200_keeps_cached_copy(self, cache_first, network, background):
        network.add(CDN_CSS, "gone", status=410)
        cache_first.handle(Request(url=CDN_CSS)).read()
        background.drain(timeout=5)
        assert cache_first.lookup(RequestIdentity.of("GET", CDN_CSS)).body == b"body{}"

    def test_revalidation_failure_is_silent(self, cache_first, network, background):
        network.down.add(CDN_CSS)
        resp = cache_first.handle(Request(url=CDN_CSS))
        assert resp.read() == b"body{}"
        assert background.drain(timeout=5)
        assert background.failures == 1

    def test_cold_miss_goes_to_network_without_caching(self, cache_first, network, storage, background):
        url = "https://fonts.example/css2?family=Poppins"
        network.add(url, "@font-face{}", headers={"Content-Type": "text/css"})
        resp = cache_first.handle(Request(url=url))
        assert resp.status == 200
        assert not resp.from_cache
        background.drain(timeout=5)
        assert cache_first.lookup(RequestIdentity.of("GET", url)) is None
        assert network.count(url) == 1

    def test_cold_miss_offline_yields_error_response(self, cache_first, network):
        network.online = False
        resp = cache_first.handle(Request(url="https://fonts.example/missing.css"))
        assert resp.type == "error"
        assert resp.status == 0

    def test_revalidated_entry_shadows_precached_copy(self, cache_first, network, storage, background):
        network.add(CDN_CSS, "v2", headers={"Content-Type": "text/css"})
        cache_first.handle(Request(url=CDN_CSS)).read()
        background.drain(timeout=5)
        assert _runtime_hit(storage, CDN_CSS).body == b"v2"
        assert cache_first.handle(Request(url=CDN_CSS)).read() == b"v2"


class TestConcurrentWriters:
    def test_last_write_wins_per_key(self, network_first, storage, background):
        ident = RequestIdentity.of("GET", f"{ORIGIN}/api/data")
        for i in range(10):
            network_first.schedule_write(ident, StoredResponse(url=ident.url, status=200, body=str(i).encode(), stored_at=float(i)))
        assert background.drain(timeout=5)
        hit = _runtime_hit(storage, ident.url)
        assert hit.body in {str(i).encode() for i in range(10)}
        assert len(storage.handle("runtime-v2.0")) == 1
