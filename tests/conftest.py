"""
Pytest Configuration and Shared Fixtures

A scripted network stands in for the real one so every strategy path can be
driven without sockets: routes can be taken down, the whole network switched
off, or a URL held open until the test releases it.
"""

import threading
from typing import Dict, List, Optional, Tuple

import pytest

from src.core.background import BackgroundTasks
from src.core.cache_store import CacheStorage
from src.core.host import ClientRegistry, NotificationCenter
from src.core.worker import ServiceWorkerHost, WorkerContext
from src.models.config import CacheVersionConfig
from src.models.exceptions import NetworkException
from src.models.http import Request, Response

ORIGIN = "https://babinsa.example"
CDN_CSS = "https://cdn.example/lib/all.min.css"

MANIFEST = ["./", "./index.html", CDN_CSS]


class StubNetwork:
    def __init__(self, origin: str = ORIGIN):
        self.origin = origin
        self.online = True
        self.routes: Dict[str, Tuple[int, Dict[str, str], bytes]] = {}
        self.down: set = set()
        self.calls: List[str] = []
        self._gates: Dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    def add(self, url: str, body, status: int = 200, headers: Optional[Dict[str, str]] = None):
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.routes[self._abs(url)] = (status, headers or {"Content-Type": "text/html"}, body)

    def hold(self, url: str) -> threading.Event:
        gate = threading.Event()
        self._gates[self._abs(url)] = gate
        return gate

    def _abs(self, url: str) -> str:
        if "://" in url:
            return url
        return self.origin + "/" + url.lstrip("./")

    def fetch(self, request: Request) -> Response:
        url = self._abs(request.url)
        with self._lock:
            self.calls.append(url)
        gate = self._gates.get(url)
        if gate is not None:
            gate.wait(5)
        if not self.online or url in self.down:
            raise NetworkException("Network unreachable", url=url)
        if url not in self.routes:
            return Response(status=404, body=b"not found", url=url, headers={"Content-Type": "text/plain"})
        status, headers, body = self.routes[url]
        return Response(status=status, headers=headers, body=body, url=url)

    def count(self, url: str) -> int:
        with self._lock:
            return self.calls.count(self._abs(url))

    def close(self):
        pass


@pytest.fixture
def network():
    net = StubNetwork()
    net.add("./", "<html>shell</html>")
    net.add("./index.html", "<html>index</html>")
    net.add(CDN_CSS, "body{}", headers={"Content-Type": "text/css"})
    net.add("/api/data", '{"rows": 3}', headers={"Content-Type": "application/json"})
    net.add("/api/sync", '{"ok": true}', headers={"Content-Type": "application/json"})
    return net


@pytest.fixture
def config():
    return CacheVersionConfig(version_tag="v2.0", origin=ORIGIN)


@pytest.fixture
def storage():
    s = CacheStorage(":memory:")
    yield s
    s.close()


@pytest.fixture
def background():
    bg = BackgroundTasks(max_workers=4)
    yield bg
    bg.shutdown(wait=True)


@pytest.fixture
def clients():
    return ClientRegistry()


@pytest.fixture
def notifications():
    return NotificationCenter()


@pytest.fixture
def context(config, storage, network, background, clients, notifications):
    return WorkerContext(
        config=config,
        storage=storage,
        fetcher=network,
        background=background,
        clients=clients,
        notifications=notifications,
        manifest=list(MANIFEST),
    )


@pytest.fixture
def host(storage, network, clients, notifications, background):
    return ServiceWorkerHost(storage, network, clients=clients, notifications=notifications, background=background)


@pytest.fixture
def installed_host(host, config):
    """Host with v2.0 installed and active."""
    outcome = host.register(config, MANIFEST)
    assert outcome.ok, outcome.error
    return host
