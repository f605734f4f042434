import logging
from typing import Optional

from config.constants import NETWORK_ERROR_RESPONSE
from ..models.config import CacheVersionConfig, APP_SHELL, RUNTIME
from ..models.exceptions import CacheStorageException, NetworkException
from ..models.http import Request, RequestIdentity, Response, StoredResponse
from .background import BackgroundTasks
from .cache_store import CacheStorage

logger = logging.getLogger(__name__)


def network_error_response(url: str = "") -> Response:
    return Response(
        status=NETWORK_ERROR_RESPONSE["status"],
        headers={"Content-Type": NETWORK_ERROR_RESPONSE["content_type"]},
        body=NETWORK_ERROR_RESPONSE["body"].encode("utf-8"),
        url=url,
        status_text="Request Timeout",
    )


class CacheStrategy:
    """Shared plumbing: lookups across this version's stores, detached writes."""

    name = "base"

    def __init__(self, config: CacheVersionConfig, storage: CacheStorage, fetcher, background: BackgroundTasks):
        self.config = config
        self.storage = storage
        self.fetcher = fetcher
        self.background = background

    @property
    def lookup_order(self):
        # runtime entries are the freshest copy of anything also precached
        return [self.config.store_name(RUNTIME), self.config.store_name(APP_SHELL)]

    def lookup(self, identity: RequestIdentity) -> Optional[StoredResponse]:
        try:
            return self.storage.match(identity, self.lookup_order)
        except CacheStorageException as e:
            logger.warning(f"Cache lookup failed for {identity}, treating as miss: {e}")
            return None

    def _write(self, identity: RequestIdentity, snapshot: StoredResponse):
        # handle() never creates: a store removed by a newer activation stays removed
        self.storage.handle(self.config.store_name(RUNTIME)).put(identity, snapshot)
        logger.debug(f"Caching new resource: {identity.url}")

    def schedule_write(self, identity: RequestIdentity, snapshot: StoredResponse):
        self.background.submit(f"cache-put {identity}", self._write, identity, snapshot)

    def handle(self, request: Request) -> Response:
        raise NotImplementedError


class NetworkFirstStrategy(CacheStrategy):
    """Origin-local traffic: network, then cache, then app shell, then 408."""

    name = "network-first"

    def handle(self, request: Request) -> Response:
        identity = request.identity
        try:
            response = self.fetcher.fetch(request)
        except NetworkException as e:
            logger.error(f"Fetch failed: {request.url}: {e.message}")
            return self._fallback(request, identity)

        if response.status == 200:
            self.schedule_write(identity, response.snapshot())
        return response

    def _fallback(self, request: Request, identity: RequestIdentity) -> Response:
        cached = self.lookup(identity)
        if cached is not None:
            logger.info(f"Serving from cache: {request.url}")
            return Response.from_stored(cached)

        if request.is_navigation:
            shell_id = RequestIdentity.of("GET", self.config.app_shell_document)
            shell = self.lookup(shell_id)
            if shell is not None:
                logger.info(f"Serving app shell for offline navigation: {request.url}")
                return Response.from_stored(shell)
            logger.warning(f"App shell document missing from cache: {shell_id.url}")

        return network_error_response(request.url)


class CacheFirstStrategy(CacheStrategy):
    """Third-party assets: cache hit returned at once and revalidated behind the caller."""

    name = "cache-first"

    def handle(self, request: Request) -> Response:
        identity = request.identity
        cached = self.lookup(identity)
        if cached is not None:
            logger.debug(f"Serving from cache: {request.url}")
            self.background.submit(f"revalidate {identity}", self._revalidate, request, identity)
            return Response.from_stored(cached)

        try:
            return self.fetcher.fetch(request)
        except NetworkException as e:
            logger.error(f"Fetch failed: {request.url}: {e.message}")
            return Response.error(request.url)

    def _revalidate(self, request: Request, identity: RequestIdentity):
        response = self.fetcher.fetch(request)
        if response.status != 200:
            logger.debug(f"Revalidation of {request.url} returned {response.status}, keeping cached copy")
            return
        self._write(identity, response.snapshot())
