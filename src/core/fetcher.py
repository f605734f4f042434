import logging
from typing import Optional, Dict
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
import urllib3
import http.client

from config.constants import DEFAULT_CONFIG, get_default_headers, get_user_agent
from ..models.exceptions import NetworkException
from ..models.http import Request, Response

logger = logging.getLogger(__name__)

_HOP_BY_HOP = {"content-encoding", "content-length", "transfer-encoding", "connection"}


def _to_response(r: requests.Response, url: str) -> Response:
    # requests has already decoded the body, so the encoding headers no longer describe it
    headers = {k: v for k, v in r.headers.items() if k.lower() not in _HOP_BY_HOP}
    return Response(
        status=int(r.status_code),
        headers=headers,
        body=r.content or b"",
        url=r.url or url,
        status_text=r.reason or "",
        response_type="basic",
    )


class NetworkFetcher:
    def __init__(
        self,
        origin: Optional[str] = None,
        timeout: int = DEFAULT_CONFIG["request_timeout"],
        max_retries: int = DEFAULT_CONFIG["max_retries"],
        user_agent: Optional[str] = None,
        proxy: Optional[str] = None,
    ):
        self.origin = (origin or "").rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.user_agent = user_agent or get_user_agent()
        self.proxy = proxy

        self.session = self._create_session()

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.trust_env = True  # honor system/env proxies

        session.headers.update(get_default_headers())
        session.headers["User-Agent"] = self.user_agent

        # transport retries only; an HTTP error status is an answer, not a failure
        retry = Retry(
            total=self.max_retries,
            connect=self.max_retries,
            read=self.max_retries,
            status=0,
            backoff_factor=0.3,
            allowed_methods=frozenset(["GET", "HEAD"]),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry, pool_maxsize=32, pool_connections=16)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        if self.proxy:
            session.proxies.update({
                "http": self.proxy,
                "https": self.proxy,
            })

        return session

    def absolute_url(self, url: str) -> str:
        if "://" in url or not self.origin:
            return url
        return urljoin(self.origin + "/", url)

    def fetch(self, request: Request) -> Response:
        url = self.absolute_url(request.url)
        headers: Dict[str, str] = dict(request.headers or {})
        if request.is_navigation:
            headers.setdefault("Sec-Fetch-Mode", "navigate")
            headers.setdefault("Accept", "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8")

        logger.debug(f"Fetching {request.method} {url}")
        try:
            try:
                r = self.session.request(
                    request.method,
                    url,
                    headers=headers,
                    timeout=self.timeout,
                    allow_redirects=True,
                )
            except (http.client.RemoteDisconnected, urllib3.exceptions.ProtocolError) as e:
                logger.warning(f"Remote closed early for {url}: {e}; retrying with Connection: close")
                headers["Connection"] = "close"
                r = self.session.request(
                    request.method,
                    url,
                    headers=headers,
                    timeout=self.timeout,
                    allow_redirects=True,
                )
        except requests.exceptions.Timeout as e:
            logger.warning(f"Timeout fetching {url}")
            raise NetworkException(f"Timeout: {e}", url=url)
        except requests.exceptions.ConnectionError as e:
            logger.warning(f"Connection error fetching {url}: {e}")
            raise NetworkException(f"Connection failed: {e}", url=url)
        except requests.exceptions.RequestException as e:
            logger.error(f"Request exception fetching {url}: {e}")
            raise NetworkException(f"Request failed: {e}", url=url)
        except (http.client.HTTPException, urllib3.exceptions.HTTPError) as e:
            logger.error(f"Transport error fetching {url}: {e}")
            raise NetworkException(f"Transport error: {e}", url=url)

        logger.debug(f"Fetched {url} - {r.status_code}")
        return _to_response(r, url)

    def get(self, url: str) -> Response:
        return self.fetch(Request(url=url))

    def close(self):
        if self.session:
            try:
                self.session.close()
            except Exception as e:
                logger.debug(f"Error closing session: {e}")


class OfflineFetcher:
    """Stands in for a host with no connectivity: every fetch is a transport failure."""

    def __init__(self, origin: Optional[str] = None):
        self.origin = (origin or "").rstrip("/")

    def fetch(self, request: Request) -> Response:
        raise NetworkException("Network unreachable (offline)", url=request.url)

    def close(self):
        pass
