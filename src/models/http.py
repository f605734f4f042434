from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Tuple, Mapping
import json
import time

from requests.structures import CaseInsensitiveDict

from .exceptions import BodyConsumedException, URLValidationException

NAVIGATE = "navigate"

HeaderPairs = Tuple[Tuple[str, str], ...]


def _freeze_headers(headers: Optional[Mapping[str, str]]) -> HeaderPairs:
    if not headers:
        return ()
    return tuple((str(k), str(v)) for k, v in headers.items())


@dataclass(frozen=True)
class RequestIdentity:
    """Cache key. Two requests with the same method and URL are the same resource."""
    method: str
    url: str

    @classmethod
    def of(cls, method: str, url: str) -> "RequestIdentity":
        if not url or "://" not in url:
            raise URLValidationException("Cache keys need an absolute URL", field="url", value=url)
        return cls(method=(method or "GET").upper(), url=url.split("#", 1)[0])

    def __str__(self) -> str:
        return f"{self.method} {self.url}"


@dataclass
class Request:
    url: str
    method: str = "GET"
    mode: str = "cors"
    headers: Dict[str, str] = field(default_factory=dict)
    client_id: Optional[str] = None

    def __post_init__(self):
        self.method = (self.method or "GET").upper()

    @property
    def is_navigation(self) -> bool:
        return self.mode == NAVIGATE

    @property
    def identity(self) -> RequestIdentity:
        return RequestIdentity.of(self.method, self.url)

    @classmethod
    def navigate(cls, url: str, **kwargs) -> "Request":
        return cls(url=url, mode=NAVIGATE, **kwargs)


@dataclass(frozen=True)
class StoredResponse:
    url: str
    status: int
    headers: HeaderPairs = ()
    body: bytes = b""
    status_text: str = ""
    stored_at: float = field(default_factory=time.time)

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        wanted = name.lower()
        for k, v in self.headers:
            if k.lower() == wanted:
                return v
        return default

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "status": self.status,
            "status_text": self.status_text,
            "headers": dict(self.headers),
            "size": len(self.body),
            "stored_at": self.stored_at,
        }


class Response:
    """A live response whose body can be read exactly once.

    Anything that must outlive the caller's read (a cache write, for example)
    has to be taken with clone() or snapshot() before the body is consumed.
    """

    def __init__(
        self,
        status: int = 200,
        headers: Optional[Mapping[str, str]] = None,
        body: bytes = b"",
        url: str = "",
        status_text: str = "",
        response_type: str = "basic",
    ):
        self.status = int(status)
        self.headers = CaseInsensitiveDict(headers or {})
        self.url = url
        self.status_text = status_text
        self.type = response_type
        self._body = body if isinstance(body, bytes) else str(body).encode("utf-8")
        self.body_used = False
        self.from_cache = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def _check_unused(self, action: str):
        if self.body_used:
            raise BodyConsumedException(
                f"Cannot {action}: body already used",
                context={"url": self.url, "status": self.status},
            )

    def read(self) -> bytes:
        self._check_unused("read")
        self.body_used = True
        return self._body

    def text(self, encoding: str = "utf-8") -> str:
        return self.read().decode(encoding, errors="replace")

    def json(self) -> Any:
        return json.loads(self.text())

    def clone(self) -> "Response":
        self._check_unused("clone")
        dup = Response(
            status=self.status,
            headers=dict(self.headers),
            body=self._body,
            url=self.url,
            status_text=self.status_text,
            response_type=self.type,
        )
        dup.from_cache = self.from_cache
        return dup

    def snapshot(self) -> StoredResponse:
        self._check_unused("snapshot")
        return StoredResponse(
            url=self.url,
            status=self.status,
            headers=_freeze_headers(self.headers),
            body=self._body,
            status_text=self.status_text,
        )

    @classmethod
    def from_stored(cls, stored: StoredResponse) -> "Response":
        resp = cls(
            status=stored.status,
            headers=dict(stored.headers),
            body=stored.body,
            url=stored.url,
            status_text=stored.status_text,
        )
        resp.from_cache = True
        return resp

    @classmethod
    def error(cls, url: str = "") -> "Response":
        return cls(status=0, body=b"", url=url, response_type="error")

    def __repr__(self) -> str:
        return f"Response(status={self.status}, url={self.url!r}, type={self.type!r}, from_cache={self.from_cache})"
