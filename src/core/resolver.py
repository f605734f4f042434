import logging
from dataclasses import replace
from enum import Enum
from typing import Mapping, Optional, Tuple
from urllib.parse import urlparse

from config.constants import CACHEABLE_SCHEMES
from ..models.config import CacheVersionConfig
from ..models.http import Request, Response

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443}


class OriginClass(str, Enum):
    SAME_ORIGIN = "same-origin"
    THIRD_PARTY = "third-party"


def origin_of(url: str) -> Tuple[str, str, Optional[int]]:
    p = urlparse(url)
    scheme = (p.scheme or "").lower()
    try:
        port = p.port
    except ValueError:
        port = None
    return scheme, (p.hostname or "").lower(), port or _DEFAULT_PORTS.get(scheme)


class FetchResolver:
    """Stateless per-request entry point.

    ``resolve`` returns None when the request is not ours to answer (non-GET,
    non-cacheable scheme); the host then goes to the network unmodified.
    """

    def __init__(self, config: CacheVersionConfig, strategies: Mapping[OriginClass, object]):
        missing = [c.value for c in OriginClass if c not in strategies]
        if missing:
            raise ValueError(f"No strategy configured for: {', '.join(missing)}")
        self.config = config
        self.strategies = dict(strategies)
        self._origin = origin_of(config.origin)

    def should_handle(self, request: Request) -> bool:
        if request.method != "GET":
            return False
        scheme = urlparse(request.url).scheme.lower()
        if scheme and scheme not in CACHEABLE_SCHEMES:
            return False
        return True

    def classify(self, request: Request) -> OriginClass:
        if origin_of(request.url) == self._origin:
            return OriginClass.SAME_ORIGIN
        return OriginClass.THIRD_PARTY

    def select_strategy(self, request: Request):
        return self.strategies[self.classify(request)]

    def resolve(self, request: Request) -> Optional[Response]:
        if not self.should_handle(request):
            logger.debug(f"Passing through {request.method} {request.url}")
            return None
        resolved = replace(request, url=self.config.resolve(request.url), headers=dict(request.headers))
        strategy = self.select_strategy(resolved)
        logger.debug(f"{strategy.name} -> {resolved.url}")
        return strategy.handle(resolved)
