from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..models.config import CacheVersionConfig, APP_SHELL
from ..models.exceptions import CacheStorageException, InstallException, NetworkException, URLValidationException
from ..models.http import Request, RequestIdentity, StoredResponse
from ..utils.logger import PerformanceLogger, version_logger
from .cache_store import CacheStorage


@dataclass
class InstallResult:
    version_tag: str
    cached_urls: List[str] = field(default_factory=list)
    skip_waiting: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version_tag": self.version_tag,
            "cached_urls": list(self.cached_urls),
            "skip_waiting": self.skip_waiting,
        }


@dataclass
class ActivateResult:
    version_tag: str
    deleted: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    claimed_clients: int = 0
    cleanup_skipped: bool = False

    @property
    def clean(self) -> bool:
        return not self.failed and not self.cleanup_skipped

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version_tag": self.version_tag,
            "deleted": list(self.deleted),
            "failed": list(self.failed),
            "claimed_clients": self.claimed_clients,
            "cleanup_skipped": self.cleanup_skipped,
        }


class CacheLifecycleManager:
    def __init__(self, config: CacheVersionConfig, storage: CacheStorage, fetcher, clients=None):
        config.validate()
        self.config = config
        self.storage = storage
        self.fetcher = fetcher
        self.clients = clients
        self.perf = PerformanceLogger(version_logger("swcache.performance", config.version_tag))
        self.log = version_logger(__name__, config.version_tag)

    def install(self, manifest: Sequence[str]) -> InstallResult:
        """Precache ``manifest`` into this version's app-shell store, all or nothing.

        Raises InstallException if any URL fails to fetch or answers with a
        non-OK status. Nothing is written in that case and a store created by
        this attempt is removed again, so the running version is untouched.
        """
        tag = self.config.version_tag
        self.log.info(f"Installing {tag}...")
        self.perf.start_timer(f"install {tag}")

        shell_name = self.config.store_name(APP_SHELL)
        try:
            created = [n for n in self.config.store_names if not self.storage.has(n)]
        except CacheStorageException as e:
            self.log.error(f"Could not enumerate cache stores: {e.message}")
            raise InstallException(f"Cache storage unavailable: {e.message}", version_tag=tag, context=e.context)

        try:
            entries, failed = self._fetch_manifest(manifest)
            if failed:
                raise InstallException(
                    f"Precache failed for {len(failed)} of {len(manifest)} URLs",
                    version_tag=tag,
                    failed_urls=failed,
                )
            self.log.info("Caching app shell")
            stores = {name: self.storage.open(name) for name in self.config.store_names}
            stores[shell_name].put_all(entries)
        except InstallException:
            self._discard(created)
            raise
        except CacheStorageException as e:
            self._discard(created)
            raise InstallException(f"Precache write failed: {e.message}", version_tag=tag, context=e.context)

        self.perf.log_operation(f"install {tag}", {"urls": len(entries)})
        self.log.info("Install completed")
        return InstallResult(
            version_tag=tag,
            cached_urls=[ident.url for ident, _ in entries],
            skip_waiting=self.config.skip_waiting,
        )

    def _fetch_manifest(self, manifest: Sequence[str]) -> Tuple[List[Tuple[RequestIdentity, StoredResponse]], List[str]]:
        entries: List[Tuple[RequestIdentity, StoredResponse]] = []
        failed: List[str] = []
        seen = set()
        for raw in manifest:
            url = self.config.resolve(raw)
            request = Request(url=url)
            try:
                identity = request.identity
            except URLValidationException as e:
                self.log.error(f"Precache URL cannot be cached: {raw}: {e.message}")
                failed.append(url)
                continue
            if identity in seen:
                continue
            seen.add(identity)
            try:
                response = self.fetcher.fetch(request)
            except NetworkException as e:
                self.log.error(f"Precache fetch failed for {url}: {e.message}")
                failed.append(url)
                continue
            if not response.ok:
                self.log.error(f"Precache fetch for {url} returned {response.status}")
                failed.append(url)
                continue
            entries.append((identity, response.snapshot()))
        return entries, failed

    def _discard(self, names: List[str]):
        for name in names:
            try:
                self.storage.delete(name)
            except CacheStorageException as e:
                self.log.warning(f"Could not discard store {name} after failed install: {e.message}")

    def activate(self) -> ActivateResult:
        """Delete every store not owned by the current version, then claim clients.

        Deletion is best-effort per store; a failure is logged and cleanup
        continues with the remaining names.
        """
        tag = self.config.version_tag
        self.log.info(f"Activating {tag}...")
        self.perf.start_timer(f"activate {tag}")
        result = ActivateResult(version_tag=tag)

        try:
            existing = self.storage.keys()
        except CacheStorageException as e:
            self.log.error(f"Could not enumerate cache stores, skipping cleanup: {e.message}")
            existing = []
            result.cleanup_skipped = True

        for name in existing:
            if self.config.owns_store(name):
                continue
            self.log.info(f"Deleting old cache: {name}")
            try:
                self.storage.delete(name)
                result.deleted.append(name)
            except CacheStorageException as e:
                self.log.error(f"Failed to delete old cache {name}: {e.message}")
                result.failed.append(name)

        for name in self.config.store_names:
            try:
                self.storage.open(name)
            except CacheStorageException as e:
                self.log.error(f"Failed to open cache {name}: {e.message}")
                result.failed.append(name)

        if self.clients is not None:
            result.claimed_clients = self.clients.claim(tag)

        self.perf.log_operation(f"activate {tag}", {"deleted": len(result.deleted)})
        self.log.info("Activation completed")
        return result
