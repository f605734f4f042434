__version__ = "1.0.0"
__author__ = "swcache"
__description__ = "Offline resource-interception and caching engine"

from .cache_store import CacheStorage, NamedCacheStore
from .fetcher import NetworkFetcher, OfflineFetcher
from .background import BackgroundTasks
from .lifecycle import CacheLifecycleManager, InstallResult, ActivateResult
from .strategies import NetworkFirstStrategy, CacheFirstStrategy
from .resolver import FetchResolver, OriginClass
from .relay import NotificationRelay, SyncRelay, build_intent
from .host import Client, ClientRegistry, NotificationCenter
from .worker import ServiceWorker, ServiceWorkerHost, WorkerContext, DISPATCH_TABLE, build_strategies

__all__ = [
    'CacheStorage',
    'NamedCacheStore',
    'NetworkFetcher',
    'OfflineFetcher',
    'BackgroundTasks',
    'CacheLifecycleManager',
    'InstallResult',
    'ActivateResult',
    'NetworkFirstStrategy',
    'CacheFirstStrategy',
    'FetchResolver',
    'OriginClass',
    'NotificationRelay',
    'SyncRelay',
    'build_intent',
    'Client',
    'ClientRegistry',
    'NotificationCenter',
    'ServiceWorker',
    'ServiceWorkerHost',
    'WorkerContext',
    'DISPATCH_TABLE',
    'build_strategies',
]
