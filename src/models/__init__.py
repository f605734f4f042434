from .config import CacheVersionConfig, APP_SHELL, RUNTIME
from .http import Request, RequestIdentity, Response, StoredResponse
from .events import (
    EventKind,
    EventOutcome,
    InstallEvent,
    ActivateEvent,
    FetchEvent,
    PushEvent,
    NotificationClickEvent,
    SyncEvent,
    PeriodicSyncEvent,
    Notification,
    NotificationIntent,
)
from .exceptions import (
    SWCacheException,
    NetworkException,
    CacheStorageException,
    InstallException,
    ValidationException,
    ConfigurationException,
    PayloadDecodeException,
    RefreshException,
    URLValidationException,
    BodyConsumedException,
)

__all__ = [
    "CacheVersionConfig",
    "APP_SHELL",
    "RUNTIME",
    "Request",
    "RequestIdentity",
    "Response",
    "StoredResponse",
    "EventKind",
    "EventOutcome",
    "InstallEvent",
    "ActivateEvent",
    "FetchEvent",
    "PushEvent",
    "NotificationClickEvent",
    "SyncEvent",
    "PeriodicSyncEvent",
    "Notification",
    "NotificationIntent",
    "SWCacheException",
    "NetworkException",
    "CacheStorageException",
    "InstallException",
    "ValidationException",
    "ConfigurationException",
    "PayloadDecodeException",
    "RefreshException",
    "URLValidationException",
    "BodyConsumedException",
]
