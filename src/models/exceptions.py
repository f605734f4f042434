from typing import Any, Dict, Optional

class SWCacheException(Exception):
    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        context_str = f" - Context: {self.context}" if self.context else ""
        return f"{self.__class__.__name__}: {self.message}{context_str}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, context={self.context!r})"


class NetworkException(SWCacheException):
    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        if url:
            ctx["url"] = url
        if status_code is not None:
            ctx["status_code"] = status_code
        super().__init__(message, ctx)


class CacheStorageException(SWCacheException):
    def __init__(
        self,
        message: str,
        cache_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        if cache_name:
            ctx["cache_name"] = cache_name
        super().__init__(message, ctx)


class InstallException(SWCacheException):
    def __init__(
        self,
        message: str,
        version_tag: Optional[str] = None,
        failed_urls: Optional[list] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        if version_tag:
            ctx["version_tag"] = version_tag
        if failed_urls:
            ctx["failed_urls"] = list(failed_urls)
        super().__init__(message, ctx)


class ValidationException(SWCacheException):
    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        if field:
            ctx["field"] = field
        if value is not None:
            ctx["value"] = value
        super().__init__(message, ctx)


class ConfigurationException(SWCacheException):

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        if config_key:
            ctx["config_key"] = config_key
        if config_value is not None:
            ctx["config_value"] = config_value
        super().__init__(message, ctx)


class PayloadDecodeException(SWCacheException):
    def __init__(
        self,
        message: str,
        payload_sample: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        if payload_sample:
            ctx["payload_sample"] = payload_sample[:100]
        super().__init__(message, ctx)


class RefreshException(NetworkException):
    """Background refresh endpoint unreachable or answered non-2xx"""
    pass


class URLValidationException(ValidationException):
    """URL validation failed"""
    pass


class BodyConsumedException(SWCacheException):
    """Response body was already read"""
    pass
