from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Mapping
from urllib.parse import urlparse, urljoin

from config.constants import DEFAULT_CONFIG, is_valid_timeout, is_valid_worker_count, is_valid_version_tag, read_env_overrides
from .exceptions import ConfigurationException

APP_SHELL = "app-shell"
RUNTIME = "runtime"


@dataclass
class CacheVersionConfig:
    """Versioning and wiring for one generation of the cache engine.

    Passed into the lifecycle manager and strategies explicitly; nothing reads
    the current version tag from module state.
    """
    version_tag: str = DEFAULT_CONFIG["version_tag"]
    origin: str = DEFAULT_CONFIG["origin"]
    roles: List[str] = field(default_factory=lambda: list(DEFAULT_CONFIG["cache_roles"]))
    app_shell_url: str = DEFAULT_CONFIG["app_shell_url"]
    refresh_endpoint: str = DEFAULT_CONFIG["refresh_endpoint"]
    refresh_sync_tag: str = DEFAULT_CONFIG["refresh_sync_tag"]
    periodic_sync_tag: str = DEFAULT_CONFIG["periodic_sync_tag"]
    request_timeout: int = DEFAULT_CONFIG["request_timeout"]
    background_workers: int = DEFAULT_CONFIG["background_workers"]
    skip_waiting: bool = DEFAULT_CONFIG["skip_waiting"]

    def __post_init__(self):
        self.origin = (self.origin or "").rstrip("/")
        self.request_timeout = int(self.request_timeout)
        self.background_workers = int(self.background_workers)

    def validate(self):
        errors = []

        if not is_valid_version_tag(self.version_tag):
            errors.append(f"Invalid version tag: {self.version_tag!r}")

        parsed = urlparse(self.origin)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            errors.append(f"Origin must be an absolute http(s) origin: {self.origin!r}")
        elif parsed.path not in ("", "/") or parsed.query or parsed.fragment:
            errors.append(f"Origin must not carry a path, query or fragment: {self.origin!r}")

        if APP_SHELL not in self.roles or RUNTIME not in self.roles:
            errors.append(f"Roles must include {APP_SHELL!r} and {RUNTIME!r}")

        if len(set(self.roles)) != len(self.roles):
            errors.append("Roles must be unique")

        if not is_valid_timeout(self.request_timeout):
            errors.append("Timeout must be between 1 and 300 seconds")

        if not is_valid_worker_count(self.background_workers):
            errors.append("Background workers must be between 1 and 32")

        if not self.refresh_sync_tag or not self.periodic_sync_tag:
            errors.append("Sync tags must be non-empty")

        if errors:
            raise ConfigurationException(
                "Configuration validation failed",
                context={"errors": errors, "config": self.to_dict()},
            )

    def store_name(self, role: str) -> str:
        if role not in self.roles:
            raise ConfigurationException(f"Unknown cache role: {role}", config_key="roles", config_value=role)
        return f"{role}-{self.version_tag}"

    @property
    def store_names(self) -> List[str]:
        return [self.store_name(r) for r in self.roles]

    def owns_store(self, name: str) -> bool:
        return name in self.store_names

    def resolve(self, url: str) -> str:
        return urljoin(self.origin + "/", url)

    @property
    def app_shell_document(self) -> str:
        return self.resolve(self.app_shell_url)

    @property
    def refresh_url(self) -> str:
        return self.resolve(self.refresh_endpoint)

    def with_version(self, version_tag: str) -> "CacheVersionConfig":
        data = self.to_dict()
        data["version_tag"] = version_tag
        return CacheVersionConfig.from_mapping(data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version_tag": self.version_tag,
            "origin": self.origin,
            "roles": list(self.roles),
            "app_shell_url": self.app_shell_url,
            "refresh_endpoint": self.refresh_endpoint,
            "refresh_sync_tag": self.refresh_sync_tag,
            "periodic_sync_tag": self.periodic_sync_tag,
            "request_timeout": self.request_timeout,
            "background_workers": self.background_workers,
            "skip_waiting": self.skip_waiting,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CacheVersionConfig":
        known = set(cls.__dataclass_fields__)
        kwargs = {k: v for k, v in data.items() if k in known and v is not None}
        try:
            return cls(**kwargs)
        except (TypeError, ValueError) as e:
            raise ConfigurationException(f"Invalid configuration values: {e}", context={"data": dict(data)})

    @classmethod
    def from_env(cls, overrides: Optional[Mapping[str, Any]] = None) -> "CacheVersionConfig":
        data: Dict[str, Any] = read_env_overrides()
        if overrides:
            data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_mapping(data)
