import os
from typing import Dict, Any, List

__version__ = "1.0.0"

DEFAULT_CONFIG = {
    'version_tag': 'v2.0',
    'origin': 'http://localhost:8000',
    'cache_roles': ['app-shell', 'runtime'],
    'app_shell_url': './',
    'refresh_endpoint': '/api/sync',
    'refresh_sync_tag': 'refresh-data',
    'periodic_sync_tag': 'periodic-sync',
    'cache_db_path': ':memory:',
    'request_timeout': 15,
    'max_retries': 1,
    'background_workers': 4,
    'skip_waiting': True,
    'user_agent': 'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 swcache/1.0.0',
    'default_headers': {
        'Accept': '*/*',
        'Accept-Language': 'id-ID,id;q=0.9,en-US;q=0.8,en;q=0.7',
        'Accept-Encoding': 'gzip, deflate',
        'Connection': 'keep-alive',
    }
}

PRECACHE_MANIFEST: List[str] = [
    './',
    './index.html',
    './manifest.json',
    './icon-192.png',
    './icon-512.png',
    'https://cdnjs.cloudflare.com/ajax/libs/font-awesome/6.4.0/css/all.min.css',
    'https://fonts.googleapis.com/css2?family=Poppins:wght@300;400;500;600;700&family=Roboto:wght@400;500;700&display=swap',
]

CACHEABLE_SCHEMES = ('http', 'https')

PUSH_DEFAULTS = {
    'title': 'Monitoring Babinsa',
    'body': 'Ada update baru dari sistem monitoring',
    'url': '/',
}

NOTIFICATION_OPTIONS = {
    'icon': './icon-192.png',
    'badge': './icon-96.png',
    'vibrate': [200, 100, 200],
}

REFRESH_NOTIFICATION = {
    'title': 'Data tersinkronisasi',
    'body': 'Data monitoring telah diperbarui',
    'icon': './icon-192.png',
}

BACKGROUND_REFRESH_MESSAGE = 'BACKGROUND_REFRESH'

NETWORK_ERROR_RESPONSE = {
    'status': 408,
    'body': 'Network error occurred',
    'content_type': 'text/plain',
}

EXIT_CODES = {
    'SUCCESS': 0,
    'USAGE_ERROR': 1,
    'NETWORK_ERROR': 2,
    'CONFIG_ERROR': 3,
    'INSTALL_ERROR': 4,
    'UNKNOWN_ERROR': 255
}

ENV_VARS = {
    'SWCACHE_VERSION_TAG': 'version_tag',
    'SWCACHE_ORIGIN': 'origin',
    'SWCACHE_CACHE_DB': 'cache_db_path',
    'SWCACHE_APP_SHELL_URL': 'app_shell_url',
    'SWCACHE_REFRESH_ENDPOINT': 'refresh_endpoint',
    'SWCACHE_TIMEOUT': 'request_timeout',
    'SWCACHE_WORKERS': 'background_workers',
    'SWCACHE_LOG_LEVEL': 'log_level',
    'SWCACHE_LOG_FILE': 'log_file',
}

def get_version() -> str:
    return __version__

def get_user_agent() -> str:
    return DEFAULT_CONFIG['user_agent']

def get_default_headers() -> Dict[str, str]:
    return DEFAULT_CONFIG['default_headers'].copy()

def read_env_overrides() -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for env_name, key in ENV_VARS.items():
        value = os.environ.get(env_name)
        if value is not None and value != "":
            out[key] = value
    return out

def is_valid_worker_count(count: int) -> bool:
    return 1 <= count <= 32

def is_valid_timeout(timeout: int) -> bool:
    return 1 <= timeout <= 300

def is_valid_version_tag(tag: str) -> bool:
    """Tags become part of store names, so no separators or whitespace."""
    return bool(tag) and not any(c.isspace() for c in tag) and "/" not in tag
