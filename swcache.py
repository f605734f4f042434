#!/usr/bin/env python3
from __future__ import annotations
import sys
import argparse
import shutil
import json
from typing import List, Optional

from src.models.config import CacheVersionConfig
from src.models.events import Notification
from src.models.exceptions import SWCacheException, ConfigurationException, NetworkException
from src.models.http import Request
from src.core.background import BackgroundTasks
from src.core.cache_store import CacheStorage
from src.core.fetcher import NetworkFetcher, OfflineFetcher
from src.core.worker import ServiceWorkerHost
from src.utils.logger import setup_logging, get_logger
from src.utils.output_formatter import output_formatter
from config.constants import DEFAULT_CONFIG, EXIT_CODES, ENV_VARS, PRECACHE_MANIFEST, read_env_overrides, get_version

logger = get_logger("cli")

TITLE = "swcache - offline resource cache for web applications"


class WideFormatter(argparse.RawTextHelpFormatter):
    def __init__(self, prog):
        width = shutil.get_terminal_size((100, 20)).columns
        super().__init__(prog, max_help_position=32, width=max(90, min(width, 140)))


def _read_manifest(path: str) -> List[str]:
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    if text.lstrip().startswith("["):
        data = json.loads(text)
        if not isinstance(data, list) or not all(isinstance(u, str) for u in data):
            raise ConfigurationException("Manifest JSON must be a list of URLs", config_key="manifest")
        return data
    return [line.strip() for line in text.splitlines() if line.strip() and not line.lstrip().startswith("#")]


class SWCacheCLI:
    def __init__(self):
        self.parser = self._create_parser()
        self.config: CacheVersionConfig | None = None
        self.host: Optional[ServiceWorkerHost] = None

    def _create_parser(self) -> argparse.ArgumentParser:
        env = read_env_overrides()
        parser = argparse.ArgumentParser(description=TITLE, formatter_class=WideFormatter)
        parser.add_argument("-V", "--version", action="version", version=f"swcache {get_version()}")

        cfg = parser.add_argument_group("Cache Options")
        cfg.add_argument("--origin", default=env.get("origin", DEFAULT_CONFIG["origin"]), help=f'Application origin (default: {DEFAULT_CONFIG["origin"]})')
        cfg.add_argument("--version-tag", default=env.get("version_tag", DEFAULT_CONFIG["version_tag"]), help=f'Cache version tag (default: {DEFAULT_CONFIG["version_tag"]})')
        cfg.add_argument("--cache-db", default=env.get("cache_db_path", "swcache.db"), help="SQLite file holding the cache stores (default: swcache.db)")
        cfg.add_argument("--app-shell", dest="app_shell_url", default=env.get("app_shell_url"), help=f'App-shell document URL (default: {DEFAULT_CONFIG["app_shell_url"]})')

        net = parser.add_argument_group("Network Options")
        net.add_argument("-t", "--timeout", type=int, default=int(env.get("request_timeout", DEFAULT_CONFIG["request_timeout"])), help=f'Request timeout in seconds (default: {DEFAULT_CONFIG["request_timeout"]})')
        net.add_argument("--proxy", help="HTTP proxy URL")
        net.add_argument("--offline", action="store_true", help="Behave as if the network were unreachable")

        out = parser.add_argument_group("Output Options")
        out.add_argument("--json", action="store_true", help="Emit JSON instead of TSV")
        out.add_argument("--log-level", default=env.get("log_level", "WARNING"), help="Logging level (default: WARNING)")
        out.add_argument("--log-file", default=env.get("log_file"), help="Also write logs to this file")

        sub = parser.add_subparsers(dest="command", metavar="COMMAND")

        p_install = sub.add_parser("install", help="Precache a manifest and activate the version")
        p_install.add_argument("-m", "--manifest", help="Manifest file (JSON list or one URL per line; default: built-in)")

        p_fetch = sub.add_parser("fetch", help="Resolve a request through the active version")
        p_fetch.add_argument("url", help="Absolute or origin-relative URL")
        p_fetch.add_argument("--navigate", action="store_true", help="Treat as a page navigation")
        p_fetch.add_argument("--no-body", action="store_true", help="Do not print the response body")

        p_caches = sub.add_parser("caches", help="List cache stores")
        p_caches.add_argument("--entries", action="store_true", help="List entries of the current version's stores")

        p_push = sub.add_parser("push", help="Deliver a push payload")
        p_push.add_argument("payload", nargs="?", help='JSON payload, e.g. \'{"title": "x"}\'')
        p_push.add_argument("--click", action="store_true", help="Click the resulting notification")

        p_sync = sub.add_parser("sync", help="Fire a background sync event")
        p_sync.add_argument("--tag", help=f'Sync tag (default: {DEFAULT_CONFIG["refresh_sync_tag"]}, or {DEFAULT_CONFIG["periodic_sync_tag"]} with --periodic)')
        p_sync.add_argument("--periodic", action="store_true", help="Fire as a periodic sync event")

        parser.epilog = "Environment: " + ", ".join(sorted(ENV_VARS))
        return parser

    def parse_arguments(self, argv: Optional[List[str]] = None) -> argparse.Namespace:
        return self.parser.parse_args(argv)

    def _create_config(self, args: argparse.Namespace) -> CacheVersionConfig:
        config = CacheVersionConfig.from_env({
            "origin": args.origin,
            "version_tag": args.version_tag,
            "app_shell_url": args.app_shell_url,
            "request_timeout": args.timeout,
        })
        config.validate()
        return config

    def _create_host(self, config: CacheVersionConfig, args: argparse.Namespace) -> ServiceWorkerHost:
        storage = CacheStorage(args.cache_db)
        if args.offline:
            fetcher = OfflineFetcher(origin=config.origin)
        else:
            fetcher = NetworkFetcher(origin=config.origin, timeout=config.request_timeout, proxy=args.proxy)
        return ServiceWorkerHost(storage, fetcher, background=BackgroundTasks(config.background_workers))

    def _fmt(self, args) -> str:
        return "json" if args.json else "tsv"

    def run(self, args: argparse.Namespace) -> int:
        setup_logging(level=args.log_level, log_file=args.log_file)
        if not args.command:
            self.parser.print_help()
            return EXIT_CODES["USAGE_ERROR"]

        try:
            self.config = self._create_config(args)
            self.host = self._create_host(self.config, args)
        except ConfigurationException as e:
            logger.error(str(e))
            return EXIT_CODES["CONFIG_ERROR"]
        except SWCacheException as e:
            logger.error(str(e))
            return EXIT_CODES["UNKNOWN_ERROR"]

        try:
            handler = getattr(self, f"cmd_{args.command}")
            return handler(args)
        except NetworkException as e:
            logger.error(str(e))
            return EXIT_CODES["NETWORK_ERROR"]
        except ConfigurationException as e:
            logger.error(str(e))
            return EXIT_CODES["CONFIG_ERROR"]
        except SWCacheException as e:
            logger.error(str(e))
            return EXIT_CODES["UNKNOWN_ERROR"]
        finally:
            self.host.background.drain(timeout=self.config.request_timeout)
            self.host.close()

    def _require_active(self) -> bool:
        if self.host.active is None and self.host.resume(self.config) is None:
            print(f"Version {self.config.version_tag} is not installed; run 'install' first", file=sys.stderr)
            return False
        return True

    def cmd_install(self, args) -> int:
        manifest = _read_manifest(args.manifest) if args.manifest else list(PRECACHE_MANIFEST)
        outcome = self.host.register(self.config, manifest)
        print(output_formatter.format_outcome(outcome, self._fmt(args)))
        return EXIT_CODES["SUCCESS"] if outcome.ok else EXIT_CODES["INSTALL_ERROR"]

    def cmd_fetch(self, args) -> int:
        if not self._require_active():
            return EXIT_CODES["USAGE_ERROR"]
        request = Request.navigate(args.url) if args.navigate else Request(url=args.url)
        response = self.host.fetch(request)
        print(output_formatter.format_response(response, self._fmt(args), show_body=not args.no_body))
        return EXIT_CODES["SUCCESS"]

    def cmd_caches(self, args) -> int:
        storage = self.host.storage
        if not args.entries:
            print(output_formatter.format_caches(storage.stats(), self._fmt(args)))
            return EXIT_CODES["SUCCESS"]
        entries = []
        for name in self.config.store_names:
            store = storage.handle(name)
            entries.extend(e for e in (store.match(k) for k in store.keys()) if e is not None)
        print(output_formatter.format_entries(entries, self._fmt(args)))
        return EXIT_CODES["SUCCESS"]

    def cmd_push(self, args) -> int:
        if not self._require_active():
            return EXIT_CODES["USAGE_ERROR"]
        outcome = self.host.push(args.payload)
        print(output_formatter.format_outcome(outcome, self._fmt(args)))
        if args.click and outcome.handled:
            shown: Notification = self.host.notifications.history[-1]
            print(output_formatter.format_outcome(self.host.notification_click(shown), self._fmt(args)))
        return EXIT_CODES["SUCCESS"]

    def cmd_sync(self, args) -> int:
        if not self._require_active():
            return EXIT_CODES["USAGE_ERROR"]
        if args.periodic:
            outcome = self.host.periodic_sync(args.tag or self.config.periodic_sync_tag)
        else:
            outcome = self.host.sync(args.tag or self.config.refresh_sync_tag)
        print(output_formatter.format_outcome(outcome, self._fmt(args)))
        refreshed = outcome.detail.get("refreshed")
        return EXIT_CODES["SUCCESS"] if refreshed or not outcome.handled else EXIT_CODES["NETWORK_ERROR"]


def main(argv: Optional[List[str]] = None):
    cli = SWCacheCLI()
    args = cli.parse_arguments(argv)
    sys.exit(cli.run(args))


if __name__ == "__main__":
    main()
