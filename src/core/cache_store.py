import json
import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..models.exceptions import CacheStorageException
from ..models.http import RequestIdentity, StoredResponse

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS caches (
    name TEXT PRIMARY KEY,
    created_at REAL NOT NULL
);
CREATE TABLE IF NOT EXISTS entries (
    cache_name TEXT NOT NULL,
    method TEXT NOT NULL,
    url TEXT NOT NULL,
    status INTEGER NOT NULL,
    status_text TEXT NOT NULL DEFAULT '',
    headers TEXT NOT NULL,
    body BLOB NOT NULL,
    stored_at REAL NOT NULL,
    PRIMARY KEY (cache_name, method, url)
);
"""


def _row_to_response(row) -> StoredResponse:
    url, status, status_text, headers, body, stored_at = row
    return StoredResponse(
        url=url,
        status=int(status),
        headers=tuple((k, v) for k, v in json.loads(headers)),
        body=bytes(body),
        status_text=status_text or "",
        stored_at=float(stored_at),
    )


class CacheStorage:
    """All named cache stores of one client, kept in a single SQLite file.

    Statements are serialized on one connection; there is no transaction
    spanning several calls, so concurrent writers to one key resolve as
    last-write-wins.
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            if self.db_path != ":memory:":
                self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as e:
            raise CacheStorageException(f"Failed to open cache storage: {e}", context={"db_path": self.db_path})

    def _execute(self, sql: str, params: Sequence = (), cache_name: Optional[str] = None):
        with self._lock:
            try:
                cur = self._conn.execute(sql, params)
                self._conn.commit()
                return cur
            except sqlite3.Error as e:
                self._conn.rollback()
                raise CacheStorageException(f"Cache storage error: {e}", cache_name=cache_name)

    def open(self, name: str) -> "NamedCacheStore":
        self._execute(
            "INSERT OR IGNORE INTO caches (name, created_at) VALUES (?, ?)",
            (name, time.time()),
            cache_name=name,
        )
        return NamedCacheStore(self, name)

    def handle(self, name: str) -> "NamedCacheStore":
        return NamedCacheStore(self, name)

    def has(self, name: str) -> bool:
        cur = self._execute("SELECT 1 FROM caches WHERE name = ?", (name,), cache_name=name)
        return cur.fetchone() is not None

    def keys(self) -> List[str]:
        cur = self._execute("SELECT name FROM caches ORDER BY created_at, name")
        return [r[0] for r in cur.fetchall()]

    def delete(self, name: str) -> bool:
        with self._lock:
            try:
                self._conn.execute("DELETE FROM entries WHERE cache_name = ?", (name,))
                cur = self._conn.execute("DELETE FROM caches WHERE name = ?", (name,))
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                raise CacheStorageException(f"Failed to delete cache: {e}", cache_name=name)
        return cur.rowcount > 0

    def match(self, identity: RequestIdentity, cache_names: Optional[Iterable[str]] = None) -> Optional[StoredResponse]:
        """First hit across ``cache_names`` in order (all stores when omitted)."""
        names = list(cache_names) if cache_names is not None else self.keys()
        for name in names:
            hit = self._match_in(name, identity)
            if hit is not None:
                return hit
        return None

    def _match_in(self, name: str, identity: RequestIdentity) -> Optional[StoredResponse]:
        cur = self._execute(
            "SELECT url, status, status_text, headers, body, stored_at FROM entries "
            "WHERE cache_name = ? AND method = ? AND url = ?",
            (name, identity.method, identity.url),
            cache_name=name,
        )
        row = cur.fetchone()
        return _row_to_response(row) if row else None

    def _put_many(self, name: str, items: Sequence[Tuple[RequestIdentity, StoredResponse]]):
        with self._lock:
            try:
                exists = self._conn.execute("SELECT 1 FROM caches WHERE name = ?", (name,)).fetchone()
                if exists is None:
                    raise CacheStorageException("Cache was deleted", cache_name=name)
                self._conn.executemany(
                    "INSERT OR REPLACE INTO entries "
                    "(cache_name, method, url, status, status_text, headers, body, stored_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        (
                            name,
                            ident.method,
                            ident.url,
                            resp.status,
                            resp.status_text,
                            json.dumps([list(h) for h in resp.headers]),
                            sqlite3.Binary(resp.body),
                            resp.stored_at,
                        )
                        for ident, resp in items
                    ],
                )
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                raise CacheStorageException(f"Failed to write cache entries: {e}", cache_name=name)

    def _entry_keys(self, name: str) -> List[RequestIdentity]:
        cur = self._execute(
            "SELECT method, url FROM entries WHERE cache_name = ? ORDER BY stored_at, url",
            (name,),
            cache_name=name,
        )
        return [RequestIdentity(method=m, url=u) for m, u in cur.fetchall()]

    def stats(self) -> Dict[str, int]:
        cur = self._execute(
            "SELECT c.name, COUNT(e.url) FROM caches c "
            "LEFT JOIN entries e ON e.cache_name = c.name GROUP BY c.name ORDER BY c.name"
        )
        return {name: int(count) for name, count in cur.fetchall()}

    def close(self):
        with self._lock:
            try:
                self._conn.close()
            except sqlite3.Error as e:
                logger.debug(f"Error closing cache storage: {e}")


class NamedCacheStore:
    """Handle on one named store. A handle outlives deletion of its store:
    reads then miss and writes raise CacheStorageException."""

    def __init__(self, storage: CacheStorage, name: str):
        self.storage = storage
        self.name = name

    def match(self, identity: RequestIdentity) -> Optional[StoredResponse]:
        return self.storage._match_in(self.name, identity)

    def put(self, identity: RequestIdentity, response: StoredResponse):
        if identity.method != "GET":
            raise CacheStorageException(
                f"Only GET requests can be cached, got {identity.method}", cache_name=self.name
            )
        self.storage._put_many(self.name, [(identity, response)])

    def put_all(self, items: Sequence[Tuple[RequestIdentity, StoredResponse]]):
        """Write every entry or none of them."""
        bad = [str(i) for i, _ in items if i.method != "GET"]
        if bad:
            raise CacheStorageException("Only GET requests can be cached", cache_name=self.name, context={"rejected": bad})
        if items:
            self.storage._put_many(self.name, list(items))

    def keys(self) -> List[RequestIdentity]:
        return self.storage._entry_keys(self.name)

    def __len__(self) -> int:
        return len(self.keys())

    def __repr__(self) -> str:
        return f"NamedCacheStore(name={self.name!r})"
