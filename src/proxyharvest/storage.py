from __future__ import annotations

import dataclasses
import json
import logging
import os
import random
import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

logger = logging.getLogger("proxyharvest.storage")

__all__ = [
    "AtomicCounter",
    "Mirror",
    "ProxyStore",
    "StorageError",
    "decode_value",
    "encode_value",
]


class StorageError(Exception):
    pass


def _json_default(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    raise TypeError(f"cannot encode {type(obj).__name__}")


def encode_value(value: Any) -> bytes:
    """Canonical encoding: compact JSON with sorted keys, UTF-8."""
    return json.dumps(
        value,
        default=_json_default,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def decode_value(data: bytes) -> Any:
    return json.loads(data.decode("utf-8"))


class AtomicCounter:
    def __init__(self, value: int = 0) -> None:
        self._lock = threading.Lock()
        self._value = int(value)

    def add(self, delta: int) -> int:
        with self._lock:
            self._value += delta
            return self._value

    def set(self, value: int) -> None:
        with self._lock:
            self._value = int(value)

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class Mirror:
    """
    In-memory copy of a bucket: key -> encoded bytes, plus a live key count.

    The count moves only when a key is first inserted or actually removed;
    overwriting an existing key leaves it alone.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._data: Dict[str, bytes] = {}
        self.count = AtomicCounter()

    def load(self, items: Iterator[Tuple[str, bytes]]) -> int:
        with self._lock:
            self._data.clear()
            for k, v in items:
                self._data[k] = bytes(v)
            n = len(self._data)
        self.count.set(n)
        return n

    def put(self, key: str, value: bytes) -> bool:
        with self._lock:
            inserted = key not in self._data
            self._data[key] = value
        if inserted:
            self.count.add(1)
        return inserted

    def remove(self, key: str) -> bool:
        with self._lock:
            removed = self._data.pop(key, None) is not None
        if removed:
            self.count.add(-1)
        return removed

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def items(self) -> List[Tuple[str, bytes]]:
        with self._lock:
            return list(self._data.items())

    def snapshot(self) -> Dict[str, bytes]:
        with self._lock:
            return dict(self._data)


class ProxyStore:
    """
    Keyed store with a durable SQLite bucket and an in-memory mirror.

    Every write goes to SQLite first, in its own transaction; the mirror is
    only updated once that commit succeeds. All reads are served from the
    mirror. Safe to share between threads.
    """

    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS buckets (
            name TEXT PRIMARY KEY
        );
        CREATE TABLE IF NOT EXISTS entries (
            bucket TEXT NOT NULL,
            key TEXT NOT NULL,
            value BLOB NOT NULL,
            PRIMARY KEY (bucket, key)
        );
    """

    def __init__(self, path: str, bucket: str, *, rng: Optional[random.Random] = None) -> None:
        if not path:
            raise StorageError("open store whose file name is empty")
        if not bucket:
            raise StorageError("create a bucket whose name is empty")

        self.path = path
        self.bucket = bucket
        self._rng = rng or random.Random()
        self._write_lock = threading.Lock()
        self._mirror = Mirror()

        d = os.path.dirname(os.path.abspath(path))
        try:
            os.makedirs(d, exist_ok=True)
            self._conn: Optional[sqlite3.Connection] = sqlite3.connect(path, check_same_thread=False)
            with self._transaction() as conn:
                conn.executescript(self._SCHEMA)
            with self._transaction() as conn:
                conn.execute("INSERT OR IGNORE INTO buckets (name) VALUES (?)", (bucket,))
            loaded = self._sync()
        except (OSError, sqlite3.Error) as e:
            self._close_quietly()
            raise StorageError(f"open store {path!r} bucket {bucket!r}: {e}") from e

        logger.info("store: opened %s bucket=%s entries=%d", path, bucket, loaded)

    # Lifecycle
    def close(self) -> None:
        with self._write_lock:
            conn, self._conn = self._conn, None
        if conn is not None:
            conn.close()
            logger.debug("store: closed %s", self.path)

    def __enter__(self) -> "ProxyStore":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _close_quietly(self) -> None:
        conn = getattr(self, "_conn", None)
        self._conn = None
        if conn is not None:
            try:
                conn.close()
            except sqlite3.Error:
                pass

    @contextmanager
    def _locked(self) -> Iterator[sqlite3.Connection]:
        with self._write_lock:
            conn = self._conn
            if conn is None:
                raise StorageError("store is closed")
            yield conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._locked() as conn:
            with conn:
                yield conn

    def _sync(self) -> int:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT key, value FROM entries WHERE bucket = ?", (self.bucket,)
            ).fetchall()
        return self._mirror.load((str(k), bytes(v)) for k, v in rows)

    # Reads (mirror only)
    def exist(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> Optional[bytes]:
        self._check_open()
        # immutable bytes; callers cannot alter the mirror through it
        return self._mirror.get(key)

    def get_all(self) -> Dict[str, bytes]:
        self._check_open()
        return self._mirror.snapshot()

    def get_random_one(self) -> Optional[bytes]:
        self._check_open()
        n = self._mirror.count.value
        if n <= 0:
            return None
        index = self._rng.randrange(n)

        fallback: Optional[bytes] = None
        chosen: Optional[bytes] = None
        for _key, value in self._mirror.items():
            # first entry stands in when deletes shrink the mirror under us
            if fallback is None:
                fallback = value
            if index == 0:
                chosen = value
                break
            index -= 1
        return chosen if chosen is not None else fallback

    @property
    def count(self) -> int:
        return self._mirror.count.value

    def __len__(self) -> int:
        return self.count

    # Writes: durable commit, then mirror, both under the write lock so
    # same-key writers apply to the mirror in commit order.
    def add_or_update(self, key: str, value: Any) -> None:
        if value is None:
            raise StorageError("value is null")
        try:
            content = encode_value(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"encode value for key {key!r}: {e}") from e
        with self._locked() as conn:
            try:
                with conn:
                    conn.execute(
                        "INSERT INTO entries (bucket, key, value) VALUES (?, ?, ?) "
                        "ON CONFLICT(bucket, key) DO UPDATE SET value = excluded.value",
                        (self.bucket, key, content),
                    )
            except sqlite3.Error as e:
                raise StorageError(f"write key {key!r}: {e}") from e
            self._mirror.put(key, content)

    def delete(self, key: str) -> bool:
        with self._locked() as conn:
            try:
                with conn:
                    conn.execute("DELETE FROM entries WHERE bucket = ? AND key = ?", (self.bucket, key))
            except sqlite3.Error as e:
                logger.error("store: delete key=%s failed: %s", key, e)
                return False
            self._mirror.remove(key)
            return True

    def _check_open(self) -> None:
        if self._conn is None:
            raise StorageError("store is closed")
