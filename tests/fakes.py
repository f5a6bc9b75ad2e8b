"""
In-memory StoreClient used by the engine and CLI tests.

Conflict handling mirrors RedisStoreClient: skip drops pre-existing keys,
error fails the whole import call on any conflict, overwrite replaces.
"""

import fnmatch
import threading
import time
from typing import Dict, Iterable, List, Optional, Tuple

from redis_migrate.config import ConflictPolicy
from redis_migrate.exceptions import KeyImportError, MigrationCancelledError, ScanError
from redis_migrate.store import KeyEntry, StoreClient


class MemoryStore(StoreClient):
    def __init__(self, data: Optional[Dict[str, Tuple[bytes, int]]] = None, name: str = "memory"):
        self.name = name
        self.data: Dict[str, Tuple[bytes, int]] = dict(data or {})
        self.lock = threading.Lock()
        self.closed = False

        # failure injection
        self.count_error: Optional[Exception] = None
        self.scan_error_after: Optional[int] = None
        self.export_fail_keys: set = set()
        self.export_delay = 0.0
        self.import_error: Optional[Exception] = None
        self.reject_keys: set = set()
        self.delete_error: Optional[Exception] = None

        self.export_calls = 0
        self.import_calls = 0
        self.deleted: List[str] = []

    @classmethod
    def with_keys(cls, keys: Iterable[str], ttl_ms: int = 0, name: str = "memory") -> 'MemoryStore':
        return cls({key: (f"payload:{key}".encode(), ttl_ms) for key in keys}, name=name)

    def _matching(self, pattern: str) -> List[str]:
        with self.lock:
            return sorted(k for k in self.data if fnmatch.fnmatchcase(k, pattern))

    def stream_keys(self, pattern, batch_size, cancel_event=None):
        keys = self._matching(pattern)
        for index, start in enumerate(range(0, len(keys), batch_size)):
            if cancel_event is not None and cancel_event.is_set():
                raise MigrationCancelledError("scan cancelled")
            if self.scan_error_after is not None and index >= self.scan_error_after:
                raise ScanError("cursor lost")
            yield keys[start:start + batch_size]

    def count_keys(self, pattern, batch_size):
        if self.count_error is not None:
            raise self.count_error
        return len(self._matching(pattern))

    def export_keys(self, keys):
        with self.lock:
            self.export_calls += 1
        if self.export_delay:
            time.sleep(self.export_delay)
        if self.export_fail_keys.intersection(keys):
            raise RuntimeError("dump pipeline broke")
        with self.lock:
            return [KeyEntry(key, *self.data[key]) for key in keys if key in self.data]

    def import_keys(self, entries, policy):
        with self.lock:
            self.import_calls += 1
            if self.import_error is not None:
                raise self.import_error

            if policy == ConflictPolicy.SKIP:
                entries = [e for e in entries if e.key not in self.data]
            elif policy == ConflictPolicy.ERROR:
                conflicts = [e.key for e in entries if e.key in self.data]
                if conflicts:
                    raise KeyImportError(f"{len(conflicts)} keys already exist", conflicts)

            written = []
            for entry in entries:
                if entry.key in self.reject_keys:
                    continue
                self.data[entry.key] = (entry.payload, entry.ttl_ms)
                written.append(entry.key)
            return written

    def delete_keys(self, keys):
        if not keys:
            return
        if self.delete_error is not None:
            raise self.delete_error
        with self.lock:
            for key in keys:
                self.data.pop(key, None)
            self.deleted.extend(keys)

    def close(self):
        self.closed = True
