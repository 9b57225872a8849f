"""Time- and size-bounded result cache with single-flight computation.

Concurrent requests for the same fingerprint share one computation: the
first caller computes, later callers wait on its future and receive the same
result or exception. Failed computations are not cached.
"""

import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from concurrent.futures import Future
from typing import Any, Callable, TypeVar

from pydantic import BaseModel

from config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _jsonable(part: Any) -> Any:
    if isinstance(part, BaseModel):
        return part.model_dump(mode="json", exclude_none=True)
    return part


def fingerprint(*parts: Any) -> str:
    """Deterministic key for a scoring request, e.g. job id + filter set."""
    payload = json.dumps([_jsonable(p) for p in parts], sort_keys=True, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class ResultCache:
    def __init__(
        self,
        ttl_seconds: float | None = None,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = settings.cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self.max_entries = settings.cache_max_entries if max_entries is None else max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: OrderedDict[str, tuple[float, Any]] = OrderedDict()
        self._inflight: dict[str, Future] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _lookup(self, key: str) -> tuple[bool, Any]:
        """Caller holds the lock."""
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        expires_at, value = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return False, None
        return True, value

    def get(self, key: str) -> Any | None:
        with self._lock:
            found, value = self._lookup(key)
            return value if found else None

    def get_or_compute(self, key: str, compute: Callable[[], T]) -> T:
        with self._lock:
            found, value = self._lookup(key)
            if found:
                self.hits += 1
                return value
            self.misses += 1
            future = self._inflight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._inflight[key] = future

        if not owner:
            return future.result()

        try:
            value = compute()
        except Exception as e:
            future.set_exception(e)
            raise
        else:
            with self._lock:
                self._entries[key] = (self._clock() + self.ttl_seconds, value)
                self._entries.move_to_end(key)
                while len(self._entries) > self.max_entries:
                    evicted, _ = self._entries.popitem(last=False)
                    logger.debug("Result cache full, evicted %s", evicted)
            future.set_result(value)
            return value
        finally:
            with self._lock:
                self._inflight.pop(key, None)
            if not future.done():
                future.cancel()

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def evict_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.info("Evicted %d expired cache entries", len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
