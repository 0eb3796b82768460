from __future__ import annotations

import json
import math
import os
import threading
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

import redis

from eventlogging.utils.logger_util import get_logger

logger = get_logger(__name__)


class CacheStore(Protocol):
    """Shared cache capability the model cache depends on.

    ``add`` must be an atomic create-if-absent across every worker sharing
    the store: it returns True only for the caller that created the key.
    """

    def get(self, key: str) -> Any:
        ...

    def add(self, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        ...


class InMemoryCacheStore:
    """Process-local store with per-key TTL.

    Atomic across threads of one process only; use Redis for a fleet.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._data: Dict[str, Tuple[Any, Optional[float]]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def _live(self, key: str) -> Optional[Tuple[Any, Optional[float]]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return entry

    def get(self, key: str) -> Any:
        with self._lock:
            entry = self._live(key)
            return None if entry is None else entry[0]

    def add(self, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        with self._lock:
            if self._live(key) is not None:
                return False
            expires_at = self._clock() + ttl if ttl else None
            self._data[key] = (value, expires_at)
            return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for k in list(self._data) if self._live(k) is not None)


class RedisCacheStore:
    """Redis-backed store. ``add`` maps to ``SET key value NX [EX ttl]``.

    Values are stored JSON-encoded so any worker, in any process, can read
    what another wrote. Redis errors are logged and read as a miss (``get``)
    or a lost race (``add``), the way a memcached client reports failure.
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        db: Optional[int] = None,
        password: Optional[str] = None,
    ):
        if client is None:
            client = redis.Redis(
                host=host or os.environ.get("REDIS_HOST", "localhost"),
                port=int(port if port is not None else os.environ.get("REDIS_PORT", "6379")),
                db=int(db if db is not None else os.environ.get("REDIS_DB", "0")),
                password=password or os.environ.get("REDIS_PASSWORD") or None,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
        self._client = client

    def get(self, key: str) -> Any:
        try:
            raw = self._client.get(key)
        except redis.RedisError as exc:
            logger.warning("Redis GET %s failed: %s", key, exc)
            return None
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Undecodable cache value at %s; treating as a miss", key)
            return None

    def add(self, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        kwargs: Dict[str, Any] = {"nx": True}
        if ttl:
            # EX takes whole seconds; round up so the lock never shrinks
            kwargs["ex"] = max(1, math.ceil(ttl))
        try:
            return bool(self._client.set(key, json.dumps(value), **kwargs))
        except redis.RedisError as exc:
            logger.warning("Redis SET NX %s failed: %s", key, exc)
            return False


def create_cache_store(name: str | None = None, **kwargs):
    n = (name or "memory").strip().lower()
    if n in ("memory", "inmemory", "local"):
        return InMemoryCacheStore(**kwargs)
    if n in ("redis",):
        return RedisCacheStore(**kwargs)
    raise ValueError(f"Unknown cache store name: {name}")
