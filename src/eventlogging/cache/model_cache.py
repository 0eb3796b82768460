"""Resolve named schema documents from a shared cache, falling back to HTTP.

To prevent a cache stampede, only one worker is allowed to attempt an HTTP
request for a given model per lock window. Every other worker that misses
the cache in that window is served an empty object instead of waiting.
"""
from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

import requests

from eventlogging.cache.store import CacheStore, create_cache_store
from eventlogging.config import FETCH_TIMEOUT_RATIO, LOCK_TIMEOUT, Settings
from eventlogging.errors import RemoteFetchFailure
from eventlogging.utils.logger_util import get_logger, logging

logger = get_logger(__name__, logging.DEBUG)

VALUE = "value"
LOCK = "lock"
MTIME = "mtime"


class ModelCache:
    def __init__(
        self,
        store: CacheStore,
        uri_format: Optional[str],
        lock_ttl: float = LOCK_TIMEOUT,
        fetch_timeout: Optional[float] = None,
        key_prefix: str = "",
        session: Optional[Any] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.uri_format = uri_format
        self.lock_ttl = lock_ttl
        # The HTTP timeout is a fraction of the lock TTL so a slow fetch can't
        # outlive its lock and let a second fetcher in.
        self.fetch_timeout = lock_ttl * FETCH_TIMEOUT_RATIO if fetch_timeout is None else fetch_timeout
        if not 0 < self.fetch_timeout < self.lock_ttl:
            raise ValueError(f"fetch_timeout ({self.fetch_timeout}) must be positive and below lock_ttl ({self.lock_ttl})")
        self.key_prefix = key_prefix
        self.session = session if session is not None else requests.Session()
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, store: Optional[CacheStore] = None, **kwargs) -> "ModelCache":
        if store is None:
            store = create_cache_store(settings.cache_backend)
        return cls(
            store,
            settings.models_uri_format,
            lock_ttl=settings.lock_ttl,
            fetch_timeout=settings.fetch_timeout,
            key_prefix=settings.key_prefix,
            **kwargs,
        )

    def key(self, name: str, kind: str = VALUE) -> str:
        return f"{self.key_prefix}{kind}:{name}"

    def uri(self, name: str) -> str:
        if not self.uri_format:
            raise RemoteFetchFailure(name, "<unset>", "EVENTLOGGING_MODELS_URI_FORMAT is not set")
        return self.uri_format.format(name=quote(name, safe=""))

    def fetch_model(self, name: str) -> Dict[str, Any]:
        """GET the model document. Any failure raises ``RemoteFetchFailure``."""
        uri = self.uri(name)
        try:
            resp = self.session.get(uri, timeout=self.fetch_timeout)
        except requests.RequestException as exc:
            raise RemoteFetchFailure(name, uri, str(exc)) from exc
        if not 200 <= resp.status_code < 300:
            raise RemoteFetchFailure(name, uri, f"HTTP {resp.status_code}")
        try:
            model = resp.json()
        except ValueError as exc:
            raise RemoteFetchFailure(name, uri, "response is not JSON") from exc
        if not isinstance(model, dict):
            raise RemoteFetchFailure(name, uri, f"expected a JSON object, got {type(model).__name__}")
        return model

    def get_model(self, name: str) -> Dict[str, Any]:
        """Return the cached model, fetching it if this caller wins the lock.

        Always returns a dict; an empty one when the model is unavailable.
        """
        model = self.store.get(self.key(name, VALUE))
        if model is not None:
            return model

        if not self.store.add(self.key(name, LOCK), 1, self.lock_ttl):
            logger.debug("model %s is being fetched by another worker; serving empty model", name)
            return {}

        try:
            model = self.fetch_model(name)
        except RemoteFetchFailure as exc:
            logger.warning("%s", exc)
            return {}

        # redundant, not conflicting, if another write already landed
        self.store.add(self.key(name, VALUE), model)
        return model

    def get_modified_time(self, name: str) -> int:
        """Unix timestamp first observed for ``name``.

        Set once, on first access, and never overwritten here; whoever
        publishes new model content is responsible for refreshing it.
        """
        key = self.key(name, MTIME)
        mtime = self.store.get(key)
        if mtime:
            return int(mtime)
        now = int(self._clock())
        if not self.store.add(key, now):
            # lost the race: report the value that won
            mtime = self.store.get(key)
            if mtime:
                return int(mtime)
        return now
