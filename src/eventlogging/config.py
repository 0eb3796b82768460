from __future__ import annotations

import os
from typing import Mapping, Optional

import dotenv
from pydantic import BaseModel, Field, field_validator

from eventlogging.utils.logger_util import get_logger, logging

logger = get_logger(__name__, logging.DEBUG)

LOCK_TIMEOUT = 30
FETCH_TIMEOUT_RATIO = 0.8

ENV_VARS = {
    "base_uri": "EVENTLOGGING_BASE_URI",
    "origin": "EVENTLOGGING_ORIGIN",
    "event_file": "EVENTLOGGING_FILE",
    "models_uri_format": "EVENTLOGGING_MODELS_URI_FORMAT",
    "lock_ttl": "EVENTLOGGING_LOCK_TTL",
    "max_payload_length": "EVENTLOGGING_MAX_PAYLOAD_LENGTH",
    "cache_backend": "EVENTLOGGING_CACHE",
    "key_prefix": "EVENTLOGGING_KEY_PREFIX",
    "transport": "EVENTLOGGING_TRANSPORT",
}


class Settings(BaseModel):
    # Full URI of the collector, without a query string, eg. '//log.example.org/event.gif'.
    base_uri: Optional[str] = None
    # Identifies the emitting site; sent as the '_db' provenance field.
    origin: Optional[str] = None
    # File path or udp://host:port / tcp://host:port for server-side events.
    event_file: Optional[str] = None
    # eg. 'https://meta.example.org/schemas/{name}.json'
    models_uri_format: Optional[str] = None
    lock_ttl: int = Field(LOCK_TIMEOUT, gt=0)
    max_payload_length: int = Field(255, gt=0)
    cache_backend: str = "memory"
    key_prefix: str = ""
    transport: str = "httpx"

    @field_validator("base_uri", "origin", "event_file", "models_uri_format", mode="before")
    @classmethod
    def _blank_is_unset(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def fetch_timeout(self) -> float:
        return self.lock_ttl * FETCH_TIMEOUT_RATIO

    def log_unset(self) -> list[str]:
        """Emit a debug line for each unset destination setting and return their env names."""
        unset = []
        for attr in ("base_uri", "event_file", "origin", "models_uri_format"):
            if getattr(self, attr) is None:
                env_name = ENV_VARS[attr]
                logger.debug("%s is invalid or unset.", env_name)
                unset.append(env_name)
        return unset


def load_settings(env: Optional[Mapping[str, str]] = None, dotenv_path: Optional[str] = ".env") -> Settings:
    """Build Settings from the environment (after loading ``.env`` if present)."""
    if env is None:
        if dotenv_path:
            dotenv.load_dotenv(dotenv_path)
        env = os.environ
    values = {attr: env[name] for attr, name in ENV_VARS.items() if env.get(name) is not None}
    return Settings(**values)
