import copy
import os
import threading
import time
from typing import Any, Callable, Dict, List

import pytest

# tests/conftest.py

# keep test runs from creating ./log and from reading a developer's .env
os.environ.setdefault("EVENTLOGGING_LOG_DIR", "")
os.environ.setdefault("EVENTLOGGING_CACHE", "memory")

from eventlogging.registry import SchemaRegistry

EARTHQUAKE = {
    "revision": 42,
    "fields": {
        "epicenter": {"type": "string", "enum": ["Valdivia", "Sumatra", "Kamchatka"], "required": True},
        "magnitude": {"type": "number", "required": True},
        "article": {"type": "string", "optional": True},
    },
}


@pytest.fixture
def earthquake_body() -> Dict[str, Any]:
    return copy.deepcopy(EARTHQUAKE)


@pytest.fixture
def registry(earthquake_body) -> SchemaRegistry:
    reg = SchemaRegistry()
    reg.register("earthquake", earthquake_body)
    return reg


class RecordingTransport:
    """Records beacon URLs; completion is fired by the test via ``complete``."""

    def __init__(self):
        self.sent: List[str] = []
        self.callbacks: List[Callable[[], None]] = []

    def send(self, url: str, on_complete: Callable[[], None]) -> None:
        self.sent.append(url)
        self.callbacks.append(on_complete)

    def complete(self, index: int = -1) -> None:
        self.callbacks[index]()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: str = None):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self.text is not None:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class FakeSession:
    """Stands in for requests.Session; counts GETs and can be made slow or failing."""

    def __init__(self, response: FakeResponse = None, delay: float = 0.0, exc: Exception = None):
        self.response = response or FakeResponse(200, {"title": "earthquake"})
        self.delay = delay
        self.exc = exc
        self.calls: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def get(self, url, timeout=None):
        with self._lock:
            self.calls.append({"url": url, "timeout": timeout})
        if self.delay:
            time.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return self.response


@pytest.fixture
def make_session() -> Callable[..., FakeSession]:
    """
    Return a helper building a fake HTTP session for ModelCache.
    Usage: session = make_session(FakeResponse(500)) or make_session(delay=0.2)
    """
    def _make(response: FakeResponse = None, delay: float = 0.0, exc: Exception = None) -> FakeSession:
        return FakeSession(response=response, delay=delay, exc=exc)
    return _make


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def isolate_env(monkeypatch):
    """
    Ensure destination settings never leak in from the developer's shell.
    """
    for name in (
        "EVENTLOGGING_BASE_URI",
        "EVENTLOGGING_ORIGIN",
        "EVENTLOGGING_FILE",
        "EVENTLOGGING_MODELS_URI_FORMAT",
        "EVENTLOGGING_LOCK_TTL",
        "EVENTLOGGING_MAX_PAYLOAD_LENGTH",
        "EVENTLOGGING_KEY_PREFIX",
        "EVENTLOGGING_TRANSPORT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("EVENTLOGGING_CACHE", "memory")
    yield
