from __future__ import annotations

import asyncio
from typing import Callable, Optional, Protocol, Set

import httpx

from eventlogging.utils.logger_util import get_logger, logging

logger = get_logger(__name__, logging.DEBUG)

CompletionCallback = Callable[[], None]


class Transport(Protocol):
    """One-way transmission of a beacon URL.

    ``send`` must return without waiting on the network and call
    ``on_complete`` once the exchange is over. There is no delivery report:
    completion only means the beacon left and the exchange ended.
    """

    def send(self, url: str, on_complete: CompletionCallback) -> None:
        ...


class NullTransport:
    """Completes every beacon on the next loop iteration without any network I/O."""

    def __init__(self):
        self.sent: list[str] = []

    def send(self, url: str, on_complete: CompletionCallback) -> None:
        self.sent.append(url)
        asyncio.get_running_loop().call_soon(on_complete)


class HttpxBeaconTransport:
    """Fires beacon GETs from background tasks on the running event loop.

    Collectors answer 204 No Content. Like an image beacon, any finished
    exchange counts as completion, including an error status or a transport
    error. Those are logged but never retried.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self._client = client
        self._owns_client = client is None
        self.timeout = float(timeout)
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def send(self, url: str, on_complete: CompletionCallback) -> None:
        task = asyncio.get_running_loop().create_task(self._send(url, on_complete))
        # keep a reference until done so the task isn't garbage collected mid-flight
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _send(self, url: str, on_complete: CompletionCallback) -> None:
        try:
            resp = await self._get_client().get(url)
            if resp.status_code != 204:
                logger.warning("beacon %s answered HTTP %s (expected 204)", url, resp.status_code)
        except httpx.HTTPError as exc:
            logger.warning("beacon %s failed: %s", url, exc)
        except Exception:
            logger.exception("beacon %s failed unexpectedly", url)
        finally:
            on_complete()

    async def drain(self) -> None:
        """Wait for in-flight beacons (useful before shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


def create_transport(name: str | None = None, **kwargs):
    n = (name or "httpx").strip().lower()
    if n in ("httpx", "http", "beacon"):
        return HttpxBeaconTransport(**kwargs)
    if n in ("null", "none", "dry-run"):
        return NullTransport()
    raise ValueError(f"Unknown transport name: {name}")
