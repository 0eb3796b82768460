from __future__ import annotations

import asyncio
from types import MappingProxyType
from typing import Any, Mapping, Optional

from eventlogging.config import Settings
from eventlogging.dispatch.transport import Transport, create_transport
from eventlogging.errors import NoDestinationConfigured, PayloadTooLong
from eventlogging.registry import SchemaRegistry
from eventlogging.utils.logger_util import get_logger, logging
from eventlogging.validator import validate
from eventlogging.wire import MAX_PAYLOAD_LENGTH, beacon_url, build_payload, payload_length

logger = get_logger(__name__, logging.DEBUG)


def _mark_retrieved(dfd: asyncio.Future) -> None:
    # rejections are already logged; fire-and-forget callers need not await
    if not dfd.cancelled():
        dfd.exception()


def compose(defaults: Mapping[str, Any], raw_event: Optional[Mapping[str, Any]] = None) -> Mapping[str, Any]:
    """Overlay caller values on schema defaults (caller values win) as a read-only mapping."""
    return MappingProxyType({**dict(defaults), **dict(raw_event or {})})


class EventDispatcher:
    """Merges defaults, validates, serializes and transmits events.

    ``dispatch`` returns an ``asyncio.Future`` that settles exactly once:
    resolved with the sent event when the transport reports completion, or
    rejected straight away with ``NoDestinationConfigured``/``PayloadTooLong``.
    Validation failures do not stop an event from being sent; the event goes
    out with ``_ok=false`` so the attempt is still recorded downstream.
    Callers may drop the future unawaited; a rejection then stays silent.
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        transport: Optional[Transport] = None,
        base_uri: Optional[str] = None,
        origin: Optional[str] = None,
        max_payload_length: int = MAX_PAYLOAD_LENGTH,
    ):
        self.registry = registry
        self.transport = transport if transport is not None else create_transport("httpx")
        self.base_uri = base_uri or None
        self.origin = origin
        self.max_payload_length = int(max_payload_length)
        if not self.base_uri:
            logger.warning("EVENTLOGGING_BASE_URI is not set; events will be rejected")

    @classmethod
    def from_settings(cls, settings: Settings, registry: SchemaRegistry, transport: Optional[Transport] = None) -> "EventDispatcher":
        if transport is None:
            transport = create_transport(settings.transport)
        return cls(
            registry,
            transport=transport,
            base_uri=settings.base_uri,
            origin=settings.origin,
            max_payload_length=settings.max_payload_length,
        )

    def dispatch(self, schema_name: str, raw_event: Optional[Mapping[str, Any]] = None) -> asyncio.Future:
        loop = asyncio.get_running_loop()
        dfd: asyncio.Future = loop.create_future()
        dfd.add_done_callback(_mark_retrieved)

        schema = self.registry.resolve(schema_name, action="Logging event with")
        event = compose(schema.defaults, raw_event)
        ok = validate(event, schema).valid

        payload = build_payload(self.origin, schema_name, schema.revision, ok, event, schema.field_order())
        logger.debug("dispatch %s ok=%s payload=%s", schema_name, ok, payload)

        if not self.base_uri:
            logger.debug("dropping %s event: no destination configured", schema_name)
            dfd.set_exception(NoDestinationConfigured(schema_name, event, payload))
            return dfd

        length = payload_length(payload)
        if length > self.max_payload_length:
            logger.warning("dropping %s event: payload is %d bytes (limit %d)", schema_name, length, self.max_payload_length)
            dfd.set_exception(PayloadTooLong(schema_name, event, payload, limit=self.max_payload_length, length=length))
            return dfd

        def _complete() -> None:
            if dfd.done():
                return
            schema.log.append(event)
            dfd.set_result(event)

        self.transport.send(beacon_url(self.base_uri, payload), _complete)
        return dfd

    async def log_event(self, schema_name: str, raw_event: Optional[Mapping[str, Any]] = None) -> Mapping[str, Any]:
        """Dispatch and wait for completion."""
        return await self.dispatch(schema_name, raw_event)
