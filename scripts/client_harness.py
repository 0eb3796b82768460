"""Simple client harness that logs a few events against a running collector.

Start the collector first (python -m eventlogging.main), then:
Run: python scripts/client_harness.py
"""
import asyncio

import httpx

from eventlogging import EventDispatcher, PayloadTooLong, SchemaRegistry
from eventlogging.dispatch import HttpxBeaconTransport

BASE = "http://127.0.0.1:8000"

EARTHQUAKE = {
    "revision": 42,
    "fields": {
        "epicenter": {"type": "string", "enum": ["Valdivia", "Sumatra", "Kamchatka"], "required": True},
        "magnitude": {"type": "number", "required": True},
        "article": {"type": "string", "optional": True},
    },
}


async def run():
    registry = SchemaRegistry()
    registry.register("earthquake", EARTHQUAKE)
    registry.set_defaults("earthquake", {"article": "1960 Valdivia earthquake"})

    transport = HttpxBeaconTransport()
    dispatcher = EventDispatcher(registry, transport, base_uri=f"{BASE}/event", origin="harness")

    print("sent:", dict(await dispatcher.log_event("earthquake", {"epicenter": "Valdivia", "magnitude": 9.5})))
    # invalid, still sent with _ok=false
    print("sent:", dict(await dispatcher.log_event("earthquake", {"epicenter": "Atlantis", "magnitude": "big"})))

    try:
        await dispatcher.log_event("earthquake", {"epicenter": "Sumatra", "magnitude": 9.1, "article": "*" * 300})
    except PayloadTooLong as exc:
        print("rejected:", exc)

    await transport.drain()
    await transport.aclose()

    async with httpx.AsyncClient() as client:
        r = await client.get(f"{BASE}/schemas/earthquake")
        print("schema", r.status_code, r.headers.get("last-modified"), r.json())


if __name__ == '__main__':
    asyncio.run(run())
