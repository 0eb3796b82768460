import asyncio
import gc

import httpx
import pytest

from eventlogging.config import Settings
from eventlogging.dispatch import EventDispatcher, HttpxBeaconTransport, NullTransport, create_transport
from eventlogging.errors import NoDestinationConfigured, PayloadTooLong, UnknownSchemaWarning
from eventlogging.server_side import ServerSideEventWriter
from eventlogging.wire import parse_payload

BASE_URI = "https://log.example.org/event"


def _dispatcher(registry, transport, **kwargs):
    kwargs.setdefault("base_uri", BASE_URI)
    kwargs.setdefault("origin", "testwiki")
    return EventDispatcher(registry, transport=transport, **kwargs)


def test_dispatch_resolves_with_event(registry, transport):
    dispatcher = _dispatcher(registry, transport)
    e = {"epicenter": "Valdivia", "magnitude": 9.5}

    async def _run():
        dfd = dispatcher.dispatch("earthquake", e)
        assert not dfd.done()
        transport.complete()
        return await dfd

    sent = asyncio.run(_run())
    assert sent == e
    assert registry.lookup("earthquake").log == [e]
    assert len(transport.sent) == 1
    url = transport.sent[0]
    assert url.startswith(BASE_URI + "?_db=testwiki&_id=earthquake&_rv=42&_ok=true&")
    assert url.endswith(";")


def test_logged_event_is_annotated_with_defaults(registry, transport):
    dispatcher = _dispatcher(registry, transport)
    registry.set_defaults("earthquake", {"epicenter": "Valdivia"})

    async def _run():
        dfd = dispatcher.dispatch("earthquake", {"magnitude": 9.5})
        transport.complete()
        return await dfd

    assert asyncio.run(_run()) == {"epicenter": "Valdivia", "magnitude": 9.5}


def test_caller_values_win_over_defaults(registry, transport):
    dispatcher = _dispatcher(registry, transport)
    registry.set_defaults("earthquake", {"epicenter": "Valdivia", "magnitude": 1.0})

    async def _run():
        dfd = dispatcher.dispatch("earthquake", {"epicenter": "Sumatra"})
        transport.complete()
        return await dfd

    assert asyncio.run(_run()) == {"epicenter": "Sumatra", "magnitude": 1.0}


def test_sent_event_is_read_only(registry, transport):
    dispatcher = _dispatcher(registry, transport)

    async def _run():
        dfd = dispatcher.dispatch("earthquake", {"epicenter": "Valdivia", "magnitude": 9.5})
        transport.complete()
        return await dfd

    sent = asyncio.run(_run())
    with pytest.raises(TypeError):
        sent["magnitude"] = 1.0


def test_invalid_event_is_still_sent_flagged(registry, transport):
    dispatcher = _dispatcher(registry, transport)

    async def _run():
        dfd = dispatcher.dispatch("earthquake", {"epicenter": "Atlantis"})
        transport.complete()
        return await dfd

    sent = asyncio.run(_run())
    assert sent == {"epicenter": "Atlantis"}
    parsed = parse_payload(transport.sent[0].split("?", 1)[1])
    assert parsed.valid is False
    assert registry.lookup("earthquake").log == [{"epicenter": "Atlantis"}]


def test_payload_over_limit_is_rejected(registry, transport):
    dispatcher = _dispatcher(registry, transport)

    async def _run():
        return dispatcher.dispatch("earthquake", {
            "epicenter": "Sumatra",
            "magnitude": 9.5,
            "article": "*" * 255,
        })

    async def _await():
        dfd = await _run()
        assert dfd.done()
        with pytest.raises(PayloadTooLong, match="Request URI") as excinfo:
            await dfd
        return excinfo.value

    err = asyncio.run(_await())
    assert err.length > err.limit == 255
    assert err.schema_name == "earthquake"
    assert err.payload.endswith(";")
    assert transport.sent == []
    assert registry.lookup("earthquake").log == []


def test_max_payload_length_is_configurable(registry, transport):
    dispatcher = _dispatcher(registry, transport, max_payload_length=20)

    async def _run():
        with pytest.raises(PayloadTooLong):
            await dispatcher.dispatch("earthquake", {"epicenter": "Sumatra", "magnitude": 9.5})

    asyncio.run(_run())
    assert transport.sent == []


def test_no_destination_rejects_immediately(registry, transport):
    dispatcher = EventDispatcher(registry, transport=transport, base_uri=None, origin="testwiki")

    async def _run():
        dfd = dispatcher.dispatch("earthquake", {"epicenter": "Valdivia", "magnitude": 9.5})
        assert dfd.done()
        with pytest.raises(NoDestinationConfigured) as excinfo:
            await dfd
        return excinfo.value

    err = asyncio.run(_run())
    assert err.schema_name == "earthquake"
    assert err.event == {"epicenter": "Valdivia", "magnitude": 9.5}
    assert err.payload.startswith("_db=testwiki&_id=earthquake")
    assert transport.sent == []
    assert registry.lookup("earthquake").log == []


def test_unawaited_rejection_is_not_reported_as_unretrieved(registry, transport):
    dispatcher = EventDispatcher(registry, transport=transport, base_uri=None)
    reported = []

    async def _run():
        loop = asyncio.get_running_loop()
        loop.set_exception_handler(lambda _loop, context: reported.append(context["message"]))
        dispatcher.dispatch("earthquake", {"epicenter": "Valdivia", "magnitude": 9.5})
        await asyncio.sleep(0)
        gc.collect()

    asyncio.run(_run())
    assert reported == []


def test_completion_is_single_shot(registry, transport):
    dispatcher = _dispatcher(registry, transport)

    async def _run():
        dfd = dispatcher.dispatch("earthquake", {"epicenter": "Valdivia", "magnitude": 9.5})
        transport.complete()
        transport.complete()
        return await dfd

    asyncio.run(_run())
    assert len(registry.lookup("earthquake").log) == 1


def test_unknown_schema_is_auto_registered(registry, transport):
    dispatcher = _dispatcher(registry, transport)

    async def _run():
        with pytest.warns(UnknownSchemaWarning, match="Logging event with"):
            dfd = dispatcher.dispatch("pageview", {"skin": "vector"})
        transport.complete()
        return await dfd

    assert asyncio.run(_run()) == {"skin": "vector"}
    assert registry.lookup("pageview").log == [{"skin": "vector"}]
    assert "_rv=UNKNOWN&_ok=false" in transport.sent[0]


def test_from_settings_with_null_transport(registry):
    settings = Settings(base_uri=BASE_URI, origin="testwiki", transport="null")
    dispatcher = EventDispatcher.from_settings(settings, registry)
    assert isinstance(dispatcher.transport, NullTransport)

    async def _run():
        return await dispatcher.log_event("earthquake", {"epicenter": "Valdivia", "magnitude": 9.5})

    assert asyncio.run(_run()) == {"epicenter": "Valdivia", "magnitude": 9.5}
    assert dispatcher.transport.sent[0].startswith(BASE_URI + "?")


def test_create_transport_factory():
    assert isinstance(create_transport(None), HttpxBeaconTransport)
    assert isinstance(create_transport("null"), NullTransport)
    with pytest.raises(ValueError):
        create_transport("carrier-pigeon")


def _server_error(request):
    return httpx.Response(500)


def _refused(request):
    raise httpx.ConnectError("refused", request=request)


def _broken(request):
    raise RuntimeError("Event loop is closed")


@pytest.mark.parametrize("handler", [_server_error, _refused, _broken])
def test_beacon_completes_on_any_finished_exchange(registry, handler):
    async def _run():
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        beacon = HttpxBeaconTransport(client=client)
        dispatcher = _dispatcher(registry, beacon)
        sent = await asyncio.wait_for(dispatcher.dispatch("earthquake", {"epicenter": "Valdivia", "magnitude": 9.5}), 2.0)
        await client.aclose()
        return sent

    assert asyncio.run(_run()) == {"epicenter": "Valdivia", "magnitude": 9.5}


def test_beacon_reaches_collector_end_to_end(registry, monkeypatch, tmp_path):
    import eventlogging.main as main_mod

    out = tmp_path / "events.log"
    monkeypatch.setattr(main_mod, "writer", ServerSideEventWriter(str(out)))

    async def _run():
        client = httpx.AsyncClient(transport=httpx.ASGITransport(app=main_mod.app))
        beacon = HttpxBeaconTransport(client=client)
        dispatcher = _dispatcher(registry, beacon, base_uri="http://testserver/event")
        sent = await asyncio.wait_for(dispatcher.dispatch("earthquake", {"epicenter": "Valdivia", "magnitude": 9.5}), 5.0)
        await beacon.drain()
        await client.aclose()
        return sent

    assert asyncio.run(_run()) == {"epicenter": "Valdivia", "magnitude": 9.5}
    line = out.read_text(encoding="utf-8")
    assert line == "?_db=testwiki&_id=earthquake&_rv=42&_ok=true&epicenter=Valdivia&magnitude=9.5;\n"
