import os
from email.utils import formatdate

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from eventlogging import __version__
from eventlogging.cache import ModelCache, create_cache_store
from eventlogging.config import load_settings
from eventlogging.server_side import ServerSideEventWriter
from eventlogging.utils.logger_util import get_logger, logging
from eventlogging.wire import parse_payload

logger = get_logger(__name__, logging.DEBUG)

settings = load_settings()
settings.log_unset()

app = FastAPI(title="eventlogging", version=__version__)
# shared cache (memory for dev, redis for a fleet of workers)
cache_store = create_cache_store(settings.cache_backend)
model_cache = ModelCache.from_settings(settings, store=cache_store)
writer = ServerSideEventWriter(settings.event_file, origin=settings.origin)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/schemas/{name}")
def get_schema(name: str):
    # sync handler: runs in the threadpool since a cache miss may block on HTTP
    model = model_cache.get_model(name)
    mtime = model_cache.get_modified_time(name)
    return JSONResponse(model, headers={"Last-Modified": formatdate(mtime, usegmt=True)})


@app.get("/event")
def collect_event(request: Request):
    raw = request.url.query
    parsed = parse_payload(raw)
    if parsed.truncated:
        logger.warning("truncated event payload for schema %s: %r", parsed.schema_name, raw)
    elif parsed.valid is False:
        logger.debug("event for schema %s was flagged invalid by its producer", parsed.schema_name)
    writer.write_line(raw)
    # beacons only look at the status line
    return Response(status_code=204)


if __name__ == "__main__":
    uvicorn.run(
        app,
        host=os.environ.get("EVENTLOGGING_HOST", "127.0.0.1"),
        port=int(os.environ.get("EVENTLOGGING_PORT", "8000")),
    )
