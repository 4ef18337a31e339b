"""Management API - registry operations, trigger and persist over HTTP."""
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from hookcast.api.deps import get_hub
from hookcast.errors import (
    EngineClosed,
    InvalidEndpoint,
    PersistenceFailure,
    UnknownTopic,
)
from hookcast.hub import WebhookHub

logger = logging.getLogger(__name__)


class EndpointsIn(BaseModel):
    endpoints: list[str]


class TriggerIn(BaseModel):
    body: Any = None
    headers: dict[str, str | list[str]] = {}
    wait: bool = False


def create_app(hub: WebhookHub) -> FastAPI:
    """Build the app around an existing hub. The app starts and closes it."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await hub.start()
        try:
            yield
        finally:
            await hub.close()

    app = FastAPI(title="hookcast", lifespan=lifespan)
    app.state.hub = hub

    @app.exception_handler(UnknownTopic)
    async def unknown_topic(request: Request, exc: UnknownTopic):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidEndpoint)
    async def invalid_endpoint(request: Request, exc: InvalidEndpoint):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(PersistenceFailure)
    async def persistence_failure(request: Request, exc: PersistenceFailure):
        logger.error("Persist failed: %s", exc)
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.exception_handler(EngineClosed)
    async def engine_closed(request: Request, exc: EngineClosed):
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.get("/topics")
    async def list_topics(hub: WebhookHub = Depends(get_hub)):
        return {topic: list(urls) for topic, urls in hub.registry.get_all().items()}

    @app.get("/topics/{topic}")
    async def get_topic(topic: str, hub: WebhookHub = Depends(get_hub)):
        return {"topic": topic, "endpoints": list(hub.registry.get(topic))}

    @app.post("/topics/{topic}/endpoints")
    async def add_endpoints(topic: str, payload: EndpointsIn, hub: WebhookHub = Depends(get_hub)):
        added = hub.registry.add_all(topic, payload.endpoints)
        return {"topic": topic, "added": added, "endpoints": list(hub.registry.get(topic))}

    @app.delete("/topics/{topic}/endpoints")
    async def remove_endpoints(topic: str, payload: EndpointsIn, hub: WebhookHub = Depends(get_hub)):
        removed = hub.registry.remove_all_endpoints(topic, payload.endpoints)
        return {"topic": topic, "removed": removed, "endpoints": list(hub.registry.get(topic))}

    @app.delete("/topics/{topic}")
    async def remove_topic(topic: str, hub: WebhookHub = Depends(get_hub)):
        hub.registry.remove_topic(topic)
        return {"topic": topic, "removed": True}

    @app.post("/topics/{topic}/trigger")
    async def trigger(topic: str, payload: TriggerIn, hub: WebhookHub = Depends(get_hub)):
        handle = hub.trigger(topic, payload.body, payload.headers)
        if not payload.wait:
            return JSONResponse(
                status_code=202,
                content={
                    "trigger_id": handle.trigger_id,
                    "topic": topic,
                    "endpoints": list(handle.endpoints),
                },
            )
        records = await handle.wait()
        return {
            "trigger_id": handle.trigger_id,
            "topic": topic,
            "results": [r.to_dict() for r in records],
        }

    @app.post("/persist")
    async def persist(hub: WebhookHub = Depends(get_hub)):
        hub.persist()
        return {"persisted": hub.store is not None, "topics": len(hub.registry)}

    @app.get("/dispatches")
    async def dispatches(limit: int = 100, topic: str | None = None, hub: WebhookHub = Depends(get_hub)):
        if hub.dispatch_log is None:
            raise HTTPException(status_code=404, detail="Dispatch log is disabled")
        return hub.dispatch_log.get_recent(limit=limit, topic=topic)

    return app
