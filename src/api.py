"""
Status API - health, readiness and pass history over HTTP.

FastAPI application served by uvicorn next to the controller. Besides the
probes used by the operator's own deployment it lists recent reconcile
passes, streams them as Server-Sent Events and accepts manual reconcile
requests.
"""

import asyncio
import logging
from typing import List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from controller import Controller
from events import EventBus, PassEvent
from plugins.registry import PluginRegistry
from resources import NamespacedName

logger = logging.getLogger(__name__)


class PassResponse(BaseModel):
    """Response model for a reconcile pass record."""

    namespace: str
    name: str
    outcome: str
    timestamp: str
    duration_seconds: float
    requeue_after: Optional[int] = None
    error: Optional[str] = None


class ReconcileRequestResponse(BaseModel):
    namespace: str
    name: str
    status: str = "queued"


class PluginInfo(BaseModel):
    name: str
    version: str
    active: bool = False


def create_app(
    controller: Optional[Controller] = None,
    event_bus: Optional[EventBus] = None,
    registry: Optional[PluginRegistry] = None,
    active_deployer: Optional[str] = None,
) -> FastAPI:
    """
    Build the status API application.

    Routes:
    - Probes: GET /healthz, GET /readyz
    - History: GET /api/v1/passes
    - Streaming: GET /api/v1/events
    - Manual reconcile: POST /api/v1/namespaces/{ns}/kogitoruntimes/{name}/reconcile
    - Plugin discovery: GET /api/v1/plugins/deployers
    """
    app = FastAPI(
        title="Runtime Operator API",
        description="Status and control endpoints of the KogitoRuntime operator",
        version="1.0.0",
    )

    def require_controller() -> Controller:
        if controller is None:
            raise HTTPException(status_code=503, detail="Controller not available")
        return controller

    @app.get("/healthz")
    async def healthz():
        """Liveness probe."""
        return {"status": "ok", "service": "runtime-operator"}

    @app.get("/readyz")
    async def readyz():
        """Readiness probe; ready once watches and workers are running."""
        if controller is not None and controller.is_ready():
            return {"status": "ready"}
        return JSONResponse(status_code=503, content={"status": "not ready"})

    @app.get("/api/v1/passes", response_model=List[PassResponse])
    async def list_passes(
        namespace: Optional[str] = None,
        name: Optional[str] = None,
        limit: int = Query(50, ge=1, le=1000),
    ):
        """Recent reconcile passes, newest first."""
        ctrl = require_controller()
        return [
            PassResponse(**event.to_dict())
            for event in ctrl.recent_passes(namespace=namespace, name=name, limit=limit)
        ]

    @app.post(
        "/api/v1/namespaces/{namespace}/kogitoruntimes/{name}/reconcile",
        response_model=ReconcileRequestResponse,
        status_code=202,
    )
    async def trigger_reconciliation(namespace: str, name: str):
        """Manually enqueue a reconcile pass."""
        ctrl = require_controller()
        key = NamespacedName(namespace, name)
        logger.info(f"Manually triggering reconciliation for {key}")
        ctrl.enqueue(key)
        return ReconcileRequestResponse(namespace=namespace, name=name)

    @app.get("/api/v1/plugins/deployers", response_model=List[PluginInfo])
    async def list_deployers():
        """List registered deployer plugins."""
        if registry is None:
            raise HTTPException(status_code=503, detail="Registry not available")
        plugins = []
        for plugin_name in registry.list_deployers():
            info = registry.get_deployer_info(plugin_name)
            plugins.append(
                PluginInfo(
                    name=info["name"],
                    version=info["version"],
                    active=plugin_name == active_deployer,
                )
            )
        return plugins

    @app.get("/api/v1/events")
    async def stream_events(namespace: Optional[str] = None):
        """SSE stream of reconcile passes, optionally for one namespace."""
        if event_bus is None:
            raise HTTPException(
                status_code=503,
                detail="Event streaming not available",
            )

        if namespace:

            def filter_fn(event: PassEvent) -> bool:
                return event.namespace == namespace

        else:
            filter_fn = None

        subscriber_id, subscription = event_bus.subscribe(filter_fn)

        async def event_generator():
            try:
                async for event in subscription:
                    yield event.to_sse()
            except asyncio.CancelledError:
                pass
            finally:
                event_bus.unsubscribe(subscriber_id)

        return StreamingResponse(
            event_generator(),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "X-Accel-Buffering": "no",
            },
        )

    return app


class APIServer:
    """Runs the status API with uvicorn inside the operator's event loop."""

    def __init__(self, app: FastAPI, host: str = "0.0.0.0", port: int = 8081):
        self.app = app
        self.host = host
        self.port = port
        self.server: Optional[uvicorn.Server] = None

    async def start(self) -> None:
        """Start the HTTP server and serve until stopped."""
        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level="info",
        )
        self.server = uvicorn.Server(config)

        logger.info(f"Starting status API on {self.host}:{self.port}")
        await self.server.serve()

    async def stop(self) -> None:
        """Stop the HTTP server gracefully."""
        logger.info("Stopping status API")
        if self.server:
            self.server.should_exit = True
