"""
Probe Server - Liveness, readiness, and recent reconciliation history.

A small FastAPI app served by uvicorn alongside the controller, so the
operator's Deployment can point its probes at it.
"""

import logging
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse

from controller import Controller
from watcher import Watcher

logger = logging.getLogger(__name__)


def create_probe_app(
    controller: Controller, watcher: Optional[Watcher] = None
) -> FastAPI:
    """
    Build the probe app.

    Endpoints:
    - GET /healthz: process is alive
    - GET /readyz: controller running and initial lists complete
    - GET /api/v1/reconciliations: most recent reconciliation records

    Args:
        controller: The running controller
        watcher: The watcher, if readiness should wait for the initial lists

    Returns:
        The FastAPI application
    """
    app = FastAPI(
        title="SimpleApp Operator",
        description="Health probes and reconciliation history",
        version="1.0.0",
    )

    @app.get("/healthz")
    async def healthz() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/readyz")
    async def readyz():
        if not controller.running:
            return JSONResponse(
                status_code=503,
                content={"status": "not ready", "reason": "controller not running"},
            )
        if watcher is not None and not watcher.has_synced:
            return JSONResponse(
                status_code=503,
                content={"status": "not ready", "reason": "caches not synced"},
            )
        return {"status": "ok"}

    @app.get("/api/v1/reconciliations")
    async def reconciliations(
        limit: int = Query(20, ge=1, le=1000),
    ) -> List[Dict[str, Any]]:
        return controller.recent_reconciliations(limit)

    return app


class ProbeServer:
    """Runs the probe app under uvicorn inside the operator's event loop."""

    def __init__(self, app: FastAPI, host: str = "0.0.0.0", port: int = 8081):
        self.app = app
        self.host = host
        self.port = port
        self.server: Optional[uvicorn.Server] = None

    async def start(self) -> None:
        """Serve until stop() is called."""
        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level="warning",
        )
        self.server = uvicorn.Server(config)

        logger.info(f"Starting probe server on {self.host}:{self.port}")
        await self.server.serve()

    async def stop(self) -> None:
        """Ask the server to exit."""
        logger.info("Stopping probe server")
        if self.server:
            self.server.should_exit = True
