""" main.py: FastAPI application entry point for the FazAI daemon.

This module builds the ASGI app, mounts the command, admin and health routers, configures CORS from the
settings, records per-request Prometheus metrics and exposes them at /metrics. Native extensions are loaded
when the app starts and cleaned up when it stops. When executed directly, it starts a Uvicorn server using
host/port values from configuration.
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from config import SETTINGS
from monitoring.metrics import REQUEST_COUNT, REQUEST_LATENCY
from services.extensions import extension_manager
from version import __version__

# --- Router Imports ---
from api import admin as admin_router
from api import command as command_router
from api.health import router as health_router

# Get a logger instance for this module
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    names = extension_manager.reload(SETTINGS.current().extensions)
    logger.info("FazAI daemon %s started with %d extension(s)", __version__, len(names))
    yield
    extension_manager.shutdown()
    logger.info("FazAI daemon stopped")


app = FastAPI(title="FazAI", version=__version__, lifespan=lifespan)

# Include routers
app.include_router(health_router, tags=["Health"])
app.include_router(command_router.router, prefix="/api", tags=["Command"])
app.include_router(admin_router.router, prefix="/api", tags=["Admin"])

# Add Prometheus metrics endpoint
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.middleware("http")
async def record_request_metrics(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    REQUEST_LATENCY.labels(method=request.method, endpoint=endpoint).observe(time.time() - start_time)
    REQUEST_COUNT.labels(method=request.method, endpoint=endpoint, status=str(response.status_code)).inc()
    return response


# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(SETTINGS.current().cors_allow_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# The uvicorn server is used to run the FastAPI application.
if __name__ == '__main__':
    import uvicorn
    server = SETTINGS.current().server
    logger.info("[__main__] Starting Uvicorn server on %s:%s", server.host, server.port)
    uvicorn.run(app, host=server.host, port=server.port)
