"""
OLED RPC Server API - HTTP endpoints

Provides the communication interface for local clients:
- JSON-RPC 2.0 endpoint (write, clear, flush) at POST /
- Health endpoint reporting display availability
"""

import logging
import time

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from fastapi.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

# API Router for the RPC and health endpoints
router = APIRouter()


# Dependency provider for DI
def get_server(request: Request):
    # The lifespan attaches the ServerApp to `app.state.server` after startup;
    # requests arriving before that get a 503 rather than an AttributeError.
    server = getattr(request.app.state, "server", None)
    if server is None or server.rpc_handler is None:
        raise HTTPException(status_code=503, detail="Server not ready")
    return server


@router.post("/")
async def rpc_endpoint(request: Request, server=Depends(get_server)):
    """JSON-RPC 2.0 endpoint. Commands run in the worker thread pool."""
    body = await request.body()
    logger.debug(f"RPC request ({len(body)} bytes)")
    result = await run_in_threadpool(server.rpc_handler.handle_raw, body)
    if result is None:
        return Response(status_code=204)
    return JSONResponse(result)


@router.get("/health")
async def health_check(server=Depends(get_server)):
    """Health check reporting whether the display is still usable."""
    resource = server.display_resource
    degraded = resource is None or resource.faulted
    return {
        "status": "degraded" if degraded else "healthy",
        "display": resource.get_stats() if resource is not None else None,
        "timestamp": time.time(),
    }
