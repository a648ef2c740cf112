"""FastAPI application serving pool quotes.

Note: Authentication and rate limiting are left to the infrastructure layer
(reverse proxy / load balancer); the API is read-only.
"""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from weighted_pool import __version__
from weighted_pool.api.endpoints import get_registry, router
from weighted_pool.errors import PoolError

# Configuration from environment variables with sensible defaults
HOST = os.environ.get("POOL_API_HOST", "0.0.0.0")
PORT = int(os.environ.get("POOL_API_PORT", "8000"))
DEBUG = os.environ.get("POOL_API_DEBUG", "false").lower() in ("true", "1", "yes")
# JSON pools file loaded at startup (see pools.example.json)
POOLS_FILE = os.environ.get("POOL_API_POOLS_FILE")

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Load the configured pools file into the registry before serving."""
    if POOLS_FILE:
        get_registry().load_file(Path(POOLS_FILE))
    else:
        logger.warning("no_pools_file", hint="set POOL_API_POOLS_FILE to serve pools")
    yield


app = FastAPI(
    lifespan=lifespan,
    title="Weighted Pool Quotes",
    description="Read-only quotes for weighted stableswap pools",
    version=__version__,
)

app.include_router(router)


@app.exception_handler(PoolError)
async def pool_error_handler(request: Request, exc: PoolError) -> JSONResponse:
    """Map pool domain errors to 422 with the error class name."""
    logger.info("quote_rejected", path=request.url.path, error=type(exc).__name__, detail=str(exc))
    return JSONResponse(status_code=422, content={"detail": str(exc), "error": type(exc).__name__})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Map malformed quote arguments to 422."""
    logger.info("quote_rejected", path=request.url.path, error="ValueError", detail=str(exc))
    return JSONResponse(status_code=422, content={"detail": str(exc), "error": "ValueError"})


@app.get("/health")
async def health() -> dict[str, object]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


def configure_logging(debug: bool = DEBUG) -> None:
    """Configure structlog for console output."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if debug else logging.INFO),
    )


def run() -> None:
    """Run the quote API server.

    Configuration via environment variables:
    - POOL_API_HOST: Host to bind to (default: 0.0.0.0)
    - POOL_API_PORT: Port to bind to (default: 8000)
    - POOL_API_DEBUG: Enable debug logging and reload mode (default: false)
    - POOL_API_POOLS_FILE: JSON pools file served by the API (default: none)
    """
    configure_logging()
    uvicorn.run(
        "weighted_pool.api.main:app",
        host=HOST,
        port=PORT,
        reload=DEBUG,
    )


if __name__ == "__main__":
    run()
