"""Rescan gate FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app() — testable application factory
  - lifespan — @asynccontextmanager startup/shutdown sequence
  - /        route  — service discovery root
  - app = create_app() — module-level instance for uvicorn

Startup sequence:
  1. load_config()              → app.state.config
  2. create_xray_http_client()  → app.state.xray_http_client
  3. app.state.ready = True

Shutdown sequence (reverse):
  app.state.ready = False → close Xray HTTP client
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRouter

from rescan_gate.auth.middleware import is_auth_required
from rescan_gate.config import Config, load_config
from rescan_gate.health import router as health_router
from rescan_gate.utils.logger import configure_logging, get_logger
from rescan_gate.webhook.router import (
    BEFORE_DOWNLOAD_PATH,
    malformed_request_response,
    router as webhook_router,
)
from rescan_gate.xray.client import create_xray_http_client

# ─── Logging Setup ────────────────────────────────────────────────────────────
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)


root_router = APIRouter(tags=["root"])


# ─── Dependencies ─────────────────────────────────────────────────────────────


async def require_ready(request: Request) -> None:
    """FastAPI dependency: raises HTTP 503 if app.state.ready is not True."""
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={
                "status": "starting",
                "message": "Rescan gate is starting up...",
            },
        )


@root_router.get("/")
async def root() -> dict[str, str]:
    """Service identity / discovery."""
    return {
        "service": "rescan-gate",
        "description": "Blocks downloads of unscanned artifacts and triggers a targeted Xray reindex",
        "webhook": BEFORE_DOWNLOAD_PATH,
        "health": "/health",
    }


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan — startup and shutdown sequence."""
    logger.info("Rescan gate starting up...")

    # load_config() raises SystemExit on an invalid file, before ready=True is set
    config: Config = load_config()
    app.state.config = config

    if is_auth_required() and not config.auth.key_hashes:
        logger.warning(
            "Gate key auth is required but auth.key_hashes is empty; "
            "every webhook call will be rejected with 401. "
            "Run 'rescan-gate hash-key' to mint a key."
        )

    # One pooled client for every Xray call; never instantiated per request
    xray_http_client: httpx.AsyncClient = create_xray_http_client(config.xray)
    app.state.xray_http_client = xray_http_client
    logger.info(
        "Xray HTTP client created",
        base_url=config.xray.base_url,
        authenticated=bool(config.xray.access_token),
        timeout_s=config.xray.timeout_s,
    )

    app.state.ready = True
    logger.info(
        "Rescan gate ready",
        gated_repositories=config.gate.repositories or "all",
    )

    yield

    logger.info("Rescan gate shutting down...")
    app.state.ready = False

    try:
        await xray_http_client.aclose()
        logger.info("Xray HTTP client closed")
    except Exception as exc:
        logger.warning("Xray HTTP client close error (non-fatal)", error=str(exc))

    logger.info("Rescan gate shutdown complete")


# ─── Application Factory ──────────────────────────────────────────────────────


def create_app() -> FastAPI:
    """Create and configure the rescan gate FastAPI application.

    Call this directly in tests to get an isolated app instance. The
    module-level ``app`` is what uvicorn serves.
    """
    # OpenAPI docs only in DEBUG: no need to advertise the webhook schema
    _debug = os.getenv("DEBUG", "false").lower() == "true"

    application = FastAPI(
        title="Rescan Gate",
        description="Request-time Xray scan gate for artifact downloads",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if _debug else None,
        redoc_url="/redoc" if _debug else None,
        openapi_url="/openapi.json" if _debug else None,
    )

    # Set before lifespan so early requests see 503
    application.state.ready = False

    application.include_router(root_router)
    application.include_router(health_router)
    application.include_router(webhook_router, dependencies=[Depends(require_ready)])

    # ── Exception handlers ────────────────────────────────────────────────────
    @application.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        # The host must always get a verdict; an unparseable download request is STOP.
        if request.url.path == BEFORE_DOWNLOAD_PATH:
            logger.error(
                "Malformed download request, STOPPING",
                errors=exc.errors(),
            )
            return JSONResponse(
                status_code=200,
                content=malformed_request_response().model_dump(mode="json"),
            )
        return JSONResponse(status_code=422, content={"error": jsonable_encoder(exc.errors())})

    @application.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=str(request.url.path),
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
        )
        return JSONResponse(
            status_code=500, content={"error": "Internal server error"}
        )

    return application


app = create_app()
