"""FastAPI application for the access orchestrator."""

from __future__ import annotations

import json

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from orchestrator.errors import ConfigError
from orchestrator.services.runtime import get_orchestrator

from .config import get_settings
from .logging_config import configure_logging, logger
from .routes import api_router


# Register global exception handlers for consistent error responses across the API
def register_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers for 422, HTTP, and 500 errors."""

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.debug("validation error", extra={"errors": exc.errors(), "path": str(request.url)})
        return JSONResponse(
            {"ok": False, "error": "Invalid request", "detail": jsonable_encoder(exc.errors())},
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    @app.exception_handler(HTTPException)
    async def _http_exception_handler(request: Request, exc: HTTPException):
        logger.debug(
            "http error",
            extra={"detail": exc.detail, "status": exc.status_code, "path": str(request.url)},
        )
        detail = exc.detail
        if not isinstance(detail, str):
            detail = json.dumps(detail)
        return JSONResponse({"ok": False, "error": detail}, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", extra={"path": str(request.url)})
        return JSONResponse(
            {"ok": False, "error": "Internal server error"},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


# Configure logging early
configure_logging()
_settings = get_settings()

# Create FastAPI app
app = FastAPI(
    title=_settings.app_name,
    version=_settings.app_version,
    docs_url=_settings.resolved_docs_url,
    redoc_url=None,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_allow_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
register_exception_handlers(app)

# Include aggregated router
app.include_router(api_router)


@app.on_event("startup")
async def _startup() -> None:
    """Load the orchestrator config and connect to the controller."""
    logger.info("Starting UniFi Access Orchestrator", extra={"version": _settings.app_version})

    try:
        orchestrator = get_orchestrator()
    except ConfigError as e:
        logger.error(f"Failed to load config: {e}")
        logger.info("Server will answer health checks only until a valid config is in place")
        return

    await orchestrator.start()
    logger.info(
        "Orchestrator started",
        extra={"config_path": _settings.config_path, "mode": orchestrator.config.event_source.mode.value},
    )


@app.on_event("shutdown")
async def _shutdown() -> None:
    """Stop background sync when the app stops."""
    logger.info("Shutting down UniFi Access Orchestrator")

    try:
        get_orchestrator().shutdown()
    except ConfigError as e:
        logger.debug(f"No orchestrator to shut down: {e}")

    logger.info("Shutdown complete")


__all__ = ["app"]
