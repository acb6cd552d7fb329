"""FastAPI application factory for the voice proxy."""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from ..config import MaddoxConfig
from ..errors import RangeNotSatisfiableError, VoiceError
from .routes import router
from .services import VoiceServices

logger = logging.getLogger(__name__)

LOG_LINE_LIMIT = 80


async def voice_error_handler(request: Request, exc: VoiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    headers = None
    if isinstance(exc, RangeNotSatisfiableError):
        headers = {"Content-Range": f"bytes */{exc.size}"}
    return JSONResponse(exc.to_payload(), status_code=exc.status_code, headers=headers)


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(
        {"success": False, "message": f"Invalid request: {message}"}, status_code=400
    )


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        {"success": False, "message": str(exc) or "Internal Server Error"},
        status_code=500,
    )


def create_app(
    config: MaddoxConfig | None = None, services: VoiceServices | None = None
) -> FastAPI:
    """Create the voice proxy application.

    Args:
        config: Configuration; defaults plus environment secrets when omitted
        services: Pre-built services (tests pass fakes here); built from
            config when omitted

    Returns:
        Configured FastAPI application
    """
    config = config or MaddoxConfig()
    services = services or VoiceServices.from_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Server starting...")
        services.log_status()
        yield
        logger.info("Server stopped")

    app = FastAPI(title="maddox voice proxy", lifespan=lifespan)
    app.state.services = services
    app.state.config = config

    if config.server.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(config.server.cors_origins),
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE"],
            allow_headers=["Content-Type", "Authorization", "Range"],
            expose_headers=["Content-Type", "Content-Length", "Content-Range"],
        )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):  # type: ignore[no-untyped-def]
        start = time.perf_counter()
        response = await call_next(request)
        path = request.url.path
        if path.startswith("/api"):
            duration = int((time.perf_counter() - start) * 1000)
            line = f"{request.method} {path} {response.status_code} in {duration}ms"
            if len(line) > LOG_LINE_LIMIT:
                line = line[: LOG_LINE_LIMIT - 1] + "…"
            logger.info(line)
        return response

    app.add_exception_handler(VoiceError, voice_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.include_router(router)

    # Legacy endpoints kept as redirects for old clients
    @app.post("/api/maddox-query")
    async def legacy_query() -> RedirectResponse:
        return RedirectResponse("/api/voice/synthesize", status_code=307)

    @app.get("/api/audio/{filename}")
    async def legacy_audio(filename: str) -> RedirectResponse:
        return RedirectResponse(f"/api/voice/audio/{filename}", status_code=307)

    return app
