"""
GrimSwap Relayer — API Entry Point.

Accepts ZK proofs from users and submits them to the chain, hiding the
user's identity by paying gas on their behalf.

Request Pipeline:
    1. Rate limiter (per client IP)
    2. Pydantic validation (schema boundary) → 400 on any malformed field
    3. RelayService pre-flight checks → simulate → send → confirm
    4. RelayError subclasses → JSON error body with a stable ``code``
"""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from relayer.api.deps import get_relay_service
from relayer.api.fee import fee_router
from relayer.api.relay import relay_router
from relayer.api.status import status_router
from relayer.core.config import Settings, settings as default_settings
from relayer.core.errors import RelayError
from relayer.middleware.rate_limit import RateLimiter, RateLimitMiddleware
from relayer.schemas.relay import RelayerInfo
from relayer.services.relay_service import RelayService

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _field_path(loc) -> str:
    path = ""
    for part in loc:
        if part in ("body", "query", "path"):
            continue
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path or "body"


def create_app(
    settings: Optional[Settings] = None,
    relay_service: Optional[RelayService] = None,
) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.LOG_LEVEL)
    boot_time = time.time()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Relayer for zero-knowledge private swaps",
        version=settings.VERSION,
    )
    app.state.settings = settings
    if relay_service is not None:
        app.state.relay_service = relay_service

    # --- Middleware ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    limiter = RateLimiter(
        points=settings.RATE_LIMIT_REQUESTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
        block_seconds=settings.RATE_LIMIT_BLOCK_SECONDS,
    )
    app.state.rate_limiter = limiter
    app.add_middleware(RateLimitMiddleware, limiter=limiter)

    # --- Error handling ---
    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError):
        request_id = getattr(request.state, "request_id", None)
        prefix = f"[RELAY {request_id}]" if request_id else "[RELAY]"
        if exc.status_code >= 500:
            logger.error(f"{prefix} {exc.code}: {exc.message} {exc.details or ''}")
        else:
            logger.warning(f"{prefix} {exc.code}: {exc.message} {exc.details or ''}")
        body = exc.to_dict()
        if request_id:
            body["requestId"] = request_id
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0]
        field = _field_path(first.get("loc", ()))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "error": f"Invalid {field}: {first.get('msg', 'invalid value')}",
                "field": field,
                "code": "VALIDATION_ERROR",
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = "Not found" if exc.status_code == 404 and exc.detail == "Not Found" else exc.detail
        return JSONResponse(status_code=exc.status_code, content={"error": message})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"[MAIN] Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )

    # --- Routes ---
    app.include_router(relay_router)
    app.include_router(status_router)
    app.include_router(fee_router)

    @app.get("/health", tags=["System"])
    def health_check():
        """Liveness only. Does not touch the chain."""
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": settings.VERSION,
            "uptime_seconds": round(time.time() - boot_time, 2),
        }

    @app.get("/info", response_model=RelayerInfo, tags=["System"])
    def info(request: Request) -> RelayerInfo:
        return get_relay_service(request).relayer_info()

    logger.info(f"[MAIN] {settings.PROJECT_NAME} v{settings.VERSION} configured for {settings.CHAIN_NAME}")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("relayer.main:app", host="0.0.0.0", port=default_settings.PORT)
