from __future__ import annotations
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from app.api import router
from logging_config import configure_logging, redact_secrets
from services.pipeline import build_default_pipeline
from settings import get_settings

logger = logging.getLogger(__name__)


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Logs one line per request with method, target, status and timing."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        target = request.url.path
        if request.url.query:
            target = f"{target}?{request.url.query}"
        target = redact_secrets(target)

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Request failed",
                extra={"method": request.method, "path": target, "client": client_ip},
            )
            raise

        level = logging.DEBUG if request.method == "OPTIONS" else logging.INFO
        logger.log(
            level,
            "Request handled",
            extra={
                "method": request.method,
                "path": target,
                "status": response.status_code,
                "duration_ms": round((time.perf_counter() - start) * 1000, 1),
                "client": client_ip,
            },
        )
        return response


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    pipeline = build_default_pipeline()
    logger.info(
        "Ingest proxy starting",
        extra={"path": pipeline.store.base_url, "auth_mode": pipeline.credentials.auth_mode},
    )
    await pipeline.start()
    try:
        yield
    finally:
        await pipeline.shutdown()
        build_default_pipeline.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Sensor Ingest Proxy",
        description="Normalizes device telemetry and forwards it to a key-path document store.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(RequestLogMiddleware)

    # Devices and dashboards post from arbitrary origins unless narrowed.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(get_settings().cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app

app = create_app()
