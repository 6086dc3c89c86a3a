"""HTTP route definitions for the service."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from app.schemas import (
    ErrorResponse,
    HealthResponse,
    IngestAck,
    StoreCheckResponse,
    WriteFailureResponse,
    WriteOutcome,
)
from services.errors import PartialOrFullWriteFailure, StoreError, ValidationError
from services.pipeline import IngestionPipeline, build_default_pipeline
from settings import get_settings

logger = logging.getLogger(__name__)

router = APIRouter()


def get_pipeline() -> IngestionPipeline:
    return build_default_pipeline()


def _error(status_code: int, payload: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=payload.model_dump(exclude_none=True))


async def _read_body(request: Request) -> Dict[str, Any]:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        try:
            form = await request.form()
        except (MultiPartException, StarletteHTTPException) as exc:
            raise ValueError(f"malformed form body ({exc})") from exc
        return dict(form)

    raw = await request.body()
    if not raw.strip():
        return {}
    payload = json.loads(raw)
    if not isinstance(payload, dict):
        raise ValueError("body must be a JSON object")
    return payload


@router.post(
    "/sensor-data",
    response_model=IngestAck,
    responses={
        400: {"model": ErrorResponse},
        500: {"model": WriteFailureResponse},
        504: {"model": ErrorResponse},
    },
    summary="Receive one telemetry reading from a device.",
)
async def ingest_sensor_data(
    request: Request,
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> Any:
    try:
        raw = await _read_body(request)
    except ValueError as exc:
        return _error(
            status.HTTP_400_BAD_REQUEST,
            ErrorResponse(error="invalid_body", details=f"Could not parse request body: {exc}"),
        )

    timeout = get_settings().ingest_timeout_seconds
    try:
        result = await asyncio.wait_for(pipeline.ingest(raw), timeout=timeout)
    except ValidationError as exc:
        logger.warning("Rejected reading", extra={"reason": str(exc)})
        return _error(
            status.HTTP_400_BAD_REQUEST,
            ErrorResponse(
                error=exc.kind,
                details=f"Invalid data format: {exc.detail}",
                field=exc.field,
            ),
        )
    except PartialOrFullWriteFailure as exc:
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            WriteFailureResponse(
                error=exc.kind,
                details=str(exc),
                outcome=exc.outcome,
                failed_legs=list(exc.failed_legs),
                device_id=exc.result.device_id,
                timestamp=exc.result.timestamp_millis,
                results=[WriteOutcome.from_result(r) for r in exc.result.results],
            ),
        )
    except asyncio.TimeoutError:
        logger.error("Ingest timed out", extra={"reason": f"exceeded {timeout}s"})
        return _error(
            status.HTTP_504_GATEWAY_TIMEOUT,
            ErrorResponse(error="timeout", details=f"Store writes did not finish within {timeout}s"),
        )

    return IngestAck(device_id=result.device_id, timestamp=result.timestamp_millis)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck(pipeline: IngestionPipeline = Depends(get_pipeline)) -> HealthResponse:
    return HealthResponse(**pipeline.health.status())


@router.get(
    "/test-store",
    response_model=StoreCheckResponse,
    responses={500: {"model": ErrorResponse}},
    summary="Write a throwaway document to verify store connectivity.",
)
async def test_store(pipeline: IngestionPipeline = Depends(get_pipeline)) -> Any:
    try:
        result = await pipeline.check_store()
    except StoreError as exc:
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ErrorResponse(error=exc.kind, details=str(exc), status_code=exc.status_code),
        )
    return StoreCheckResponse(path=result.path, status_code=result.status_code)
