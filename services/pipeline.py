"""Ingestion orchestration: normalize, then dual-write to the store."""

from __future__ import annotations

import asyncio
import logging
import time
from functools import lru_cache
from typing import Any, Mapping, Optional

from models.records import CURRENT_LEG, HISTORY_LEG, Credential, IngestResult, WriteResult
from services.credentials import CredentialManager
from services.errors import PartialOrFullWriteFailure, StoreError
from services.health import HealthReporter
from services.normalizer import TelemetryNormalizer
from services.store_client import StoreWriteClient
from settings import get_settings

logger = logging.getLogger(__name__)

TEST_PATH = "test"


class IngestionPipeline:
    """Coordinates normalization, credential lookup and the two store writes."""

    def __init__(
        self,
        normalizer: TelemetryNormalizer,
        store: StoreWriteClient,
        credentials: CredentialManager,
    ) -> None:
        self.normalizer = normalizer
        self.store = store
        self.credentials = credentials
        self.health = HealthReporter(store.base_url, credentials.auth_mode)

    async def ingest(self, raw: Mapping[str, Any]) -> IngestResult:
        """Validate one payload and write it to the current and history paths.

        Raises ``ValidationError`` before any I/O when required fields are
        bad, and ``PartialOrFullWriteFailure`` when either write fails. The
        two writes are independent: the store offers no multi-key
        transaction, so a failed history write leaves the current value in
        place and is reported rather than rolled back.
        """
        reading = self.normalizer.normalize(raw)
        credential = self.credentials.current()
        document = reading.to_document()

        current, history = await asyncio.gather(
            self._write_leg(CURRENT_LEG, reading.current_path, document, credential),
            self._write_leg(HISTORY_LEG, reading.history_path, document, credential),
        )
        result = IngestResult(
            device_id=reading.device_id,
            timestamp_millis=reading.timestamp_millis,
            current=current,
            history=history,
        )

        if result.failed_legs:
            logger.error(
                "Dual write incomplete",
                extra={
                    "device_id": result.device_id,
                    "timestamp": result.timestamp_millis,
                    "outcome": result.outcome,
                },
            )
            raise PartialOrFullWriteFailure(result)

        logger.info(
            "Reading stored",
            extra={"device_id": result.device_id, "timestamp": result.timestamp_millis},
        )
        return result

    async def check_store(self) -> WriteResult:
        """Write a throwaway document to verify the store accepts writes."""
        document = {
            "test": True,
            "timestamp": time.time_ns() // 1_000_000,
            "message": "Test connection from ingest proxy",
        }
        return await self.store.write_at(
            TEST_PATH, document, self.credentials.current(), leg="test"
        )

    async def start(self) -> None:
        self.credentials.start()

    async def shutdown(self) -> None:
        try:
            await self.credentials.stop()
        finally:
            await self.store.aclose()

    async def _write_leg(
        self,
        leg: str,
        path: str,
        document: Mapping[str, Any],
        credential: Optional[Credential],
    ) -> WriteResult:
        try:
            return await self.store.write_at(path, document, credential, leg=leg)
        except StoreError as exc:
            return WriteResult(
                leg=leg,
                path=path,
                ok=False,
                status_code=exc.status_code,
                error=str(exc),
            )


@lru_cache
def build_default_pipeline() -> IngestionPipeline:
    """Factory that wires the pipeline from environment settings."""
    settings = get_settings()
    store_url = settings.require_store_url()
    store = StoreWriteClient(store_url, timeout=settings.store_timeout_seconds)
    credentials = CredentialManager(
        api_key=settings.store_api_key,
        issuance_url=settings.issuance_url,
        refresh_interval=settings.credential_refresh_seconds,
        timeout=settings.store_timeout_seconds,
    )
    normalizer = TelemetryNormalizer(default_device_id=settings.default_device_id)
    return IngestionPipeline(normalizer=normalizer, store=store, credentials=credentials)
