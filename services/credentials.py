"""Background-refreshed store credential."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from threading import Lock
from typing import Optional

import httpx

from models.records import Credential
from services.errors import CredentialIssuanceError

logger = logging.getLogger(__name__)

AUTHENTICATED_MODE = "anonymous-auth"
UNAUTHENTICATED_MODE = "store-rules-only"


class CredentialManager:
    """Owns the single credential slot shared with request handlers.

    ``refresh`` performs network I/O outside the lock and only swaps the
    reference under it, so ``current`` never waits on issuance.
    """

    def __init__(
        self,
        api_key: Optional[str],
        issuance_url: str,
        refresh_interval: float = 50 * 60.0,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.issuance_url = issuance_url
        self.refresh_interval = refresh_interval
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._credential: Optional[Credential] = None
        self._lock = Lock()
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def auth_mode(self) -> str:
        return AUTHENTICATED_MODE if self.api_key else UNAUTHENTICATED_MODE

    def current(self) -> Optional[Credential]:
        with self._lock:
            return self._credential

    async def refresh(self) -> Optional[Credential]:
        """Obtain a new credential, or ``None`` when issuance is unavailable."""
        if not self.api_key:
            logger.warning(
                "No store API key configured, skipping credential issuance",
                extra={"auth_mode": self.auth_mode},
            )
            return None

        try:
            credential = await self._issue()
        except CredentialIssuanceError as exc:
            logger.error(
                "Credential issuance failed, continuing with store rules only",
                extra={"reason": str(exc), "store_status": exc.status_code},
            )
            return None

        with self._lock:
            self._credential = credential
        logger.info(
            "Store credential refreshed",
            extra={"auth_mode": self.auth_mode},
        )
        return credential

    def start(self) -> Optional[asyncio.Task[None]]:
        """Spawn the periodic refresh task on the running loop."""
        if not self.api_key:
            logger.warning(
                "Credential refresh disabled; writes rely on store rules",
                extra={"auth_mode": self.auth_mode},
            )
            return None
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(
                self._refresh_forever(), name="credential-refresh"
            )
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        try:
            if task is not None:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        finally:
            await self._client.aclose()

    async def _refresh_forever(self) -> None:
        while True:
            try:
                await self.refresh()
            except Exception:
                # The previous credential stays in place until the next tick.
                logger.exception(
                    "Credential refresh iteration failed",
                    extra={"auth_mode": self.auth_mode},
                )
            await asyncio.sleep(self.refresh_interval)

    async def _issue(self) -> Credential:
        try:
            response = await self._client.post(
                self.issuance_url,
                params={"key": self.api_key},
                json={"returnSecureToken": True},
            )
        except httpx.HTTPError as exc:
            raise CredentialIssuanceError(f"issuance request failed: {exc}") from exc

        if not response.is_success:
            raise CredentialIssuanceError(
                f"issuance endpoint returned {response.status_code}: {response.text.strip()[:200]}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise CredentialIssuanceError("issuance response is not JSON") from exc

        token = payload.get("idToken") if isinstance(payload, dict) else None
        if not isinstance(token, str) or not token:
            raise CredentialIssuanceError("issuance response is missing idToken")

        return Credential(
            token=token,
            obtained_at=datetime.now(timezone.utc),
            user_id=payload.get("localId"),
        )
