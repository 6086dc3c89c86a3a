"""HTTP client for the remote key-path document store."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from models.records import Credential, WriteResult
from services.errors import StoreRejected, StoreUnavailable

logger = logging.getLogger(__name__)


class StoreWriteClient:
    """Upserts JSON documents at ``{base_url}/{path}.json``.

    The credential travels as the ``auth`` query parameter. Requests are
    attempted once; retrying is left to the caller.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    def url_for(self, path: str) -> str:
        segments = (quote(segment, safe="") for segment in path.strip("/").split("/"))
        return f"{self.base_url}/{'/'.join(segments)}.json"

    async def write_at(
        self,
        path: str,
        document: Any,
        credential: Optional[Credential],
        leg: str = "current",
    ) -> WriteResult:
        response = await self._send("PUT", path, credential, json=document)
        logger.debug(
            "Store write accepted",
            extra={"leg": leg, "path": path, "store_status": response.status_code},
        )
        return WriteResult(leg=leg, path=path, ok=True, status_code=response.status_code)

    async def read_at(self, path: str, credential: Optional[Credential]) -> Any:
        response = await self._send("GET", path, credential)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise StoreRejected(path, response.status_code, response.text.strip()) from exc

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(
        self,
        method: str,
        path: str,
        credential: Optional[Credential],
        json: Any = None,
    ) -> httpx.Response:
        params: Dict[str, str] = {}
        if credential is not None:
            params["auth"] = credential.token

        try:
            response = await self._client.request(
                method, self.url_for(path), params=params, json=json
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "Store request failed before a response was read",
                extra={"path": path, "reason": type(exc).__name__},
            )
            raise StoreUnavailable(path, str(exc) or type(exc).__name__) from exc

        if not response.is_success:
            body = response.text.strip()
            logger.warning(
                "Store rejected request",
                extra={"path": path, "store_status": response.status_code, "reason": body[:200]},
            )
            raise StoreRejected(path, response.status_code, body)
        return response
