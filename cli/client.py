from __future__ import annotations

from typing import Any, Dict, Mapping, NoReturn

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Thin synchronous wrapper over the proxy's HTTP endpoints."""

    def __init__(self, config: CLIConfig, transport: httpx.BaseTransport | None = None) -> None:
        self._config = config
        self._http = httpx.Client(
            base_url=config.base_url, timeout=config.timeout, transport=transport
        )

    def close(self) -> None:
        self._http.close()

    def send_reading(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self._call("POST", "/sensor-data", json=dict(payload))

    def health(self) -> Dict[str, Any]:
        return self._call("GET", "/health")

    def test_store(self) -> Dict[str, Any]:
        return self._call("GET", "/test-store")

    def _call(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = self._http.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            self._fail(f"Could not reach {self._config.base_url}: {exc}")
        if response.is_error:
            self._fail(self._describe_failure(response))
        return response.json()

    @staticmethod
    def _describe_failure(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"Request failed with status {response.status_code}: {response.text.strip() or 'no detail provided.'}"

        kind = body.get("error") or "error"
        details = body.get("details") or body.get("detail") or "no detail provided."
        message = f"Request failed with status {response.status_code} ({kind}): {details}"
        if body.get("outcome"):
            message += f" [outcome={body['outcome']}]"
        return message

    @staticmethod
    def _fail(message: str) -> NoReturn:
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
