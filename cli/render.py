from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_ack(payload: Dict[str, Any]) -> None:
    echo_heading("Reading Accepted")
    echo_key_values(
        [
            ("device_id", payload.get("device_id")),
            ("timestamp", payload.get("timestamp")),
            ("message", payload.get("message")),
        ]
    )


def render_health(payload: Dict[str, Any]) -> None:
    echo_heading("Proxy Health")
    echo_key_values(
        [
            ("status", payload.get("status")),
            ("timestamp", payload.get("timestamp")),
            ("store_url", payload.get("store_url")),
            ("auth_mode", payload.get("auth_mode")),
        ]
    )


def render_store_check(payload: Dict[str, Any]) -> None:
    echo_heading("Store Check")
    echo_key_values(
        [
            ("success", payload.get("success")),
            ("path", payload.get("path")),
            ("status_code", payload.get("status_code")),
        ]
    )
