from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import typer
import uvicorn

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_ack, render_health, render_store_check
from settings import ConfigurationError, get_settings


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for running and exercising the sensor ingest proxy.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Proxy base URL (defaults to API_BASE_URL env or http://localhost:3000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each HTTP request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("serve")
def serve_command(
    host: Optional[str] = typer.Option(None, "--host", help="Interface to bind (defaults to HOST env)."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to listen on (defaults to PORT env)."),
) -> None:
    """Run the ingest proxy HTTP server."""
    settings = get_settings()
    try:
        store_url = settings.require_store_url()
    except ConfigurationError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    bind_host = host or settings.host
    bind_port = port or settings.port
    typer.echo(f"Forwarding telemetry to {store_url}")
    typer.echo(f"Listening on {bind_host}:{bind_port}")
    uvicorn.run("app.main:app", host=bind_host, port=bind_port)


@app.command("send")
def send_command(
    ctx: typer.Context,
    temperature: float = typer.Option(..., "--temperature", "-t", help="Temperature in degrees Celsius."),
    humidity: float = typer.Option(..., "--humidity", "-H", help="Relative humidity in percent."),
    device_id: Optional[str] = typer.Option(None, "--device-id", "-d", help="Device identifier."),
    timestamp: Optional[int] = typer.Option(
        None,
        "--timestamp",
        help="Device timestamp in epoch milliseconds (defaults to now).",
    ),
    sound: Optional[int] = typer.Option(None, "--sound", help="Raw sound level."),
) -> None:
    """Post a single reading to the proxy, as a device would."""
    state = _get_state(ctx)
    payload: Dict[str, Any] = {
        "temperature": temperature,
        "humidity": humidity,
        "timestamp": timestamp if timestamp is not None else int(time.time() * 1000),
    }
    device_id = device_id or state.config.device_id
    if device_id:
        payload["device_id"] = device_id
    if sound is not None:
        payload["sound"] = sound

    typer.echo(f"Sending reading to {state.config.base_url} ...")
    result = state.client.send_reading(payload)
    render_ack(result)


@app.command("health")
def health_command(ctx: typer.Context) -> None:
    """Show proxy health and the store it forwards to."""
    state = _get_state(ctx)
    render_health(state.client.health())


@app.command("test-store")
def test_store_command(ctx: typer.Context) -> None:
    """Ask the proxy to perform a throwaway store write."""
    state = _get_state(ctx)
    render_store_check(state.client.test_store())
