"""CLI commands for cortexrpc.

``methods`` lists what discovery reports, ``call`` invokes one method and
``listen`` prints push data for the named streams.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from cortexrpc import __logo__, __version__
from cortexrpc.cli.shared.logging_utils import configure_logging, ensure_rotating_log_file
from cortexrpc.client import CortexClient
from cortexrpc.config.loader import load_config
from cortexrpc.config.schema import CortexConfig
from cortexrpc.rpc.protocol import StreamEvent
from cortexrpc.utils.exceptions import CortexError

app = typer.Typer(
    name="cortexrpc",
    help=f"{__logo__} cortexrpc - JSON-RPC over WebSocket client",
    no_args_is_help=True,
)

console = Console()


class _State:
    config_path: Path | None = None
    url: str | None = None
    insecure: bool = False
    verbose: int = 0


_state = _State()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"{__logo__} cortexrpc v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Path = typer.Option(None, "--config", "-c", help="Path to config.json"),
    url: str = typer.Option(None, "--url", help="Override the service URL"),
    insecure: bool = typer.Option(False, "--insecure", help="Skip TLS certificate verification"),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Repeat for more log output"),
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True),
) -> None:
    """cortexrpc - JSON-RPC over WebSocket client."""
    _state.config_path = config
    _state.url = url
    _state.insecure = insecure
    _state.verbose = verbose


def _load() -> CortexConfig:
    try:
        cfg = load_config(_state.config_path)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    if _state.url:
        cfg.url = _state.url
    if _state.insecure:
        cfg.verify_tls = False
    configure_logging(max(cfg.verbose, _state.verbose))
    if cfg.log_file:
        ensure_rotating_log_file("cortexrpc")
    return cfg


def _make_client(cfg: CortexConfig) -> CortexClient:
    return CortexClient(cfg)


def _run(coro: Any) -> Any:
    try:
        return asyncio.run(coro)
    except CortexError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)


def _parse_params(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        params = json.loads(raw)
    except json.JSONDecodeError as exc:
        console.print(f"[red]--params is not valid JSON: {exc}[/red]")
        raise typer.Exit(2)
    if not isinstance(params, dict):
        console.print("[red]--params must be a JSON object[/red]")
        raise typer.Exit(2)
    return params


@app.command()
def methods() -> None:
    """List the methods the service reports through discovery."""
    cfg = _load()

    async def _list():
        async with _make_client(cfg) as client:
            return client.methods.descriptors()

    descriptors = _run(_list())
    table = Table(title=f"Methods ({len(descriptors)})")
    table.add_column("Method", style="cyan")
    table.add_column("Params")
    table.add_column("Auth", justify="center")
    for d in sorted(descriptors, key=lambda d: d.name):
        params = ", ".join(f"[bold]{p.name}[/bold]" if p.required else p.name for p in d.params)
        table.add_row(d.name, params or "[dim]-[/dim]", "[green]✓[/green]" if d.needs_auth else "")
    console.print(table)


@app.command()
def call(
    method: str = typer.Argument(..., help="Method name as reported by discovery"),
    params: str = typer.Option(None, "--params", "-p", help="JSON object of parameters"),
    auth: bool = typer.Option(True, "--auth/--no-auth", help="Run init with configured credentials first"),
) -> None:
    """Invoke one discovered method and print its result."""
    cfg = _load()
    payload = _parse_params(params)

    async def _call():
        async with _make_client(cfg) as client:
            if auth:
                await client.init()
            return await client.invoke(method, payload)

    result = _run(_call())
    console.print_json(json.dumps(result, ensure_ascii=False))


@app.command()
def listen(
    streams: list[str] = typer.Argument(..., help="Stream names, e.g. eeg mot"),
    duration: float = typer.Option(10.0, "--duration", "-d", help="Seconds to listen"),
    session: str = typer.Option(None, "--subscribe-session", help="Session id to subscribe on the server"),
) -> None:
    """Print push events of the given streams."""
    cfg = _load()

    def _print(event: StreamEvent) -> None:
        console.print(f"[cyan]{event.stream}[/cyan] {event.timestamp} {json.dumps(event.data)}")

    async def _listen():
        async with _make_client(cfg) as client:
            for name in streams:
                client.on(name, _print)
            if session:
                await client.init()
                await client.invoke("subscribe", {"session": session, "streams": list(streams)})
            await asyncio.sleep(duration)

    _run(_listen())


if __name__ == "__main__":
    app()
