"""CLI command for checking platform microservice health.

Usage:
    twin-e2e health
    twin-e2e health --service twin --service registry
"""

from __future__ import annotations

import asyncio

import typer

from twin_e2e.config import Settings, settings
from twin_e2e.registry.client import RegistryClient, ServiceHealth
from twin_e2e.transport import ApiTransport

app = typer.Typer(help="Check platform microservice health")


def _make_transport(config: Settings) -> ApiTransport:
    return ApiTransport(config)


async def _check(services: list[str]) -> list[ServiceHealth]:
    async with _make_transport(settings) as transport:
        registry = RegistryClient(transport, health_path=settings.health_path)
        return list(await asyncio.gather(*(registry.check_health(s) for s in services)))


@app.callback(invoke_without_command=True)
def health(
    services: list[str] | None = typer.Option(
        None,
        "--service",
        "-s",
        help="Service to check (repeatable, default: all configured)",
    ),
) -> None:
    """Probe each service's health endpoint; exit 1 if any is down."""
    from rich.console import Console

    console = Console()
    results = asyncio.run(_check(services or list(settings.health_services)))

    for result in results:
        if result.healthy:
            console.print(f"[green]UP[/green]   {result.name} ({result.latency_ms:.0f} ms)")
        else:
            detail = result.message or f"status {result.status_code}"
            console.print(f"[red]DOWN[/red] {result.name}: {detail}")

    if not all(r.healthy for r in results):
        raise typer.Exit(code=1)
