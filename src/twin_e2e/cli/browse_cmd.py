"""CLI command for browsing an activated endpoint.

Usage:
    twin-e2e browse <endpoint-id>
    twin-e2e browse <endpoint-id> --node-id "i=85"
    twin-e2e browse <endpoint-id> --recursive --node-class Variable --json
"""

from __future__ import annotations

import asyncio
import json

import httpx
import typer

from twin_e2e.config import Settings, settings
from twin_e2e.errors import TwinE2EError
from twin_e2e.transport import ApiTransport
from twin_e2e.twin.client import TwinClient
from twin_e2e.twin.collector import NodeTreeCollector
from twin_e2e.twin.models import NodeReference


def _make_transport(config: Settings) -> ApiTransport:
    return ApiTransport(config)


async def _collect(
    endpoint_id: str,
    node_id: str | None,
    recursive: bool,
    node_class: str | None,
) -> list[NodeReference]:
    async with _make_transport(settings) as transport:
        collector = NodeTreeCollector.for_endpoint(TwinClient(transport), endpoint_id, settings)
        if recursive:
            nodes = await collector.collect_subtree(node_id, node_class)
            return sorted(nodes, key=lambda n: n.node_id)
        references = await collector.collect_flat(node_id)
        return [n for n in references if n.matches_class(node_class)]


def browse(
    endpoint_id: str = typer.Argument(..., help="Id of an activated endpoint"),
    node_id: str | None = typer.Option(
        None,
        "--node-id",
        "-n",
        help="Parent node id (default: root node)",
    ),
    recursive: bool = typer.Option(
        False,
        "--recursive",
        "-r",
        help="Collect the whole hierarchy below the node",
    ),
    node_class: str | None = typer.Option(
        None,
        "--node-class",
        "-c",
        help="Only show nodes of this class (case-insensitive)",
    ),
    output_json: bool = typer.Option(
        False,
        "--json",
        help="Print JSON instead of a table",
    ),
) -> None:
    """Browse the address space of an endpoint."""
    from rich.console import Console
    from rich.table import Table

    console = Console()

    try:
        nodes = asyncio.run(_collect(endpoint_id, node_id, recursive, node_class))
    except (TwinE2EError, httpx.RequestError) as e:
        console.print(f"[red]Browse failed:[/red] {e}")
        raise typer.Exit(code=1) from e

    if output_json:
        typer.echo(json.dumps([n.to_dict() for n in nodes], indent=2))
        return

    table = Table(title=f"Browse {node_id or 'root'} ({len(nodes)} nodes)")
    table.add_column("Node Id", style="cyan")
    table.add_column("Class")
    table.add_column("Display Name")
    table.add_column("Children", justify="center")
    for node in nodes:
        table.add_row(
            node.node_id,
            node.node_class or "",
            node.display_name or "",
            "yes" if node.has_children else "",
        )
    console.print(table)
