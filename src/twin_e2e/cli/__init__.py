"""CLI commands for twin-e2e.

Provides command-line interface using Typer:
- twin-e2e browse: Browse an activated endpoint
- twin-e2e health: Check platform microservice health

Usage:
    twin-e2e --help
    twin-e2e browse <endpoint-id> --recursive --node-class Variable
    twin-e2e health
"""

import typer

from twin_e2e.cli.browse_cmd import browse
from twin_e2e.cli.health_cmd import app as health_app
from twin_e2e.config import settings
from twin_e2e.observability.logging import configure_logging

app = typer.Typer(
    name="twin-e2e",
    help="twin-e2e: Twin service end-to-end test tooling",
    no_args_is_help=True,
)

app.command("browse")(browse)
app.add_typer(health_app, name="health")


@app.callback()
def callback(
    log_level: str = typer.Option(
        settings.log_level,
        "--log-level",
        "-l",
        help="Log level: debug, info, warning, error",
    ),
) -> None:
    """twin-e2e: Twin service end-to-end test tooling."""
    configure_logging(json_format=settings.log_json, level=log_level)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
