"""CLI commands for mcpbridge.

``serve`` runs the HTTP/SSE bridge; ``check`` validates the environment
without starting anything; ``status`` queries a running bridge.
"""

import shlex

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from mcpbridge import __logo__, __version__
from mcpbridge.cli.shared.http_utils import http_json, local_base_url
from mcpbridge.cli.shared.logging_utils import configure_logging
from mcpbridge.cli.shared.network_utils import is_port_in_use
from mcpbridge.config.loader import build_child_command, load_settings
from mcpbridge.utils.exceptions import ConfigError

app = typer.Typer(
    name="mcpbridge",
    help=f"{__logo__} mcpbridge - HTTP/SSE bridge for line-delimited JSON-RPC servers",
    no_args_is_help=True,
)

console = Console(stderr=True)


def _load_or_exit(**overrides):
    try:
        return load_settings(**{k: v for k, v in overrides.items() if v is not None})
    except ConfigError as e:
        console.print(f"[red]ERROR:[/red] {e.message}")
        raise typer.Exit(1)


@app.command()
def serve(
    host: str = typer.Option(None, "--host", "-h", help="Bind host (default: HOST or 0.0.0.0)"),
    port: int = typer.Option(None, "--port", "-p", help="Listen port (default: PORT or 3000)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Start the HTTP/SSE bridge and its child process."""
    settings = _load_or_exit(host=host, port=port)
    if is_port_in_use(settings.host, settings.port):
        console.print(
            f"[red]Port {settings.port} is already in use.[/red] "
            f"Use [cyan]--port[/cyan] to pick another one (current: {settings.host}:{settings.port})."
        )
        raise typer.Exit(1)

    log_path = configure_logging("DEBUG" if verbose else settings.log_level, settings.log_file or None)
    console.print(f"{__logo__} Starting mcpbridge {__version__} on {settings.host}:{settings.port}...")
    if log_path:
        console.print(f"[dim]Logs: {log_path}[/dim]")
    logger.info("Project ref: {}", settings.project_ref)
    logger.info("Token present: {}", settings.token_present)

    from mcpbridge.api.server import run_server

    run_server(settings)


@app.command()
def check():
    """Validate configuration and show the resolved child command."""
    settings = _load_or_exit()
    table = Table(title="mcpbridge configuration")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key, value in settings.summary().items():
        table.add_row(key, str(value))
    table.add_row("child_command", shlex.join(build_child_command(settings)))
    table.add_row("ready_grace_seconds", str(settings.child.ready_grace_seconds))
    table.add_row("response_timeout_seconds", str(settings.child.response_timeout_seconds))
    table.add_row("keepalive_interval_seconds", str(settings.sse.keepalive_interval_seconds))
    Console().print(table)


@app.command()
def status(
    url: str = typer.Option(None, "--url", "-u", help="Bridge base URL (default: from HOST/PORT)"),
):
    """Show the health of a running bridge."""
    if not url:
        from mcpbridge.config.schema import BridgeSettings

        settings = BridgeSettings()
        url = local_base_url(settings.host, settings.port)
    try:
        data = http_json("GET", f"{url.rstrip('/')}/health")
    except RuntimeError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    child = data.get("child") or {}
    ready = child.get("ready")
    Console().print(f"{__logo__} {data.get('server')} [{data.get('status')}] project={data.get('project_ref')}")
    Console().print(
        f"Child: {child.get('state', 'unknown')} "
        f"{'[green]ready[/green]' if ready else '[yellow]not ready[/yellow]'} "
        f"pid={child.get('pid')} spawns={child.get('spawn_count')}"
    )


if __name__ == "__main__":
    app()
