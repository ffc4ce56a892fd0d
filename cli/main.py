"""Enrollment Bot CLI - Main Entry Point"""

import typer
from rich.console import Console
from rich.panel import Panel

from . import __version__
from .client.base import EnrollBotError
from .client.endpoints import EnrollBotClient
from .commands import config
from .utils.config_manager import config as config_manager
from .utils.formatting import (
    create_queue_stats_table,
    create_workers_table,
    print_error,
    print_info,
)

console = Console()

app = typer.Typer(
    name="enrollbot",
    help="Enrollment bot queue status CLI",
    rich_markup_mode="rich",
)

app.add_typer(config.app, name="config")


@app.command()
def status():
    """Check service health and worker status"""
    base_url = config_manager.get("api.base_url")
    print_info(f"Checking connection to: {base_url}")

    try:
        with EnrollBotClient(base_url) as client:
            health = client.health_check()
    except EnrollBotError as e:
        if e.status_code == 503 and "workers" in e.details:
            health = {**e.details, "ok": False}
        else:
            health = None
            print_error(f"Failed to connect: {e}")

    if health is None:
        console.print(Panel(
            f"[red]Connection Failed[/red]\n\n"
            f"Make sure the enrollment bot is running at:\n"
            f"[blue]{base_url}[/blue]\n\n"
            f"Update the API URL with:\n"
            f"[cyan]enrollbot config set api.base_url <url>[/cyan]",
            title="Connection Error",
            border_style="red"
        ))
        raise typer.Exit(1)

    healthy = health.get("ok", False)
    console.print(Panel(
        f"{'[green]Healthy[/green]' if healthy else '[red]Degraded[/red]'}\n\n"
        f"• Version: [cyan]{health.get('version', 'unknown')}[/cyan]\n"
        f"• Environment: [yellow]{health.get('environment', 'unknown')}[/yellow]",
        title="System Status",
        border_style="green" if healthy else "red"
    ))

    if health.get("workers"):
        console.print(create_workers_table(health["workers"]))
    if health.get("queue"):
        console.print(create_queue_stats_table(health["queue"]))

    if not healthy:
        raise typer.Exit(2)


@app.command()
def stats():
    """Show queue depths and document totals"""
    try:
        with EnrollBotClient(config_manager.get("api.base_url")) as client:
            queue = client.queue_stats()
    except EnrollBotError as e:
        print_error(f"Failed to fetch queue stats: {e}")
        raise typer.Exit(1)

    console.print(create_queue_stats_table(queue))


@app.command()
def version():
    """Show CLI version information"""
    console.print(f"Enrollment Bot CLI v{__version__}")


if __name__ == "__main__":
    app()
