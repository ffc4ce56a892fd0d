"""Rich Formatting Utilities for CLI Output"""

from typing import Any

from rich import box
from rich.console import Console
from rich.table import Table

console = Console()


def print_success(message: str):
    """Print success message with green styling"""
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    """Print error message with red styling"""
    console.print(f"[red]✗ {message}[/red]")


def print_info(message: str):
    """Print info message with blue styling"""
    console.print(f"[blue]ℹ {message}[/blue]")


QUEUE_STAT_LABELS = {
    "jobs_pending": "Jobs pending",
    "jobs_processing": "Jobs processing",
    "notifications_pending": "Notifications pending",
    "documents_in_flight": "Documents in flight",
    "total_completed": "Documents completed",
    "total_failed": "Documents failed",
}


def create_queue_stats_table(stats: dict[str, Any]) -> Table:
    """Create a table of queue statistics"""
    table = Table(title="Queue", box=box.ROUNDED)

    table.add_column("Metric", justify="left", style="cyan")
    table.add_column("Value", justify="right", style="yellow")

    for key, label in QUEUE_STAT_LABELS.items():
        table.add_row(label, str(stats.get(key, "—")))

    return table


def create_workers_table(workers: list[dict[str, Any]]) -> Table:
    """Create a table of worker runtime status"""
    table = Table(title="Workers", box=box.ROUNDED)

    table.add_column("Worker", justify="left", style="cyan")
    table.add_column("Running", justify="center")
    table.add_column("Phase", justify="center", style="magenta")
    table.add_column("Processed", justify="right", style="yellow")
    table.add_column("Restarts", justify="right", style="red")
    table.add_column("Last success", justify="right", style="green")

    for worker in workers:
        age = worker.get("last_success_age_seconds")
        table.add_row(
            worker.get("name", ""),
            "[green]yes[/green]" if worker.get("running") else "[red]no[/red]",
            worker.get("phase", ""),
            str(worker.get("processed", 0)),
            str(worker.get("restart_count", 0)),
            f"{age:.0f}s ago" if age is not None else "—",
        )

    return table
