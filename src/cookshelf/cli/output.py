"""Rich output formatting helpers for the cookshelf CLI.

Provides consistent terminal output for installed solutions, locked sets,
upload results and errors.
"""

from __future__ import annotations

import json
from typing import Any, Iterable

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from cookshelf.core.dependency.resolver import Solution
from cookshelf.exceptions import CookshelfError, UnresolvableConflict

console = Console()
err_console = Console(stderr=True)


def _describe_location(descriptor: dict[str, Any] | None) -> str:
    if not descriptor:
        return "-"
    kind = descriptor.get("type", "?")
    detail = (
        descriptor.get("path")
        or descriptor.get("uri")
        or descriptor.get("server_url")
        or descriptor.get("index_url")
        or ""
    )
    ref = descriptor.get("ref")
    if ref and ref != "HEAD":
        detail = f"{detail}@{ref}"
    return f"{kind}: {detail}" if detail else kind


def print_solution(solution: Solution, reused_lock: bool = False) -> None:
    """Print the cookbooks of an installed solution.

    Args:
        solution: The installed cookbooks.
        reused_lock: Whether the lockfile was reused without resolving.
    """
    title = "Installed from lockfile" if reused_lock else "Resolution successful"
    console.print(Panel(f"[bold green]{title}[/bold green]", title="Cookbooks"))
    if not len(solution):
        console.print("[dim]No cookbooks to install.[/dim]")
        return

    explicit = {entry.name for entry in solution.entries if entry.explicit}
    table = Table(show_header=True, header_style="bold")
    table.add_column("Cookbook", style="bold")
    table.add_column("Version")
    table.add_column("Location", style="dim")
    table.add_column("Declared", justify="center")
    for name in sorted(solution.artifacts):
        artifact = solution.artifacts[name]
        location = solution.locations.get(name)
        table.add_row(
            name,
            artifact.version,
            _describe_location(location.descriptor() if location is not None else None),
            "yes" if name in explicit else "",
        )
    console.print(table)


def print_locked(lockfile: Any) -> None:
    """Print the entries of a lockfile."""
    if not lockfile.entry_count:
        console.print("[dim]The lockfile is empty.[/dim]")
        return
    table = Table(title="Locked cookbooks", show_header=True, header_style="bold")
    table.add_column("Cookbook", style="bold")
    table.add_column("Version")
    table.add_column("Location", style="dim")
    table.add_column("Dependencies")
    for entry in lockfile.entries:
        deps = ", ".join(f"{n} ({c})" for n, c in sorted(entry.dependencies.items()))
        table.add_row(entry.name, entry.version, _describe_location(entry.location), deps or "-")
    console.print(table)


def print_uploads(results: Iterable[Any], server_url: str) -> None:
    table = Table(title=f"Uploaded to {server_url}", show_header=True, header_style="bold")
    table.add_column("Cookbook", style="bold")
    table.add_column("Version")
    table.add_column("Status", justify="right")
    for result in results:
        table.add_row(result.name, result.version, str(result.status))
    console.print(table)


def print_warnings(warnings: Iterable[Exception]) -> None:
    for warning in warnings:
        err_console.print(f"[yellow]Warning: {escape(str(warning))}[/yellow]")


def print_error(exc: CookshelfError) -> None:
    """Print a cookshelf error; conflicts also list the entries involved."""
    err_console.print(f"[bold red]Error:[/bold red] [red]{escape(str(exc))}[/red]")
    if isinstance(exc, UnresolvableConflict):
        for entry in exc.entries:
            err_console.print(f"  [red]- {escape(entry.describe())}[/red]")


def print_json(data: Any) -> None:
    """Print data as formatted JSON to stdout."""
    console.print_json(json.dumps(data, default=str))
