"""Rich rendering of build, install, uninstall and reset results."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.markup import escape
from rich.table import Table

from flatforge_core.models import (
    BuildStatus,
    InstallStatus,
    ResetAction,
    UninstallStatus,
)
from flatforge_core.version import is_commit

if TYPE_CHECKING:
    from rich.console import Console

    from flatforge_core.models import (
        InstallSummary,
        PipelineSummary,
        ResetReport,
        UninstallResult,
    )

BUILD_STYLE = {
    BuildStatus.BUILT: "[green]✓ Built[/green]",
    BuildStatus.ALREADY_BUILT: "[cyan]= Already built[/cyan]",
    BuildStatus.FAILED: "[red]✗ Failed[/red]",
}

INSTALL_STYLE = {
    InstallStatus.INSTALLED: "[green]✓ Installed[/green]",
    InstallStatus.REINSTALLED: "[green]✓ Reinstalled[/green]",
    InstallStatus.UPDATED: "[green]✓ Updated[/green]",
    InstallStatus.SKIPPED: "[yellow]⊘ Skipped[/yellow]",
    InstallStatus.FAILED: "[red]✗ Failed[/red]",
}

UNINSTALL_STYLE = {
    UninstallStatus.UNINSTALLED: "[green]✓ Uninstalled (data retained)[/green]",
    UninstallStatus.UNINSTALLED_WITH_DATA: "[green]✓ Uninstalled and data deleted[/green]",
    UninstallStatus.CANCELLED: "[yellow]⊘ Cancelled[/yellow]",
    UninstallStatus.NOT_INSTALLED: "[yellow]⊘ Not installed[/yellow]",
    UninstallStatus.FAILED: "[red]✗ Failed[/red]",
}

RESET_STYLE = {
    ResetAction.REMOVED: "[magenta]removed[/magenta]",
    ResetAction.EMPTIED: "[magenta]emptied[/magenta]",
    ResetAction.CREATED: "[yellow]created[/yellow]",
    ResetAction.ABSENT: "[dim]absent[/dim]",
    ResetAction.ALREADY_EMPTY: "[dim]already empty[/dim]",
}


def short_commit(token: str | None) -> str:
    """Abbreviate commit checksums for display."""
    if token is None:
        return "[dim]-[/dim]"
    return token[:12] if is_commit(token) else token


def print_build_summary(console: Console, summary: PipelineSummary) -> None:
    """Print a build run summary."""
    table = Table(title="Build Summary", show_header=True)
    table.add_column("Application", style="cyan")
    table.add_column("Status", style="bold")
    table.add_column("Downloaded", justify="center")
    table.add_column("Details")

    for result in summary.results:
        if result.status == BuildStatus.FAILED:
            details = f"[red]{escape(result.error_message or '')}[/red]"
        else:
            details = str(result.bundle_path or "")
        table.add_row(
            result.name,
            BUILD_STYLE[result.status],
            "✓" if result.fetched else "",
            details,
        )

    console.print(table)
    console.print(
        f"[green]Built:[/green] {summary.built}  "
        f"[cyan]Already built:[/cyan] {summary.already_built}  "
        f"[red]Failed:[/red] {summary.failed}"
    )


def print_install_summary(console: Console, summary: InstallSummary) -> None:
    """Print the outcomes of an install batch."""
    table = Table(title="Install Summary", show_header=True)
    table.add_column("Application", style="cyan")
    table.add_column("Outcome", style="bold")
    table.add_column("Installed commit")
    table.add_column("Bundle commit")
    table.add_column("Details")

    for result in summary.results:
        details = result.reason or ""
        if result.action is not None:
            details = details or result.action.value.replace("_", " ")
        table.add_row(
            result.name,
            INSTALL_STYLE[result.status],
            short_commit(result.installed_version),
            short_commit(result.bundle_version),
            f"[red]{escape(details)}[/red]"
            if result.status == InstallStatus.FAILED
            else escape(details),
        )

    console.print(table)


def print_uninstall_results(console: Console, results: list[UninstallResult]) -> None:
    """Print the outcomes of uninstall requests."""
    for result in results:
        line = f"[cyan]{result.name}[/cyan]: {UNINSTALL_STYLE[result.status]}"
        if result.reason:
            line += f" [red]{escape(result.reason)}[/red]"
        console.print(line)


def print_reset_report(console: Console, report: ResetReport) -> None:
    """Print what a workspace reset did."""
    for path, action in report.entries:
        console.print(f"  {RESET_STYLE[action]:<40} {escape(str(path))}")
    if report.changed:
        console.print("[bold]Project cleaned and restored to its original condition.[/bold]")
    else:
        console.print("[dim]Nothing to clean.[/dim]")
