"""Main CLI entry point for flatforge.

This module defines the Typer application and main commands. Running
``flatforge`` without a command opens the interactive menu.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any, TypeVar

import structlog
import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from flatforge_core.config import ConfigManager
from flatforge_core.errors import MissingPrerequisiteError
from flatforge_core.installer import accept_all, deny_all
from flatforge_core.models import InstallPolicy, LogLevel, UninstallStatus
from flatforge_core.pipeline import select_applications
from flatforge_core.version import VersionOracle

from . import __version__
from .menu import Menu
from .report import (
    print_build_summary,
    print_install_summary,
    print_reset_report,
    print_uninstall_results,
    short_commit,
)
from .session import Session, create_session, rich_confirm

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    from flatforge_core.installer import ConfirmFn
    from flatforge_core.models import Application

T = TypeVar("T")

EXIT_FAILURES = 1
EXIT_MISSING_PREREQUISITE = 3

# Create the main Typer app
app = typer.Typer(
    name="flatforge",
    help="Build and install Sublime Text and Sublime Merge as Flatpak bundles.",
    invoke_without_command=True,
    rich_markup_mode="rich",
)

# Create console for rich output
console = Console()


@dataclass
class CliState:
    """Options shared by every command."""

    config_manager: ConfigManager
    root: Path | None = None


def configure_logging(log_level: str) -> None:
    """Configure structlog and standard logging with the specified level.

    Args:
        log_level: Log level string (debug, info, warning, error).
    """
    level_map = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }
    level = level_map.get(log_level.lower(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        level=level,
        force=True,
    )

    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        # Loggers resolve stdout when bound; the menu and tests swap streams.
        cache_logger_on_first_use=False,
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]flatforge[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Configuration file (default: $XDG_CONFIG_HOME/flatforge/config.yaml).",
        ),
    ] = None,
    root: Annotated[
        Path | None,
        typer.Option(
            "--root",
            "-r",
            help="Workspace root (default: configured root or current directory).",
        ),
    ] = None,
    log_level: Annotated[
        LogLevel | None,
        typer.Option(
            "--log-level",
            "-l",
            help="Console log level.",
            case_sensitive=False,
        ),
    ] = None,
) -> None:
    """flatforge: Flatpak bundles for Sublime Text and Sublime Merge.

    Without a command, opens the interactive menu.
    """
    config_manager = ConfigManager(config)
    level = log_level or config_manager.get_config().global_config.log_level
    configure_logging(level.value)

    ctx.obj = CliState(config_manager=config_manager, root=root)

    if ctx.invoked_subcommand is None:
        session = _create_session(ctx, rich_confirm(console))
        _guard(Menu(session, console).run)


def _create_session(ctx: typer.Context, confirm: ConfirmFn) -> Session:
    """Build the session for a command."""
    state: CliState = ctx.obj
    try:
        return create_session(state.config_manager, confirm, root=state.root)
    except KeyError as e:
        backend = state.config_manager.get_config().global_config.backend
        raise typer.BadParameter(f"Unknown backend '{backend}'", param_hint="config") from e


def _select(session: Session, names: list[str] | None) -> list[Application]:
    try:
        return select_applications(session.apps, names)
    except KeyError as e:
        raise typer.BadParameter(str(e.args[0]), param_hint="--app") from e


def _guard(func: Callable[[], T]) -> T:
    """Run func, turning a missing prerequisite into a clean non-zero exit."""
    try:
        return func()
    except MissingPrerequisiteError as e:
        console.print(f"[red]Error:[/red] {escape(e.describe())}")
        console.print(f"Install '{e.command}' and re-run the action.")
        raise typer.Exit(EXIT_MISSING_PREREQUISITE) from e


def _run(coro: Coroutine[Any, Any, T]) -> T:
    return _guard(lambda: asyncio.run(coro))


AppOption = Annotated[
    list[str] | None,
    typer.Option(
        "--app",
        "-a",
        help="Application slug, id or name. Can be specified multiple times.",
    ),
]

YesOption = Annotated[
    bool,
    typer.Option(
        "--yes",
        "-y",
        help="Answer yes to every confirmation prompt.",
    ),
]


@app.command()
def build(
    ctx: typer.Context,
    apps: AppOption = None,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Download and rebuild even if the bundle already exists.",
        ),
    ] = False,
) -> None:
    """Build application bundles.

    Already built applications are skipped unless --force is given.
    """
    session = _create_session(ctx, deny_all)
    selected = _select(session, apps)

    summary = _run(session.pipeline.build_all(selected, force=force))
    print_build_summary(console, summary)

    if summary.failed:
        raise typer.Exit(EXIT_FAILURES)


@app.command()
def install(
    ctx: typer.Context,
    apps: AppOption = None,
    only_if_newer: Annotated[
        bool | None,
        typer.Option(
            "--only-if-newer/--ask",
            help="Skip same commit and update automatically, or ask first "
            "(default from configuration).",
        ),
    ] = None,
    yes: YesOption = False,
) -> None:
    """Install built bundles into the user installation."""
    session = _create_session(ctx, accept_all if yes else rich_confirm(console))
    selected = _select(session, apps)

    policy = session.policy
    if only_if_newer is not None:
        policy = InstallPolicy(only_install_if_newer=only_if_newer)

    summary = _run(session.engine.install_many(selected, policy))
    print_install_summary(console, summary)

    if summary.failed:
        raise typer.Exit(EXIT_FAILURES)


@app.command()
def uninstall(
    ctx: typer.Context,
    apps: AppOption = None,
    delete_data: Annotated[
        bool,
        typer.Option(
            "--delete-data",
            "-d",
            help="Also delete the applications' user data.",
        ),
    ] = False,
    yes: YesOption = False,
) -> None:
    """Uninstall applications from the user installation."""
    session = _create_session(ctx, accept_all if yes else rich_confirm(console))
    selected = _select(session, apps)

    # None asks the operator; with --yes the data question is answered by --delete-data.
    answer: bool | None = None
    if delete_data or yes:
        answer = delete_data
    results = _run(session.uninstaller.uninstall_many(selected, delete_data=answer))
    print_uninstall_results(console, results)

    if any(r.status == UninstallStatus.FAILED for r in results):
        raise typer.Exit(EXIT_FAILURES)


@app.command()
def clean(ctx: typer.Context) -> None:
    """Reset the workspace to its pristine layout.

    Removes build directories, repositories, scratch space and the builder
    cache; empties the files and target directories.
    """
    session = _create_session(ctx, deny_all)
    print_reset_report(console, session.reset.reset())


@app.command()
def status(ctx: typer.Context) -> None:
    """Show pipeline and install state for each application."""
    session = _create_session(ctx, deny_all)
    _run(_show_status(session))


async def _show_status(session: Session) -> None:
    """Render the status table."""
    available = await session.backend.check_available()
    installed: set[str] = set()
    if available:
        installed = await session.backend.list_installed()
    oracle = VersionOracle(session.backend)

    table = Table(title=f"Workspace: {session.root}", show_header=True)
    table.add_column("Application", style="cyan")
    table.add_column("Files", justify="center")
    table.add_column("Manifest", justify="center")
    table.add_column("Bundle", justify="center")
    table.add_column("Installed", justify="center")
    table.add_column("Installed commit")
    table.add_column("Bundle commit")

    def mark(flag: bool) -> str:
        return "[green]✓[/green]" if flag else "[dim]-[/dim]"

    for application in session.apps:
        stage = session.pipeline.stage_state(application)
        installed_commit = bundle_commit = None
        if available and application.app_id in installed:
            installed_commit = await oracle.installed_version(application.app_id)
        if available and stage.bundle_ready:
            bundle_commit = await oracle.bundle_version(application.bundle_path)
        table.add_row(
            application.name,
            mark(stage.files_ready),
            mark(stage.descriptor_ready),
            mark(stage.bundle_ready),
            mark(application.app_id in installed) if available else "[dim]?[/dim]",
            short_commit(installed_commit),
            short_commit(bundle_commit),
        )

    console.print(table)
    if not available:
        missing = ", ".join(session.backend.required_commands)
        console.print(
            f"[yellow]Backend tools not found ({missing}); install state unknown.[/yellow]"
        )


# =============================================================================
# Config Commands
# =============================================================================

config_app = typer.Typer(
    name="config",
    help="Manage configuration.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show current configuration."""
    config_manager: ConfigManager = ctx.obj.config_manager
    config = config_manager.get_config()

    console.print(f"[bold]Configuration File:[/bold] {config_manager.config_path}")
    console.print()

    data = {
        "global": config.global_config.model_dump(mode="json", exclude_defaults=True),
        "install": config.install.model_dump(mode="json"),
        "applications": [
            {"slug": a.slug, "app_id": a.app_id, "name": a.name, "url": a.url}
            for a in config.applications
        ],
    }

    yaml_str = yaml.dump(data, default_flow_style=False, sort_keys=False)
    console.print(yaml_str, markup=False, highlight=False)


@config_app.command("init")
def config_init(
    ctx: typer.Context,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Overwrite existing configuration.",
        ),
    ] = False,
) -> None:
    """Initialize configuration file."""
    config_manager: ConfigManager = ctx.obj.config_manager

    if config_manager.init_config(force=force):
        console.print(f"[green]Configuration initialized: {config_manager.config_path}[/green]")
    else:
        console.print(
            f"[yellow]Configuration already exists: {config_manager.config_path}[/yellow]"
        )
        console.print("Use --force to overwrite.")


@config_app.command("path")
def config_path(ctx: typer.Context) -> None:
    """Show configuration file path."""
    console.print(str(ctx.obj.config_manager.config_path))


if __name__ == "__main__":
    app()
