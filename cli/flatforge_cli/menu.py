"""Interactive operator menu.

Each menu is a dispatch table of numbered entries. An entry without an
action leaves the current menu.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from functools import partial
from typing import TYPE_CHECKING, NamedTuple

import structlog
from rich.prompt import Prompt

from .report import (
    print_build_summary,
    print_install_summary,
    print_reset_report,
    print_uninstall_results,
)

if TYPE_CHECKING:
    from rich.console import Console

    from flatforge_core.models import Application

    from .session import Session

logger = structlog.get_logger(__name__)

ChooseFn = Callable[[list[str]], str]


class MenuEntry(NamedTuple):
    """One numbered menu line."""

    label: str
    action: Callable[[], object] | None = None


class Menu:
    """Menu loop dispatching operator choices to the engine."""

    def __init__(self, session: Session, console: Console, choose: ChooseFn | None = None) -> None:
        """Initialize the menu.

        Args:
            session: Session with the engine objects and policy.
            console: Console to render on.
            choose: Callback returning the chosen entry number; prompts
                on the console when omitted.
        """
        self.session = session
        self.console = console
        self._choose = choose or self._prompt_choice

    def _prompt_choice(self, choices: list[str]) -> str:
        return Prompt.ask("Select an option", choices=choices, console=self.console)

    def _select(self, title: str, entries: list[MenuEntry]) -> MenuEntry:
        self.console.print()
        self.console.rule(f"[bold]{title}[/bold]")
        for number, entry in enumerate(entries, start=1):
            self.console.print(f"  [cyan]{number}[/cyan]. {entry.label}")
        choice = self._choose([str(n) for n in range(1, len(entries) + 1)])
        return entries[int(choice) - 1]

    def run(self) -> None:
        """Show the main menu until the operator exits."""
        entries = [
            MenuEntry("Build", self.build_menu),
            MenuEntry("Install", self.install_menu),
            MenuEntry("Uninstall", self.uninstall_menu),
            MenuEntry("Clean", self.clean),
            MenuEntry("Exit"),
        ]
        while True:
            entry = self._select("flatforge", entries)
            if entry.action is None:
                logger.debug("menu_exit")
                return
            entry.action()

    def build_menu(self) -> None:
        """Build submenu: normal or forced build of every application."""
        entry = self._select(
            "Build",
            [
                MenuEntry("Build packages", partial(self.build, force=False)),
                MenuEntry(
                    "Force rebuild (download and rebuild everything)",
                    partial(self.build, force=True),
                ),
                MenuEntry("Back"),
            ],
        )
        if entry.action is not None:
            entry.action()

    def install_menu(self) -> None:
        """Install submenu; stays open until Back so the toggle can be seen."""
        apps = self.session.apps
        while True:
            state = "on" if self.session.policy.only_install_if_newer else "off"
            entries = [
                MenuEntry(f"Install {app.name}", partial(self.install, [app])) for app in apps
            ]
            entries.append(MenuEntry("Install all", partial(self.install, apps)))
            entries.append(
                MenuEntry(f"Toggle 'only install if newer' (currently {state})", self.toggle_policy)
            )
            entries.append(MenuEntry("Back"))

            entry = self._select("Install", entries)
            if entry.action is None:
                return
            entry.action()

    def uninstall_menu(self) -> None:
        """Uninstall submenu: one application or all of them."""
        apps = self.session.apps
        entries = [
            MenuEntry(f"Uninstall {app.name}", partial(self.uninstall, [app])) for app in apps
        ]
        entries.append(MenuEntry("Uninstall all", partial(self.uninstall, apps)))
        entries.append(MenuEntry("Back"))

        entry = self._select("Uninstall", entries)
        if entry.action is not None:
            entry.action()

    def build(self, *, force: bool) -> None:
        """Run the build pipeline for every application."""
        summary = asyncio.run(self.session.pipeline.build_all(self.session.apps, force=force))
        print_build_summary(self.console, summary)

    def install(self, apps: list[Application]) -> None:
        """Install applications with the current policy snapshot."""
        summary = asyncio.run(self.session.engine.install_many(apps, self.session.policy))
        print_install_summary(self.console, summary)

    def toggle_policy(self) -> None:
        """Flip the install policy."""
        policy = self.session.toggle_policy()
        state = "on" if policy.only_install_if_newer else "off"
        self.console.print(f"Only install if newer is now [bold]{state}[/bold].")

    def uninstall(self, apps: list[Application]) -> None:
        """Uninstall applications, asking for each one."""
        results = asyncio.run(self.session.uninstaller.uninstall_many(apps))
        print_uninstall_results(self.console, results)

    def clean(self) -> None:
        """Reset the workspace."""
        print_reset_report(self.console, self.session.reset.reset())
