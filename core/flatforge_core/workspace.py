"""Workspace reset.

Restores the workspace to its pristine layout: generated trees are removed,
persistent directories exist and are empty. Safe to run from any state and
any number of times; missing paths are not an error.
"""

from __future__ import annotations

import shutil
from typing import TYPE_CHECKING

import structlog

from .layout import retired_path, staging_path
from .models import ResetAction, ResetReport

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from .models import Application

logger = structlog.get_logger(__name__)

BUILDER_CACHE_DIR = ".flatpak-builder"


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


class WorkspaceReset:
    """Idempotent reset of ephemeral and persistent workspace paths."""

    def __init__(self, ephemeral: Iterable[Path], persistent_empty: Iterable[Path]) -> None:
        """Initialize the reset.

        Args:
            ephemeral: Paths removed entirely when present.
            persistent_empty: Directories that must exist and be empty.
        """
        self.ephemeral = list(ephemeral)
        self.persistent_empty = list(persistent_empty)
        self._log = logger.bind(component="workspace_reset")

    @classmethod
    def for_workspace(cls, root: Path, apps: Iterable[Application]) -> WorkspaceReset:
        """Build the reset for a workspace root and its applications.

        Args:
            root: Workspace root.
            apps: Configured applications.

        Returns:
            Configured WorkspaceReset.
        """
        apps = list(apps)
        target_dir = root / "target"
        ephemeral = [root / BUILDER_CACHE_DIR, target_dir / ".tmp"]
        persistent = [target_dir]
        for app in apps:
            ephemeral.extend(
                [
                    app.build_dir,
                    app.repo_dir,
                    staging_path(app.files_dir),
                    retired_path(app.files_dir),
                ]
            )
            persistent.append(app.files_dir)
        return cls(ephemeral, persistent)

    def reset(self) -> ResetReport:
        """Reset every configured path.

        Returns:
            ResetReport listing what happened to each path.
        """
        report = ResetReport()

        for path in self.ephemeral:
            if path.exists() or path.is_symlink():
                self._log.info("removing", path=str(path))
                _remove(path)
                report.add(path, ResetAction.REMOVED)
            else:
                self._log.debug("nothing_to_remove", path=str(path))
                report.add(path, ResetAction.ABSENT)

        for path in self.persistent_empty:
            if path.is_symlink() or (path.exists() and not path.is_dir()):
                _remove(path)
            if not path.exists():
                self._log.info("creating", path=str(path))
                path.mkdir(parents=True)
                report.add(path, ResetAction.CREATED)
                continue

            children = list(path.iterdir())
            if not children:
                self._log.debug("already_empty", path=str(path))
                report.add(path, ResetAction.ALREADY_EMPTY)
                continue

            self._log.info("emptying", path=str(path), entries=len(children))
            for child in children:
                _remove(child)
            report.add(path, ResetAction.EMPTIED)

        self._log.info("workspace_reset", changed=report.changed)
        self._log.debug("workspace_reset_entries", entries=report.as_dict())
        return report
