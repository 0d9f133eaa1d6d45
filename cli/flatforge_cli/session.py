"""Operator session: the wired-up engine objects and the install policy."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog
from rich.prompt import Confirm

from flatforge_backend import get_registry
from flatforge_core.download_manager import DownloadManager
from flatforge_core.fetcher import ArtifactFetcher
from flatforge_core.installer import InstallDecisionEngine, Uninstaller
from flatforge_core.pipeline import PipelineController
from flatforge_core.workspace import BUILDER_CACHE_DIR, WorkspaceReset

if TYPE_CHECKING:
    from pathlib import Path

    from rich.console import Console

    from flatforge_core.config import ConfigManager
    from flatforge_core.installer import ConfirmFn
    from flatforge_core.interfaces import PackagingBackend
    from flatforge_core.models import Application, GlobalConfig, InstallPolicy

logger = structlog.get_logger(__name__)


def rich_confirm(console: Console) -> ConfirmFn:
    """Confirmation callback asking the operator on the console."""

    def confirm(prompt: str) -> bool:
        return Confirm.ask(prompt, console=console, default=False)

    return confirm


def create_backend(config: GlobalConfig, root: Path) -> PackagingBackend:
    """Instantiate the configured packaging backend.

    Raises:
        KeyError: If the backend name is not registered.
    """
    return get_registry().create(
        config.backend,
        timeout_seconds=config.command_timeout_seconds,
        state_dir=root / BUILDER_CACHE_DIR,
    )


@dataclass
class Session:
    """Everything one CLI invocation or menu session works with.

    The install policy lives here rather than in a global; toggling it
    replaces the value, and each install batch reads one snapshot.
    """

    root: Path
    apps: list[Application]
    backend: PackagingBackend
    pipeline: PipelineController
    engine: InstallDecisionEngine
    uninstaller: Uninstaller
    reset: WorkspaceReset
    policy: InstallPolicy

    def toggle_policy(self) -> InstallPolicy:
        """Flip ``only_install_if_newer`` and return the new policy."""
        self.policy = self.policy.toggled()
        logger.info(
            "install_policy_toggled", only_install_if_newer=self.policy.only_install_if_newer
        )
        return self.policy


def create_session(
    config_manager: ConfigManager,
    confirm: ConfirmFn,
    *,
    root: Path | None = None,
    backend: PackagingBackend | None = None,
) -> Session:
    """Wire the engine objects for a workspace.

    Args:
        config_manager: Loaded configuration.
        confirm: Operator confirmation callback.
        root: Workspace root override.
        backend: Backend override; the configured backend when omitted.

    Returns:
        A ready Session.
    """
    config = config_manager.get_config()
    global_config = config.global_config
    workspace_root = config_manager.workspace_root(root)
    apps = config_manager.applications(workspace_root)
    backend = backend or create_backend(global_config, workspace_root)

    pipeline = PipelineController(
        backend,
        workspace_root,
        fetcher=ArtifactFetcher(DownloadManager.from_config(global_config)),
        force_clean=global_config.force_clean,
        generate_manifests=global_config.generate_manifests,
    )
    logger.debug(
        "session_created",
        root=str(workspace_root),
        backend=backend.name,
        apps=[app.slug for app in apps],
    )
    return Session(
        root=workspace_root,
        apps=apps,
        backend=backend,
        pipeline=pipeline,
        engine=InstallDecisionEngine(backend, confirm),
        uninstaller=Uninstaller(backend, confirm),
        reset=WorkspaceReset.for_workspace(workspace_root, apps),
        policy=config.default_policy(),
    )
