"""Package builder: backend build followed by bundle export."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from .errors import BackendBuildError

if TYPE_CHECKING:
    from pathlib import Path

    from .interfaces import PackagingBackend
    from .models import Application

logger = structlog.get_logger(__name__)


class PackageBuilder:
    """Builds an application's repository and exports its bundle."""

    def __init__(self, backend: PackagingBackend, *, force_clean: bool = True) -> None:
        """Initialize the builder.

        Args:
            backend: Packaging backend.
            force_clean: Discard previous builder state on each build.
        """
        self._backend = backend
        self._force_clean = force_clean
        self._log = logger.bind(component="package_builder")

    async def build(self, app: Application) -> Path:
        """Build the repository for an application.

        Returns:
            The repository directory.

        Raises:
            BackendBuildError: If the backend fails or produces no repository.
        """
        self._log.info("building", app=app.name, force_clean=self._force_clean)
        try:
            repo = await self._backend.build(
                app.manifest_path,
                app.build_dir,
                app.repo_dir,
                force_clean=self._force_clean,
            )
        except BackendBuildError as e:
            e.app = e.app or app.name
            e.stage = e.stage or "build"
            raise
        if not repo.is_dir():
            raise BackendBuildError(
                f"Build finished but repository {repo} is missing", app=app.name, stage="build"
            )
        return repo

    async def export(self, app: Application) -> Path:
        """Export the application's bundle from its repository.

        Returns:
            The bundle path.

        Raises:
            BackendBuildError: If the export fails or the bundle is missing.
        """
        self._log.info("exporting_bundle", app=app.name, bundle=str(app.bundle_path))
        app.bundle_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            bundle = await self._backend.export_bundle(app.repo_dir, app.bundle_path, app.app_id)
        except BackendBuildError as e:
            e.app = e.app or app.name
            e.stage = e.stage or "export"
            raise
        if not bundle.is_file():
            raise BackendBuildError(
                f"Export finished but bundle {bundle} is missing", app=app.name, stage="export"
            )
        return bundle
