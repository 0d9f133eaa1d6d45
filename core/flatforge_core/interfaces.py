"""Core interfaces for flatforge.

This module defines the abstract packaging backend that the build pipeline
and the install decision engine drive.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path


class PackagingBackend(ABC):
    """Abstract base class for packaging backends.

    A backend builds a content-addressed repository from a files directory
    and a manifest, exports single-file bundles from it, and manages the
    local install registry.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the backend name.

        Returns:
            Unique backend identifier
        """
        ...

    @property
    def required_commands(self) -> list[str]:
        """Executables this backend needs on PATH."""
        return []

    @abstractmethod
    async def check_available(self) -> bool:
        """Check whether every required executable is available.

        Returns:
            True if the backend can run, False otherwise
        """
        ...

    @abstractmethod
    def require(self) -> None:
        """Ensure the backend can run.

        Raises:
            MissingPrerequisiteError: Naming the first missing executable.
        """
        ...

    @abstractmethod
    async def build(
        self,
        manifest_path: Path,
        build_dir: Path,
        repo_dir: Path,
        *,
        force_clean: bool = True,
    ) -> Path:
        """Build a repository from a manifest.

        Args:
            manifest_path: Declarative build manifest.
            build_dir: Backend scratch directory.
            repo_dir: Output repository directory.
            force_clean: Discard any previous partial build state first.

        Returns:
            Path to the repository.

        Raises:
            BackendBuildError: If the build fails.
        """
        ...

    @abstractmethod
    async def export_bundle(self, repo_dir: Path, bundle_path: Path, app_id: str) -> Path:
        """Export a single-file bundle from a repository.

        Raises:
            BackendBuildError: If the export fails.
        """
        ...

    @abstractmethod
    async def list_installed(self) -> set[str]:
        """Return the ids of installed applications.

        Raises:
            BackendQueryError: If the registry cannot be queried.
        """
        ...

    @abstractmethod
    async def install(self, bundle_path: Path, *, reinstall: bool = False) -> None:
        """Install a local bundle, replacing any existing install when asked.

        Raises:
            BackendInstallError: If the install fails.
        """
        ...

    @abstractmethod
    async def uninstall(self, app_id: str, *, delete_data: bool = False) -> None:
        """Uninstall an application.

        Raises:
            BackendInstallError: If the uninstall fails.
        """
        ...

    @abstractmethod
    async def show_commit(self, app_id: str) -> str | None:
        """Return the installed commit of an application, or None."""
        ...

    @abstractmethod
    async def bundle_commit(self, bundle_path: Path) -> str | None:
        """Return the commit embedded in a bundle, or None."""
        ...


class ConfigLoader(ABC):
    """Abstract base class for configuration loaders."""

    @abstractmethod
    def load(self, path: str) -> dict[str, Any]:
        """Load configuration from a file.

        Args:
            path: Path to the configuration file

        Returns:
            Configuration dictionary
        """
        ...

    @abstractmethod
    def save(self, config: dict[str, Any], path: str) -> None:
        """Save configuration to a file.

        Args:
            config: Configuration dictionary
            path: Path to save the configuration
        """
        ...
