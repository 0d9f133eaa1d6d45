"""Flatpak packaging backend."""

from __future__ import annotations

from pathlib import Path

import structlog

from flatforge_core.errors import BackendBuildError, BackendInstallError, BackendQueryError
from flatforge_backend.base import CommandBackend

logger = structlog.get_logger(__name__)


class FlatpakBackend(CommandBackend):
    """Backend for flatpak-builder and the per-user Flatpak installation.

    Executes:
    1. flatpak-builder --repo=<repo> --force-clean <build-dir> <manifest>
    2. flatpak build-bundle <repo> <bundle> <app-id>
    3. flatpak install/uninstall/list/info against the user installation
    """

    def __init__(self, timeout_seconds: int = 3600, state_dir: Path | None = None) -> None:
        """Initialize the backend.

        Args:
            timeout_seconds: Timeout for each flatpak command.
            state_dir: flatpak-builder cache directory (``.flatpak-builder``
                in the current directory when None).
        """
        super().__init__(timeout_seconds)
        self.state_dir = state_dir

    @property
    def name(self) -> str:
        """Return the backend name."""
        return "flatpak"

    @property
    def required_commands(self) -> list[str]:
        """Executables the backend shells out to."""
        return ["flatpak", "flatpak-builder"]

    async def _run_or_raise(
        self,
        cmd: list[str],
        error_cls: type[BackendBuildError | BackendInstallError | BackendQueryError],
        action: str,
    ) -> str:
        """Run a command and raise error_cls on failure or timeout.

        Returns:
            The command's standard output.
        """
        try:
            return_code, stdout, stderr = await self._run_command(cmd)
        except TimeoutError as e:
            raise error_cls(f"{action} timed out: {e}") from e

        if return_code != 0:
            detail = stderr.strip() or stdout.strip() or f"exit code {return_code}"
            raise error_cls(f"{action} failed: {detail}", return_code=return_code, stderr=stderr)
        return stdout

    async def build(
        self,
        manifest_path: Path,
        build_dir: Path,
        repo_dir: Path,
        *,
        force_clean: bool = True,
    ) -> Path:
        """Run flatpak-builder and commit the result into repo_dir."""
        cmd = ["flatpak-builder", f"--repo={repo_dir}"]
        if force_clean:
            cmd.append("--force-clean")
        if self.state_dir is not None:
            cmd.append(f"--state-dir={self.state_dir}")
        cmd.extend(["--disable-rofiles-fuse", str(build_dir), str(manifest_path)])

        await self._run_or_raise(cmd, BackendBuildError, "flatpak-builder")
        return repo_dir

    async def export_bundle(self, repo_dir: Path, bundle_path: Path, app_id: str) -> Path:
        """Export a single-file bundle with flatpak build-bundle."""
        await self._run_or_raise(
            ["flatpak", "build-bundle", str(repo_dir), str(bundle_path), app_id],
            BackendBuildError,
            "flatpak build-bundle",
        )
        return bundle_path

    async def list_installed(self) -> set[str]:
        """Return installed application ids."""
        stdout = await self._run_or_raise(
            ["flatpak", "list", "--app", "--columns=application"],
            BackendQueryError,
            "flatpak list",
        )
        return {line.strip() for line in stdout.splitlines() if line.strip()}

    async def install(self, bundle_path: Path, *, reinstall: bool = False) -> None:
        """Install a local bundle into the user installation."""
        cmd = ["flatpak", "install", "--user", "--noninteractive"]
        if reinstall:
            cmd.append("--reinstall")
        cmd.extend(["--bundle", str(bundle_path)])
        await self._run_or_raise(cmd, BackendInstallError, "flatpak install")

    async def uninstall(self, app_id: str, *, delete_data: bool = False) -> None:
        """Uninstall an application from the user installation."""
        cmd = ["flatpak", "uninstall", "--user"]
        if delete_data:
            cmd.append("--delete-data")
        cmd.extend(["--noninteractive", app_id])
        await self._run_or_raise(cmd, BackendInstallError, "flatpak uninstall")

    async def show_commit(self, app_id: str) -> str | None:
        """Installed commit of app_id; None when not installed."""
        return await self._query_commit(["flatpak", "info", "--show-commit", app_id])

    async def bundle_commit(self, bundle_path: Path) -> str | None:
        """Commit recorded in a bundle file; None when unavailable."""
        return await self._query_commit(
            ["flatpak", "bundle-info", str(bundle_path), "--show-commit"]
        )

    async def _query_commit(self, cmd: list[str]) -> str | None:
        """Run a commit query; a non-zero exit means "unknown", not an error."""
        try:
            return_code, stdout, _stderr = await self._run_command(cmd)
        except TimeoutError as e:
            raise BackendQueryError(f"{' '.join(cmd[:2])} timed out: {e}") from e

        if return_code != 0:
            logger.debug("commit_query_empty", command=" ".join(cmd), return_code=return_code)
            return None
        commit = stdout.strip().splitlines()[0].strip() if stdout.strip() else ""
        return commit or None
