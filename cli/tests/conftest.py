"""Shared test fixtures for CLI tests."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest
import structlog
import yaml
from rich.console import Console

from flatforge_core.errors import MissingPrerequisiteError
from flatforge_core.interfaces import PackagingBackend

if TYPE_CHECKING:
    from collections.abc import Generator

DEMO_APP = {
    "app_id": "org.example.Demo",
    "name": "Demo",
    "slug": "demo",
    "binary": "demo",
    "url": "https://example.org/demo_build_7_x64.tar.xz",
}


class FakeBackend(PackagingBackend):
    """In-memory backend recording every call."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.installed: dict[str, str | None] = {}
        self.bundle_commit_value: str | None = None
        self.missing: str | None = None

    @property
    def name(self) -> str:
        return "fake"

    @property
    def required_commands(self) -> list[str]:
        return ["fake-builder"]

    async def check_available(self) -> bool:
        return self.missing is None

    def require(self) -> None:
        if self.missing is not None:
            raise MissingPrerequisiteError(self.missing)

    async def build(
        self, manifest_path: Path, build_dir: Path, repo_dir: Path, *, force_clean: bool = True
    ) -> Path:
        self.calls.append(("build", manifest_path))
        repo_dir.mkdir(parents=True, exist_ok=True)
        return repo_dir

    async def export_bundle(self, repo_dir: Path, bundle_path: Path, app_id: str) -> Path:
        self.calls.append(("export", bundle_path))
        bundle_path.write_bytes(b"bundle")
        return bundle_path

    async def list_installed(self) -> set[str]:
        return set(self.installed)

    async def install(self, bundle_path: Path, *, reinstall: bool = False) -> None:
        self.calls.append(("install", bundle_path, reinstall))

    async def uninstall(self, app_id: str, *, delete_data: bool = False) -> None:
        self.calls.append(("uninstall", app_id, delete_data))
        self.installed.pop(app_id, None)

    async def show_commit(self, app_id: str) -> str | None:
        return self.installed.get(app_id)

    async def bundle_commit(self, bundle_path: Path) -> str | None:
        return self.bundle_commit_value


@pytest.fixture(autouse=True)
def isolated_config_dir(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[Path, None, None]:
    """Isolate tests from the real user configuration directory.

    Sets XDG_CONFIG_HOME to a temporary directory so that tests don't
    read or modify ~/.config/flatforge/. Logging configured by a command
    is reset afterwards.
    """
    config_home = tmp_path / "xdg_config"
    config_home.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))

    yield config_home

    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def wide_console(monkeypatch: pytest.MonkeyPatch) -> Console:
    """Render CLI output wide enough that table cells never wrap."""
    console = Console(width=200)
    monkeypatch.setattr("flatforge_cli.main.console", console)
    return console


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Empty workspace root."""
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def config_file(tmp_path: Path, workspace: Path) -> Path:
    """Configuration with a single demo application in the workspace."""
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.dump(
            {
                "global": {"log_level": "error", "workspace_root": str(workspace)},
                "applications": [DEMO_APP],
            }
        )
    )
    return path


@pytest.fixture
def backend(monkeypatch: pytest.MonkeyPatch) -> FakeBackend:
    """Fake backend returned for every session."""
    fake = FakeBackend()
    monkeypatch.setattr("flatforge_cli.session.create_backend", lambda config, root: fake)
    return fake


@pytest.fixture
def prepared_files(workspace: Path) -> Path:
    """Files directory with an executable demo binary, so no download happens."""
    files_dir = workspace / "main" / "demo" / "files"
    files_dir.mkdir(parents=True)
    binary = files_dir / "demo"
    binary.write_text("#!/bin/sh\n")
    binary.chmod(0o755)
    return files_dir
