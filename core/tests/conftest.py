"""Shared test fixtures for core tests."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from flatforge_core.errors import BackendBuildError, BackendInstallError, MissingPrerequisiteError
from flatforge_core.interfaces import PackagingBackend
from flatforge_core.models import AppConfig, Application

if TYPE_CHECKING:
    from collections.abc import Callable


class FakeBackend(PackagingBackend):
    """In-memory backend recording every call."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.installed: dict[str, str | None] = {}
        self.bundle_commits: dict[Path, str | None] = {}
        self.fail_build: set[str] = set()
        self.fail_install: set[Path] = set()
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
        self,
        manifest_path: Path,
        build_dir: Path,
        repo_dir: Path,
        *,
        force_clean: bool = True,
    ) -> Path:
        self.calls.append(("build", manifest_path, force_clean))
        if manifest_path in self.fail_build or manifest_path.stem in self.fail_build:
            raise BackendBuildError("builder exploded", return_code=1, stderr="boom")
        build_dir.mkdir(parents=True, exist_ok=True)
        repo_dir.mkdir(parents=True, exist_ok=True)
        return repo_dir

    async def export_bundle(self, repo_dir: Path, bundle_path: Path, app_id: str) -> Path:
        self.calls.append(("export", bundle_path, app_id))
        bundle_path.write_bytes(b"bundle:" + app_id.encode())
        return bundle_path

    async def list_installed(self) -> set[str]:
        self.calls.append(("list_installed",))
        return set(self.installed)

    async def install(self, bundle_path: Path, *, reinstall: bool = False) -> None:
        self.calls.append(("install", bundle_path, reinstall))
        if bundle_path in self.fail_install:
            raise BackendInstallError("install refused", return_code=1, stderr="nope")

    async def uninstall(self, app_id: str, *, delete_data: bool = False) -> None:
        self.calls.append(("uninstall", app_id, delete_data))
        self.installed.pop(app_id, None)

    async def show_commit(self, app_id: str) -> str | None:
        return self.installed.get(app_id)

    async def bundle_commit(self, bundle_path: Path) -> str | None:
        return self.bundle_commits.get(bundle_path)

    def called(self, kind: str) -> list[tuple]:
        """Calls of one kind, in order."""
        return [call for call in self.calls if call[0] == kind]


@pytest.fixture
def backend() -> FakeBackend:
    """A fresh fake backend."""
    return FakeBackend()


@pytest.fixture
def make_app(tmp_path: Path) -> Callable[..., Application]:
    """Factory for applications rooted in tmp_path."""

    def factory(slug: str = "demo-app", **overrides: object) -> Application:
        values: dict[str, object] = {
            "app_id": f"org.example.{slug.replace('-', '_')}",
            "name": slug.replace("-", " ").title(),
            "slug": slug,
            "binary": slug,
            "url": f"https://example.org/{slug}_build_4169_x64.tar.xz",
            "summary": "A demo application",
        }
        values.update(overrides)
        return Application.from_config(AppConfig(**values), tmp_path, tmp_path / "target")

    return factory
