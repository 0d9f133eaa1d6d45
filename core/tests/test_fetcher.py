"""Tests for ArtifactFetcher."""

from __future__ import annotations

import tarfile
from pathlib import Path
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, MagicMock

import pytest

from flatforge_core.errors import IntegrityError, LayoutError
from flatforge_core.fetcher import ArtifactFetcher
from flatforge_core.models import DownloadSpec

if TYPE_CHECKING:
    from collections.abc import Callable

    from flatforge_core.models import Application


def write_archive(path: Path, tops: dict[str, dict[str, str]]) -> Path:
    """Write a tar.xz with the given top-level directories and files."""
    staging = path.parent / f"{path.name}.src"
    for top, files in tops.items():
        (staging / top).mkdir(parents=True)
        for name, content in files.items():
            (staging / top / name).write_text(content)
    with tarfile.open(path, "w:xz") as tar:
        for top in tops:
            tar.add(staging / top, arcname=top)
    return path


def fake_downloads(archive: Path) -> MagicMock:
    """Download manager copying a prepared archive to the destination."""

    async def fetch(spec: DownloadSpec, app: str | None = None) -> Path:
        spec.destination.parent.mkdir(parents=True, exist_ok=True)
        spec.destination.write_bytes(archive.read_bytes())
        return spec.destination

    manager = MagicMock()
    manager.fetch = AsyncMock(side_effect=fetch)
    return manager


class TestExtractAndNormalize:
    """Tests for ArtifactFetcher.extract_and_normalize."""

    @pytest.mark.asyncio
    async def test_picks_first_root(self, tmp_path: Path) -> None:
        """The lexicographically first top-level directory is mirrored."""
        archive = write_archive(
            tmp_path / "app.tar.xz",
            {
                "b-pkg": {"demo": "b", "only-in-b.txt": "b"},
                "a-pkg": {"demo": "a", "only-in-a.txt": "a"},
            },
        )
        files_dir = tmp_path / "files"

        await ArtifactFetcher().extract_and_normalize(
            archive, tmp_path / "build", files_dir, "demo", app="Demo"
        )

        assert (files_dir / "demo").read_text() == "a"
        assert sorted(p.name for p in files_dir.iterdir()) == ["demo", "only-in-a.txt"]
        assert not (files_dir / "only-in-b.txt").exists()

    @pytest.mark.asyncio
    async def test_recreates_build_dir(self, tmp_path: Path) -> None:
        """Leftovers from a previous extraction are discarded."""
        archive = write_archive(tmp_path / "app.tar.xz", {"z-pkg": {"demo": "new"}})
        build_dir = tmp_path / "build"
        (build_dir / "a-stale").mkdir(parents=True)
        (build_dir / "a-stale" / "demo").write_text("stale")

        await ArtifactFetcher().extract_and_normalize(
            archive, build_dir, tmp_path / "files", "demo"
        )

        assert (tmp_path / "files" / "demo").read_text() == "new"

    @pytest.mark.asyncio
    async def test_missing_binary_carries_context(self, tmp_path: Path) -> None:
        """Layout errors name the application and stage."""
        archive = write_archive(tmp_path / "app.tar.xz", {"pkg": {"README": "x"}})

        with pytest.raises(LayoutError) as exc_info:
            await ArtifactFetcher().extract_and_normalize(
                archive, tmp_path / "build", tmp_path / "files", "demo", app="Demo"
            )

        assert exc_info.value.app == "Demo"
        assert exc_info.value.stage == "fetch"
        assert not (tmp_path / "files").exists()


class TestPrepare:
    """Tests for ArtifactFetcher.prepare."""

    @pytest.mark.asyncio
    async def test_prepare_downloads_and_mirrors(
        self, tmp_path: Path, make_app: Callable[..., Application]
    ) -> None:
        """prepare downloads into scratch and fills the files directory."""
        app = make_app("demo", sha256="f" * 64)
        archive = write_archive(tmp_path / "upstream.tar.xz", {"demo_x64": {"demo": "bin"}})
        downloads = fake_downloads(archive)
        scratch = tmp_path / "target" / ".tmp"

        files_dir = await ArtifactFetcher(downloads).prepare(app, scratch)

        spec = downloads.fetch.await_args.args[0]
        assert spec.url == app.source_url
        assert spec.checksum == "f" * 64
        assert spec.destination == scratch / "demo.tar.xz"
        assert files_dir == app.files_dir
        assert (app.files_dir / "demo").read_text() == "bin"
        assert (scratch / "demo_build" / "demo_x64").is_dir()

    @pytest.mark.asyncio
    async def test_integrity_error_propagates(
        self, tmp_path: Path, make_app: Callable[..., Application]
    ) -> None:
        """A checksum failure stops before extraction."""
        app = make_app("demo")
        downloads = MagicMock()
        downloads.fetch = AsyncMock(side_effect=IntegrityError("mismatch", stage="fetch"))

        with pytest.raises(IntegrityError):
            await ArtifactFetcher(downloads).prepare(app, tmp_path / "scratch")

        assert not app.files_dir.exists()
