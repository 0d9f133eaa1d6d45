"""Artifact fetcher: download, extract and normalize one application."""

from __future__ import annotations

import asyncio
import shutil
from typing import TYPE_CHECKING

import structlog

from .download_manager import DownloadManager
from .errors import LayoutError
from .layout import extract_archive, mirror_tree, remove_desktop_files, select_root
from .models import DownloadSpec, infer_archive_format

if TYPE_CHECKING:
    from pathlib import Path

    from .models import Application

logger = structlog.get_logger(__name__)


class ArtifactFetcher:
    """Turns an upstream archive URL into a ready files directory."""

    def __init__(self, download_manager: DownloadManager | None = None) -> None:
        """Initialize the fetcher.

        Args:
            download_manager: Manager used for HTTP downloads.
        """
        self._downloads = download_manager or DownloadManager()
        self._log = logger.bind(component="artifact_fetcher")

    async def fetch(
        self,
        source_url: str,
        destination: Path,
        expected_checksum: str | None = None,
        *,
        app: str | None = None,
    ) -> Path:
        """Download an archive and verify it.

        Raises:
            TransportError: If the download fails.
            IntegrityError: If the checksum does not match.
        """
        spec = DownloadSpec(url=source_url, destination=destination, checksum=expected_checksum)
        return await self._downloads.fetch(spec, app=app)

    async def extract_and_normalize(
        self,
        archive_path: Path,
        build_dir: Path,
        files_dir: Path,
        binary: str,
        *,
        app: str | None = None,
    ) -> Path:
        """Extract an archive and mirror its root directory into files_dir.

        Args:
            archive_path: Downloaded archive.
            build_dir: Scratch directory for extraction; recreated empty.
            files_dir: Canonical files directory to replace.
            binary: Entry point expected at the top of the root directory.
            app: Application name, for error context.

        Returns:
            The files directory.

        Raises:
            LayoutError: If extraction fails, no root directory exists, or
                the binary is missing after mirroring.
        """
        log = self._log.bind(app=app)

        def work() -> Path:
            if build_dir.exists():
                shutil.rmtree(build_dir)
            extract_archive(archive_path, build_dir)
            root = select_root(build_dir)
            log.info("extracted_root_selected", root=root.name)
            for removed in remove_desktop_files(root, binary):
                log.debug("upstream_desktop_removed", path=str(removed))
            return mirror_tree(root, files_dir, binary)

        try:
            result = await asyncio.to_thread(work)
        except LayoutError as e:
            e.app = e.app or app
            e.stage = e.stage or "fetch"
            raise

        log.info("files_synced", files_dir=str(files_dir))
        return result

    async def prepare(self, app: Application, scratch_dir: Path) -> Path:
        """Download and normalize an application's payload.

        Args:
            app: Application to prepare.
            scratch_dir: Directory for the archive and extraction tree.

        Returns:
            The application's files directory.
        """
        suffix = infer_archive_format(app.source_url) or "archive"
        archive = scratch_dir / f"{app.binary}.{suffix}"

        self._log.info("downloading", app=app.name)
        await self.fetch(app.source_url, archive, app.expected_checksum, app=app.name)

        self._log.info("extracting", app=app.name)
        return await self.extract_and_normalize(
            archive,
            scratch_dir / f"{app.binary}_build",
            app.files_dir,
            app.binary,
            app=app.name,
        )
