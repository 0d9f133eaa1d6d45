"""Download manager for upstream application archives.

This module streams an archive to disk with aiohttp, verifies its sha256
checksum while writing, and only moves the file into place once the bytes
are known to be good.

Features:
    - Streaming download in fixed-size chunks
    - Checksum verification (sha256)
    - Temporary ``.download`` file, removed on any failure
"""

from __future__ import annotations

import hashlib
import shutil
import time
from typing import TYPE_CHECKING

import aiohttp
import structlog

from .errors import IntegrityError, TransportError
from .models import DownloadSpec, GlobalConfig

if TYPE_CHECKING:
    from pathlib import Path

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 3600
DEFAULT_CHUNK_SIZE = 65536  # 64 KB chunks
USER_AGENT = "flatforge-download-manager/1.0"


def _discard(path: Path) -> None:
    """Remove a partial download, whatever is in its place."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path, ignore_errors=True)
    else:
        path.unlink(missing_ok=True)


class DownloadManager:
    """Fetches source archives with integrity verification.

    Network and HTTP failures raise TransportError, checksum mismatches
    raise IntegrityError. Nothing is retried: the operator re-runs the build.

    Example:
        >>> manager = DownloadManager()
        >>> spec = DownloadSpec(
        ...     url="https://example.com/app.tar.xz",
        ...     destination=Path("/tmp/app.tar.xz"),
        ...     checksum="abc123...",
        ... )
        >>> await manager.fetch(spec)
    """

    def __init__(self, timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS) -> None:
        """Initialize the download manager.

        Args:
            timeout_seconds: Default timeout for downloads in seconds.
        """
        self._timeout_seconds = timeout_seconds
        self._log = logger.bind(component="download_manager")

    @classmethod
    def from_config(cls, config: GlobalConfig) -> DownloadManager:
        """Create a DownloadManager from GlobalConfig.

        Args:
            config: Global configuration.

        Returns:
            Configured DownloadManager instance.
        """
        return cls(timeout_seconds=config.download_timeout_seconds)

    async def fetch(self, spec: DownloadSpec, app: str | None = None) -> Path:
        """Download the file described by a DownloadSpec.

        Args:
            spec: Download specification.
            app: Name of the application, for error context.

        Returns:
            Path of the downloaded file.

        Raises:
            TransportError: On HTTP status >= 400, network error, timeout, or when
                the file cannot be written locally.
            IntegrityError: If a non-empty checksum does not match.
        """
        log = self._log.bind(app=app, url=spec.url)
        start_time = time.monotonic()
        timeout = aiohttp.ClientTimeout(total=self._timeout_seconds)
        headers = {"User-Agent": USER_AGENT}
        temp_path = spec.destination.parent / f".{spec.destination.name}.download"

        log.info("download_started")

        try:
            spec.destination.parent.mkdir(parents=True, exist_ok=True)
            async with (
                aiohttp.ClientSession(timeout=timeout) as session,
                session.get(spec.url, headers=headers) as response,
            ):
                if response.status >= 400:
                    raise TransportError(
                        f"HTTP error {response.status}: {response.reason}",
                        app=app,
                        stage="fetch",
                    )

                bytes_downloaded = 0
                hasher = hashlib.sha256()

                with temp_path.open("wb") as f:
                    async for chunk in response.content.iter_chunked(DEFAULT_CHUNK_SIZE):
                        f.write(chunk)
                        hasher.update(chunk)
                        bytes_downloaded += len(chunk)

        except aiohttp.ClientError as e:
            _discard(temp_path)
            raise TransportError(f"Network error: {e}", app=app, stage="fetch") from e

        except TimeoutError:
            _discard(temp_path)
            raise TransportError("Download timed out", app=app, stage="fetch") from None

        except TransportError:
            _discard(temp_path)
            raise

        except OSError as e:
            _discard(temp_path)
            raise TransportError(
                f"Cannot write download to {temp_path}: {e}", app=app, stage="fetch"
            ) from e

        if spec.checksum:
            computed = hasher.hexdigest()
            expected = spec.checksum.strip().lower()
            if computed != expected:
                temp_path.unlink(missing_ok=True)
                log.error("checksum_mismatch", expected=expected, computed=computed)
                raise IntegrityError(
                    f"Checksum mismatch: expected {expected}, got {computed}",
                    app=app,
                    stage="fetch",
                )
            log.info("checksum_verified")

        try:
            shutil.move(str(temp_path), str(spec.destination))
        except OSError as e:
            _discard(temp_path)
            raise TransportError(
                f"Cannot move download to {spec.destination}: {e}", app=app, stage="fetch"
            ) from e

        log.info(
            "download_completed",
            path=str(spec.destination),
            bytes=bytes_downloaded,
            duration_seconds=round(time.monotonic() - start_time, 2),
        )
        return spec.destination
