"""Tests for DownloadManager.

This module tests streaming download, checksum verification and the
transport error mapping.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from unittest.mock import MagicMock, patch

import aiohttp
import pytest

from flatforge_core.download_manager import DEFAULT_TIMEOUT_SECONDS, DownloadManager
from flatforge_core.errors import IntegrityError, TransportError
from flatforge_core.models import DownloadSpec, GlobalConfig


class AsyncIteratorMock:
    """Mock async iterator for testing."""

    def __init__(self, items: list) -> None:
        self.items = items
        self.index = 0

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.index >= len(self.items):
            raise StopAsyncIteration
        item = self.items[self.index]
        self.index += 1
        return item


def mock_response(chunks: list[bytes], status: int = 200, reason: str = "OK") -> MagicMock:
    """Build a mock aiohttp response streaming chunks."""
    response = MagicMock()
    response.status = status
    response.reason = reason
    response.content.iter_chunked = MagicMock(return_value=AsyncIteratorMock(chunks))
    return response


class TestDownloadManagerInit:
    """Tests for DownloadManager initialization."""

    def test_default_config(self) -> None:
        """DM-001: Default timeout is used."""
        manager = DownloadManager()

        assert manager._timeout_seconds == DEFAULT_TIMEOUT_SECONDS

    def test_from_config(self) -> None:
        """DM-002: Create manager from GlobalConfig."""
        manager = DownloadManager.from_config(GlobalConfig(download_timeout_seconds=42))

        assert manager._timeout_seconds == 42


class TestDownloadManagerFetch:
    """Tests for DownloadManager.fetch."""

    def setup_method(self) -> None:
        """Create a manager for each test."""
        self.manager = DownloadManager(timeout_seconds=5)

    @pytest.mark.asyncio
    async def test_fetch_writes_file(self, tmp_path: Path) -> None:
        """DM-010: Chunks are written to the destination."""
        dest = tmp_path / "downloads" / "app.tar.xz"
        spec = DownloadSpec(url="https://example.org/app.tar.xz", destination=dest)

        with patch("aiohttp.ClientSession") as mock_session:
            session = mock_session.return_value.__aenter__.return_value
            session.get.return_value.__aenter__.return_value = mock_response(
                [b"hello ", b"world"]
            )

            path = await self.manager.fetch(spec, "Demo")

        assert path == dest
        assert dest.read_bytes() == b"hello world"
        assert not (dest.parent / ".app.tar.xz.download").exists()

    @pytest.mark.asyncio
    async def test_fetch_verifies_checksum(self, tmp_path: Path) -> None:
        """DM-011: A matching checksum is accepted regardless of case."""
        dest = tmp_path / "app.tar.xz"
        digest = hashlib.sha256(b"payload").hexdigest().upper()
        spec = DownloadSpec(url="https://example.org/app.tar.xz", destination=dest, checksum=digest)

        with patch("aiohttp.ClientSession") as mock_session:
            session = mock_session.return_value.__aenter__.return_value
            session.get.return_value.__aenter__.return_value = mock_response([b"payload"])

            await self.manager.fetch(spec, "Demo")

        assert dest.read_bytes() == b"payload"

    @pytest.mark.asyncio
    async def test_checksum_mismatch(self, tmp_path: Path) -> None:
        """DM-012: A mismatch raises IntegrityError and leaves no file behind."""
        dest = tmp_path / "app.tar.xz"
        spec = DownloadSpec(
            url="https://example.org/app.tar.xz", destination=dest, checksum="0" * 64
        )

        with patch("aiohttp.ClientSession") as mock_session:
            session = mock_session.return_value.__aenter__.return_value
            session.get.return_value.__aenter__.return_value = mock_response([b"tampered"])

            with pytest.raises(IntegrityError) as exc_info:
                await self.manager.fetch(spec, "Demo")

        assert exc_info.value.app == "Demo"
        assert exc_info.value.stage == "fetch"
        assert not dest.exists()
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_http_error(self, tmp_path: Path) -> None:
        """DM-013: HTTP status >= 400 raises TransportError."""
        spec = DownloadSpec(url="https://example.org/missing", destination=tmp_path / "x")

        with patch("aiohttp.ClientSession") as mock_session:
            session = mock_session.return_value.__aenter__.return_value
            session.get.return_value.__aenter__.return_value = mock_response(
                [], status=404, reason="Not Found"
            )

            with pytest.raises(TransportError, match="404"):
                await self.manager.fetch(spec, "Demo")

        assert not (tmp_path / "x").exists()

    @pytest.mark.asyncio
    async def test_network_error(self, tmp_path: Path) -> None:
        """DM-014: Client errors are mapped to TransportError."""
        spec = DownloadSpec(url="https://example.org/app.zip", destination=tmp_path / "app.zip")

        with patch("aiohttp.ClientSession") as mock_session:
            session = mock_session.return_value.__aenter__.return_value
            session.get.side_effect = aiohttp.ClientConnectionError("connection refused")

            with pytest.raises(TransportError, match="Network error"):
                await self.manager.fetch(spec, "Demo")

    @pytest.mark.asyncio
    async def test_timeout(self, tmp_path: Path) -> None:
        """DM-015: Timeouts are mapped to TransportError."""
        spec = DownloadSpec(url="https://example.org/app.zip", destination=tmp_path / "app.zip")

        with patch("aiohttp.ClientSession") as mock_session:
            session = mock_session.return_value.__aenter__.return_value
            session.get.side_effect = TimeoutError()

            with pytest.raises(TransportError, match="timed out"):
                await self.manager.fetch(spec, "Demo")

    @pytest.mark.asyncio
    async def test_local_write_error(self, tmp_path: Path) -> None:
        """DM-016: A temp file that cannot be written raises TransportError."""
        dest = tmp_path / "app.tar.xz"
        temp_path = tmp_path / ".app.tar.xz.download"
        temp_path.mkdir()
        spec = DownloadSpec(url="https://example.org/app.tar.xz", destination=dest)

        with patch("aiohttp.ClientSession") as mock_session:
            session = mock_session.return_value.__aenter__.return_value
            session.get.return_value.__aenter__.return_value = mock_response([b"payload"])

            with pytest.raises(TransportError, match="Cannot write download") as exc_info:
                await self.manager.fetch(spec, "Demo")

        assert exc_info.value.stage == "fetch"
        assert not dest.exists()
        assert not temp_path.exists()
