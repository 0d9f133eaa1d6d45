"""Tests for the backend registry."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from flatforge_backend.flatpak import FlatpakBackend
from flatforge_backend.registry import BackendRegistry, get_registry, register_builtin_backends


class TestBackendRegistry:
    """Tests for BackendRegistry."""

    def test_register_builtin(self) -> None:
        """The Flatpak backend is built in."""
        registry = BackendRegistry()
        register_builtin_backends(registry)

        assert registry.list_names() == ["flatpak"]

    def test_create_passes_kwargs(self, tmp_path: Path) -> None:
        """create instantiates with constructor arguments."""
        backend = get_registry().create(
            "flatpak", timeout_seconds=5, state_dir=tmp_path / ".flatpak-builder"
        )

        assert isinstance(backend, FlatpakBackend)
        assert backend.timeout_seconds == 5
        assert backend.state_dir == tmp_path / ".flatpak-builder"

    def test_create_unknown(self) -> None:
        """Unknown backend names raise KeyError."""
        with pytest.raises(KeyError, match="snap"):
            BackendRegistry().create("snap")

    def test_get_registry_is_shared(self) -> None:
        """The global registry is created once."""
        assert get_registry() is get_registry()

    def test_discover_backends(self) -> None:
        """Entry points are loaded and registered; broken ones are skipped."""
        good = MagicMock()
        good.name = "flatpak"
        good.load.return_value = FlatpakBackend
        broken = MagicMock()
        broken.name = "broken"
        broken.load.side_effect = ImportError("no module")
        registry = BackendRegistry()

        with patch("importlib.metadata.entry_points", return_value=[good, broken]) as eps:
            count = registry.discover_backends()

        eps.assert_called_once_with(group="flatforge.backends")
        assert count == 1
        assert registry.list_names() == ["flatpak"]
