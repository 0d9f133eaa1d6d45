"""flatforge backends package.

This package contains packaging backend implementations.
"""

from __future__ import annotations

from flatforge_backend.base import CommandBackend
from flatforge_backend.flatpak import FlatpakBackend
from flatforge_backend.registry import BackendRegistry, get_registry, register_builtin_backends

__all__ = [
    "BackendRegistry",
    "CommandBackend",
    "FlatpakBackend",
    "get_registry",
    "register_builtin_backends",
]
