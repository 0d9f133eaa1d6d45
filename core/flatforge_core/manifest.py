"""Default flatpak-builder manifests.

A workspace normally ships its own manifest per application. When one is
missing, a minimal manifest is generated that copies the prepared files
directory into ``/app`` and exposes the binary.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from pathlib import Path

    from .models import Application

logger = structlog.get_logger(__name__)


def build_manifest(app: Application) -> dict[str, Any]:
    """Build the manifest document for an application."""
    return {
        "app-id": app.app_id,
        "runtime": app.runtime,
        "runtime-version": app.runtime_version,
        "sdk": app.sdk,
        "command": app.binary,
        "finish-args": list(app.finish_args),
        "modules": [
            {
                "name": app.slug,
                "buildsystem": "simple",
                "build-commands": [
                    "mkdir -p /app/bin /app/share",
                    "cp -a files/. /app/",
                    f"ln -sf /app/{app.binary} /app/bin/{app.binary}",
                ],
                "sources": [{"type": "dir", "path": "files", "dest": "files"}],
            }
        ],
    }


def write_manifest(app: Application) -> Path | None:
    """Write the default manifest unless one already exists.

    Args:
        app: Application to describe.

    Returns:
        The manifest path if it was written, None if left untouched.
    """
    path = app.manifest_path
    if path.exists():
        return None

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(build_manifest(app), indent=2) + "\n")
    logger.info("manifest_written", app=app.name, path=str(path))
    return path
