"""AppStream metainfo generation.

Writes ``share/app-info/xmls/<app-id>.metainfo.xml`` into an application's
files directory, plus the gzip alias ``<app-id>.xml.gz`` the Flatpak
exporter looks for. Regenerated on every build: it is cheap and a files
directory may predate the current metadata layout.
"""

from __future__ import annotations

import gzip
import re
import xml.etree.ElementTree as ET
from datetime import date
from typing import TYPE_CHECKING

import structlog

from .errors import MetadataError

if TYPE_CHECKING:
    from pathlib import Path

    from .models import Application

logger = structlog.get_logger(__name__)

BUILD_VERSION_PATTERN = re.compile(r"build_(\d+)")
UNKNOWN_VERSION = "unknown"
METAINFO_SUBDIR = ("share", "app-info", "xmls")


def extract_build_version(url: str) -> str:
    """Derive the build number from a URL like ``..._build_4200_x64.tar.xz``.

    Examples:
        >>> extract_build_version("https://x/sublime_text_build_4200_x64.tar.xz")
        '4200'
        >>> extract_build_version("https://x/latest.tar.xz")
        'unknown'
    """
    match = BUILD_VERSION_PATTERN.search(url)
    return match.group(1) if match else UNKNOWN_VERSION


def metainfo_dir(files_dir: Path) -> Path:
    """Directory holding the AppStream files inside a files directory."""
    return files_dir.joinpath(*METAINFO_SUBDIR)


def metainfo_path(files_dir: Path, app_id: str) -> Path:
    """Path of the metainfo XML for an application."""
    return metainfo_dir(files_dir) / f"{app_id}.metainfo.xml"


def gz_alias_path(files_dir: Path, app_id: str) -> Path:
    """Path of the compressed AppStream alias."""
    return metainfo_dir(files_dir) / f"{app_id}.xml.gz"


def render_metainfo(app: Application, version: str, release_date: date) -> bytes:
    """Render the AppStream component document for an application."""
    component = ET.Element("component", type="desktop-application")
    ET.SubElement(component, "id").text = app.app_id
    ET.SubElement(component, "name").text = app.name
    ET.SubElement(component, "summary").text = app.summary
    description = ET.SubElement(component, "description")
    ET.SubElement(description, "p").text = app.description
    ET.SubElement(component, "launchable", type="desktop-id").text = app.desktop_id
    ET.SubElement(component, "metadata_license").text = "CC0-1.0"
    ET.SubElement(component, "project_license").text = "Proprietary"
    ET.SubElement(component, "url", type="homepage").text = app.homepage
    provides = ET.SubElement(component, "provides")
    ET.SubElement(provides, "binary").text = app.binary
    categories = ET.SubElement(component, "categories")
    for category in app.categories:
        ET.SubElement(categories, "category").text = category
    releases = ET.SubElement(component, "releases")
    ET.SubElement(releases, "release", version=version, date=release_date.isoformat())

    ET.indent(component)
    return ET.tostring(component, encoding="UTF-8", xml_declaration=True)


class MetadataGenerator:
    """Generates and checks AppStream metadata for applications."""

    def __init__(self, today: date | None = None) -> None:
        """Initialize the generator.

        Args:
            today: Release date to record. Defaults to the current date.
        """
        self._today = today
        self._log = logger.bind(component="metadata")

    def write_metainfo(self, app: Application, version: str | None = None) -> Path:
        """Write the metainfo XML into the application's files directory.

        Args:
            app: Application to describe.
            version: Release version. Derived from the source URL when None.

        Returns:
            Path of the written file.
        """
        version = version or extract_build_version(app.source_url)
        path = metainfo_path(app.files_dir, app.app_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(render_metainfo(app, version, self._today or date.today()))
        except OSError as e:
            raise MetadataError(
                f"Cannot write metainfo {path}: {e}", app=app.name, stage="metadata"
            ) from e
        self._log.info("metainfo_written", app=app.name, path=str(path), version=version)
        return path

    def assert_present(self, app: Application) -> Path:
        """Raise MetadataError if the metainfo file is missing."""
        path = metainfo_path(app.files_dir, app.app_id)
        if not path.is_file():
            raise MetadataError(
                f"Missing AppStream metainfo: {path}", app=app.name, stage="metadata"
            )
        return path

    def validate(self, app: Application) -> None:
        """Check the metainfo file is well-formed XML describing this app."""
        path = self.assert_present(app)
        try:
            root = ET.parse(path).getroot()
        except ET.ParseError as e:
            raise MetadataError(
                f"Invalid XML in {path}: {e}", app=app.name, stage="metadata"
            ) from e
        if root.tag != "component" or root.findtext("id") != app.app_id:
            raise MetadataError(
                f"Metainfo {path} does not describe {app.app_id}", app=app.name, stage="metadata"
            )
        self._log.debug("metainfo_validated", app=app.name, path=str(path))

    def make_gz_alias(self, app: Application) -> Path:
        """Write ``<app-id>.xml.gz`` from the metainfo XML."""
        source = self.assert_present(app)
        target = gz_alias_path(app.files_dir, app.app_id)
        try:
            with gzip.open(target, "wb", compresslevel=9) as f:
                f.write(source.read_bytes())
        except OSError as e:
            raise MetadataError(
                f"Cannot write AppStream alias {target}: {e}", app=app.name, stage="metadata"
            ) from e
        self._log.info("metainfo_gz_alias_created", app=app.name, path=str(target))
        return target

    def generate(self, app: Application) -> Path:
        """Write, check and compress the metadata for one application.

        Returns:
            Path of the metainfo XML.
        """
        path = self.write_metainfo(app)
        self.validate(app)
        self.make_gz_alias(app)
        return path
