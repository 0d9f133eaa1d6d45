"""Core data models for flatforge.

This module defines Pydantic models for configuration, resolved
applications, stage state, and build/install results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime  # noqa: TC003 - needed at runtime by Pydantic
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Opaque backend commit identifier; None means unknown.
VersionToken = str | None

DEFAULT_RUNTIME = "org.freedesktop.Platform"
DEFAULT_SDK = "org.freedesktop.Sdk"
DEFAULT_RUNTIME_VERSION = "24.08"
DEFAULT_FINISH_ARGS = [
    "--share=ipc",
    "--share=network",
    "--socket=x11",
    "--socket=wayland",
    "--device=dri",
    "--filesystem=home",
]


class LogLevel(str, Enum):
    """Log level for console output."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AppConfig(BaseModel):
    """Configuration entry describing one packaged application."""

    app_id: str = Field(..., description="Flatpak application id")
    name: str = Field(..., description="Human-readable application name")
    slug: str = Field(..., description="Directory and bundle name, e.g. 'sublime-text'")
    binary: str = Field(..., description="Entry point binary inside the files directory")
    url: str = Field(..., description="Upstream archive URL")
    sha256: str = Field(default="", description="Expected sha256 of the archive; empty skips")
    summary: str = Field(default="", description="One-line AppStream summary")
    homepage: str = Field(default="", description="Project homepage")
    description: str = Field(default="", description="AppStream description paragraph")
    categories: list[str] = Field(default_factory=list, description="AppStream categories")
    desktop_id: str | None = Field(default=None, description="Launchable desktop id")
    runtime: str = Field(default=DEFAULT_RUNTIME)
    runtime_version: str = Field(default=DEFAULT_RUNTIME_VERSION)
    sdk: str = Field(default=DEFAULT_SDK)
    finish_args: list[str] = Field(default_factory=lambda: list(DEFAULT_FINISH_ARGS))


class Application(BaseModel):
    """Resolved, immutable application record with its workspace paths."""

    model_config = ConfigDict(frozen=True)

    app_id: str
    name: str
    slug: str
    binary: str
    source_url: str
    expected_checksum: str | None = None
    summary: str = ""
    homepage: str = ""
    description: str = ""
    categories: tuple[str, ...] = ()
    desktop_id: str
    runtime: str = DEFAULT_RUNTIME
    runtime_version: str = DEFAULT_RUNTIME_VERSION
    sdk: str = DEFAULT_SDK
    finish_args: tuple[str, ...] = ()
    files_dir: Path
    build_dir: Path
    repo_dir: Path
    manifest_path: Path
    bundle_path: Path

    @classmethod
    def from_config(cls, config: AppConfig, root: Path, target_dir: Path) -> Application:
        """Resolve an AppConfig against a workspace root.

        Args:
            config: Application configuration entry.
            root: Workspace root directory.
            target_dir: Directory holding the exported bundles.

        Returns:
            Application with all paths filled in.
        """
        main_dir = root / "main" / config.slug
        return cls(
            app_id=config.app_id,
            name=config.name,
            slug=config.slug,
            binary=config.binary,
            source_url=config.url,
            expected_checksum=config.sha256 or None,
            summary=config.summary,
            homepage=config.homepage,
            description=config.description,
            categories=tuple(config.categories),
            desktop_id=config.desktop_id or f"{config.app_id}.desktop",
            runtime=config.runtime,
            runtime_version=config.runtime_version,
            sdk=config.sdk,
            finish_args=tuple(config.finish_args),
            files_dir=main_dir / "files",
            build_dir=main_dir / "build-dir",
            repo_dir=main_dir / "repo",
            manifest_path=main_dir / f"{config.slug}.json",
            bundle_path=target_dir / f"{config.slug}.flatpak",
        )


class InstallPolicy(BaseModel):
    """Operator-controlled install behaviour.

    When ``only_install_if_newer`` is on, a matching commit is skipped and a
    differing commit is updated without asking. When off, both cases ask the
    operator first.
    """

    model_config = ConfigDict(frozen=True)

    only_install_if_newer: bool = Field(
        default=True, description="Skip same commit, auto-update differing commit"
    )

    def toggled(self) -> InstallPolicy:
        """Return the policy with ``only_install_if_newer`` flipped."""
        return InstallPolicy(only_install_if_newer=not self.only_install_if_newer)


class GlobalConfig(BaseModel):
    """Global configuration for flatforge."""

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Console log level")
    workspace_root: Path | None = Field(
        default=None, description="Workspace root. None = current working directory."
    )
    backend: str = Field(default="flatpak", description="Packaging backend name")
    force_clean: bool = Field(
        default=True, description="Discard previous builder state on every build"
    )
    generate_manifests: bool = Field(
        default=True, description="Write a default manifest when none exists"
    )
    download_timeout_seconds: int = Field(default=3600, description="Download timeout")
    command_timeout_seconds: int = Field(
        default=3600, description="Timeout for backend build/install commands"
    )


class InstallConfig(BaseModel):
    """Install defaults."""

    only_install_if_newer: bool = Field(default=True)


class SystemConfig(BaseModel):
    """Complete flatforge configuration."""

    global_config: GlobalConfig = Field(default_factory=GlobalConfig)
    install: InstallConfig = Field(default_factory=InstallConfig)
    applications: list[AppConfig] = Field(default_factory=list)

    def default_policy(self) -> InstallPolicy:
        """Initial install policy for a session."""
        return InstallPolicy(only_install_if_newer=self.install.only_install_if_newer)


# =============================================================================
# Stage state
# =============================================================================


@dataclass(frozen=True)
class StageState:
    """Pipeline state of one application, derived from the filesystem.

    Attributes:
        files_ready: Entry point binary present and executable.
        descriptor_ready: Build manifest present.
        bundle_ready: Exported bundle file present.
    """

    files_ready: bool
    descriptor_ready: bool
    bundle_ready: bool

    @property
    def buildable(self) -> bool:
        """Whether the backend build may be invoked."""
        return self.files_ready and self.descriptor_ready


# =============================================================================
# Build results
# =============================================================================


class BuildStatus(str, Enum):
    """Outcome of a pipeline run for one application."""

    BUILT = "built"
    ALREADY_BUILT = "already_built"
    FAILED = "failed"


class BuildStage(str, Enum):
    """Pipeline stages, in execution order."""

    FETCH = "fetch"
    METADATA = "metadata"
    BUILD = "build"
    EXPORT = "export"


class BuildResult(BaseModel):
    """Result of building one application."""

    app_id: str = Field(..., description="Application id")
    name: str = Field(..., description="Application name")
    status: BuildStatus
    fetched: bool = Field(default=False, description="Whether the archive was downloaded")
    failed_stage: BuildStage | None = None
    error_message: str | None = None
    bundle_path: Path | None = None
    start_time: datetime
    end_time: datetime | None = None


class PipelineSummary(BaseModel):
    """Summary of a build run."""

    run_id: str
    start_time: datetime
    end_time: datetime | None = None
    results: list[BuildResult] = Field(default_factory=list)

    @property
    def built(self) -> int:
        """Number of applications built in this run."""
        return sum(1 for r in self.results if r.status == BuildStatus.BUILT)

    @property
    def already_built(self) -> int:
        """Number of applications skipped as already built."""
        return sum(1 for r in self.results if r.status == BuildStatus.ALREADY_BUILT)

    @property
    def failed(self) -> int:
        """Number of failed applications."""
        return sum(1 for r in self.results if r.status == BuildStatus.FAILED)


# =============================================================================
# Install results
# =============================================================================


class InstallState(str, Enum):
    """Installed state of an application relative to its bundle."""

    NOT_INSTALLED = "not_installed"
    INSTALLED_SAME_VERSION = "installed_same_version"
    INSTALLED_DIFFERENT_VERSION = "installed_different_version"


class InstallAction(str, Enum):
    """Action chosen by the install decision engine."""

    SKIP = "skip"
    INSTALL_FRESH = "install_fresh"
    REINSTALL_SAME = "reinstall_same"
    UPDATE_AUTOMATICALLY = "update_automatically"
    UPDATE_WITH_CONFIRMATION = "update_with_confirmation"

    @property
    def installs(self) -> bool:
        """Whether this action calls the backend installer."""
        return self is not InstallAction.SKIP


class InstallStatus(str, Enum):
    """Reported outcome of an install attempt."""

    SKIPPED = "skipped"
    INSTALLED = "installed"
    REINSTALLED = "reinstalled"
    UPDATED = "updated"
    FAILED = "failed"


class InstallResult(BaseModel):
    """Outcome of one install request."""

    app_id: str
    name: str
    status: InstallStatus
    action: InstallAction | None = None
    state: InstallState | None = None
    prompted: bool = Field(default=False, description="Whether the operator was asked")
    installed_version: VersionToken = None
    bundle_version: VersionToken = None
    reason: str | None = None


class InstallSummary(BaseModel):
    """Outcomes of a batch of install requests."""

    results: list[InstallResult] = Field(default_factory=list)

    @property
    def failed(self) -> int:
        """Number of failed installs."""
        return sum(1 for r in self.results if r.status == InstallStatus.FAILED)


class UninstallStatus(str, Enum):
    """Reported outcome of an uninstall attempt."""

    NOT_INSTALLED = "not_installed"
    CANCELLED = "cancelled"
    UNINSTALLED = "uninstalled"
    UNINSTALLED_WITH_DATA = "uninstalled_with_data"
    FAILED = "failed"


class UninstallResult(BaseModel):
    """Outcome of one uninstall request."""

    app_id: str
    name: str
    status: UninstallStatus
    reason: str | None = None


# =============================================================================
# Workspace reset
# =============================================================================


class ResetAction(str, Enum):
    """What the workspace reset did to a path."""

    REMOVED = "removed"
    ABSENT = "absent"
    EMPTIED = "emptied"
    ALREADY_EMPTY = "already_empty"
    CREATED = "created"


@dataclass
class ResetReport:
    """Paths touched by a workspace reset, in processing order."""

    entries: list[tuple[Path, ResetAction]] = field(default_factory=list)

    def add(self, path: Path, action: ResetAction) -> None:
        """Record an action for a path."""
        self.entries.append((path, action))

    @property
    def changed(self) -> bool:
        """Whether anything on disk changed."""
        return any(
            action in (ResetAction.REMOVED, ResetAction.EMPTIED, ResetAction.CREATED)
            for _, action in self.entries
        )

    def as_dict(self) -> dict[str, Any]:
        """Serializable view for logging."""
        return {str(path): action.value for path, action in self.entries}


# =============================================================================
# Download specification
# =============================================================================


def infer_archive_format(name: str) -> str | None:
    """Infer archive format from a URL or file name.

    Args:
        name: URL or file name.

    Returns:
        Archive format string or None if not an archive.
    """
    lower = name.lower()
    if lower.endswith(".tar.gz") or lower.endswith(".tgz"):
        return "tar.gz"
    if lower.endswith(".tar.bz2") or lower.endswith(".tbz2"):
        return "tar.bz2"
    if lower.endswith(".tar.xz") or lower.endswith(".txz"):
        return "tar.xz"
    if lower.endswith(".zip"):
        return "zip"
    return None


@dataclass(frozen=True)
class DownloadSpec:
    """Specification of a single archive download.

    Attributes:
        url: URL to download from.
        destination: Local file path to write.
        checksum: Expected sha256 hex digest; None or empty skips verification.
    """

    url: str
    destination: Path
    checksum: str | None = None

    def __post_init__(self) -> None:
        """Validate the download spec."""
        if not self.url:
            raise ValueError("url must be non-empty")
