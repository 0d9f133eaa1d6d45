"""flatforge core library.

Build/install orchestration for packaging desktop applications as Flatpak
bundles.

Module Overview:
    config: YAML-based configuration management (XDG spec compliant)
    download_manager: Streaming archive download with checksum verification
    errors: Exception hierarchy with application/stage context
    fetcher: Download, extract and normalize an application's payload
    interfaces: Abstract packaging backend
    installer: Install decision engine and uninstaller
    layout: Archive extraction, root selection and files-directory mirroring
    manifest: Default flatpak-builder manifests
    metadata: AppStream metainfo generation
    models: Pydantic data models for configuration and results
    pipeline: Staged build pipeline controller
    version: Installed/bundle commit comparison
    workspace: Idempotent workspace reset
"""

from importlib.metadata import version as get_package_version

from flatforge_core.builder import PackageBuilder
from flatforge_core.config import (
    ConfigManager,
    YamlConfigLoader,
    get_config_dir,
    get_default_config_path,
)
from flatforge_core.download_manager import DownloadManager
from flatforge_core.errors import (
    BackendBuildError,
    BackendError,
    BackendInstallError,
    BackendQueryError,
    FlatforgeError,
    IntegrityError,
    LayoutError,
    MetadataError,
    MissingPrerequisiteError,
    TransportError,
)
from flatforge_core.fetcher import ArtifactFetcher
from flatforge_core.installer import (
    Decision,
    InstallDecisionEngine,
    Uninstaller,
    accept_all,
    classify,
    decide,
    deny_all,
)
from flatforge_core.interfaces import ConfigLoader, PackagingBackend
from flatforge_core.metadata import MetadataGenerator, extract_build_version
from flatforge_core.models import (
    AppConfig,
    Application,
    BuildResult,
    BuildStage,
    BuildStatus,
    GlobalConfig,
    InstallAction,
    InstallPolicy,
    InstallResult,
    InstallState,
    InstallStatus,
    InstallSummary,
    LogLevel,
    PipelineSummary,
    ResetAction,
    ResetReport,
    StageState,
    SystemConfig,
    UninstallResult,
    UninstallStatus,
)
from flatforge_core.pipeline import PipelineController, select_applications
from flatforge_core.version import VersionOracle, same_version
from flatforge_core.workspace import WorkspaceReset

__version__ = get_package_version("flatforge")

__all__ = [
    "AppConfig",
    "Application",
    "ArtifactFetcher",
    "BackendBuildError",
    "BackendError",
    "BackendInstallError",
    "BackendQueryError",
    "BuildResult",
    "BuildStage",
    "BuildStatus",
    "ConfigLoader",
    "ConfigManager",
    "Decision",
    "DownloadManager",
    "FlatforgeError",
    "GlobalConfig",
    "InstallAction",
    "InstallDecisionEngine",
    "InstallPolicy",
    "InstallResult",
    "InstallState",
    "InstallStatus",
    "InstallSummary",
    "IntegrityError",
    "LayoutError",
    "LogLevel",
    "MetadataError",
    "MetadataGenerator",
    "MissingPrerequisiteError",
    "PackageBuilder",
    "PackagingBackend",
    "PipelineController",
    "PipelineSummary",
    "ResetAction",
    "ResetReport",
    "StageState",
    "SystemConfig",
    "TransportError",
    "UninstallResult",
    "UninstallStatus",
    "Uninstaller",
    "VersionOracle",
    "WorkspaceReset",
    "YamlConfigLoader",
    "accept_all",
    "classify",
    "decide",
    "deny_all",
    "extract_build_version",
    "get_config_dir",
    "get_default_config_path",
    "same_version",
    "select_applications",
]
