"""Configuration management for flatforge.

This module provides YAML-based configuration loading and saving,
following the XDG Base Directory Specification.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import structlog
import yaml

from .interfaces import ConfigLoader
from .models import AppConfig, Application, GlobalConfig, InstallConfig, SystemConfig

logger = structlog.get_logger(__name__)

SUBLIME_TEXT = AppConfig(
    app_id="com.sublimetext.sublime_text",
    name="Sublime Text",
    slug="sublime-text",
    binary="sublime_text",
    url="https://download.sublimetext.com/sublime_text_build_4200_x64.tar.xz",
    sha256="36f69c551ad18ee46002be4d9c523fe545d93b67fea67beea731e724044b469f",
    summary="Sophisticated text editor for code, markup and prose",
    homepage="https://www.sublimetext.com/",
    description="Sublime Text is a fast, powerful editor with a rich ecosystem of packages.",
    categories=["Development", "Utility", "TextEditor"],
)

SUBLIME_MERGE = AppConfig(
    app_id="com.sublimemerge.sublime_merge",
    name="Sublime Merge",
    slug="sublime-merge",
    binary="sublime_merge",
    url="https://download.sublimetext.com/sublime_merge_build_2121_x64.tar.xz",
    sha256="c96aeb9437b90bdd0431055da443569c651171511dc4994591a9447cfa73b734",
    summary="Sublime Merge is a Git client, from the makers of Sublime Text",
    homepage="https://www.sublimemerge.com/",
    description=(
        "Sublime Merge is a fast, intuitive Git client from the creators of Sublime Text."
    ),
    categories=["Development", "RevisionControl"],
)


def get_config_dir() -> Path:
    """Get the configuration directory following XDG spec.

    Returns:
        Path to the configuration directory.
    """
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg_config_home) if xdg_config_home else Path.home() / ".config"

    config_dir = base / "flatforge"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_default_config_path() -> Path:
    """Get the default configuration file path.

    Returns:
        Path to the default config file.
    """
    return get_config_dir() / "config.yaml"


def default_applications() -> list[AppConfig]:
    """Applications packaged when the configuration names none."""
    return [SUBLIME_TEXT.model_copy(deep=True), SUBLIME_MERGE.model_copy(deep=True)]


class YamlConfigLoader(ConfigLoader):
    """YAML-based configuration loader.

    Loads and saves configuration from/to YAML files.
    """

    def load(self, path: str) -> dict[str, Any]:
        """Load configuration from a YAML file.

        Args:
            path: Path to the configuration file.

        Returns:
            Configuration dictionary.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            yaml.YAMLError: If the file is not valid YAML.
        """
        config_path = Path(path)

        if not config_path.exists():
            logger.debug("config_file_not_found", path=path)
            raise FileNotFoundError(f"Configuration file not found: {path}")

        data = yaml.safe_load(config_path.read_text())

        if data is None:
            return {}

        return data  # type: ignore[no-any-return]

    def save(self, config: dict[str, Any], path: str) -> None:
        """Save configuration to a YAML file.

        Args:
            config: Configuration dictionary.
            path: Path to save the configuration.
        """
        config_path = Path(path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        content = yaml.dump(config, default_flow_style=False, sort_keys=False)
        config_path.write_text(content)

        logger.info("config_saved", path=path)


class ConfigManager:
    """Manages flatforge configuration.

    Provides high-level methods for loading, saving, and accessing
    configuration values, and resolves configured applications against
    the workspace root.
    """

    def __init__(self, config_path: Path | None = None) -> None:
        """Initialize the configuration manager.

        Args:
            config_path: Optional path to configuration file.
                        Uses default path if not provided.
        """
        self.config_path = config_path or get_default_config_path()
        self._loader = YamlConfigLoader()
        self._config: SystemConfig | None = None

    def load(self) -> SystemConfig:
        """Load configuration from file.

        Returns:
            SystemConfig with loaded values, or defaults if file doesn't exist.
        """
        try:
            data = self._loader.load(str(self.config_path))
            self._config = self._parse_config(data)
        except FileNotFoundError:
            logger.info("using_default_config")
            self._config = self._create_default_config()

        return self._config

    def save(self, config: SystemConfig | None = None) -> None:
        """Save configuration to file.

        Args:
            config: Configuration to save. Uses current config if not provided.
        """
        if config is not None:
            self._config = config

        if self._config is None:
            self._config = self._create_default_config()

        data = self._serialize_config(self._config)
        self._loader.save(data, str(self.config_path))

    def get_config(self) -> SystemConfig:
        """Get the current configuration.

        Returns:
            Current SystemConfig, loading from file if needed.
        """
        if self._config is None:
            self.load()
        return self._config or self._create_default_config()

    def init_config(self, force: bool = False) -> bool:
        """Initialize a new configuration file with defaults.

        Args:
            force: If True, overwrite existing configuration.

        Returns:
            True if configuration was created, False if it already exists.
        """
        if self.config_path.exists() and not force:
            logger.info("config_exists", path=str(self.config_path))
            return False

        self.save(self._create_default_config())
        logger.info("config_initialized", path=str(self.config_path))
        return True

    def workspace_root(self, override: Path | None = None) -> Path:
        """Resolve the workspace root.

        Args:
            override: Explicit root, e.g. from the command line.

        Returns:
            Absolute workspace root path.
        """
        root = override or self.get_config().global_config.workspace_root or Path.cwd()
        return root.expanduser().resolve()

    def applications(self, root: Path | None = None) -> list[Application]:
        """Resolve configured applications in declared order.

        Args:
            root: Workspace root override.

        Returns:
            List of resolved applications.
        """
        workspace_root = self.workspace_root(root)
        target_dir = workspace_root / "target"
        return [
            Application.from_config(app, workspace_root, target_dir)
            for app in self.get_config().applications
        ]

    def _parse_config(self, data: dict[str, Any]) -> SystemConfig:
        """Parse configuration dictionary into SystemConfig.

        Args:
            data: Raw configuration dictionary.

        Returns:
            Parsed SystemConfig.
        """
        global_data = data.get("global", {})
        install_data = data.get("install", {})
        apps_data = data.get("applications")

        global_config = GlobalConfig(**global_data) if global_data else GlobalConfig()
        install_config = InstallConfig(**install_data) if install_data else InstallConfig()

        if apps_data is None:
            applications = default_applications()
        else:
            applications = [AppConfig(**app) for app in apps_data]

        return SystemConfig(
            global_config=global_config,
            install=install_config,
            applications=applications,
        )

    def _serialize_config(self, config: SystemConfig) -> dict[str, Any]:
        """Serialize SystemConfig to dictionary.

        Args:
            config: SystemConfig to serialize.

        Returns:
            Dictionary representation.
        """
        return {
            "global": config.global_config.model_dump(mode="json", exclude_defaults=True),
            "install": config.install.model_dump(mode="json"),
            "applications": [
                app.model_dump(mode="json", exclude_defaults=True) for app in config.applications
            ],
        }

    def _create_default_config(self) -> SystemConfig:
        """Create default configuration with the Sublime applications.

        Returns:
            Default SystemConfig.
        """
        return SystemConfig(
            global_config=GlobalConfig(),
            install=InstallConfig(),
            applications=default_applications(),
        )
