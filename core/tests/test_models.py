"""Tests for core data models."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest
from pydantic import ValidationError

from flatforge_core.models import (
    AppConfig,
    Application,
    BuildResult,
    BuildStatus,
    DownloadSpec,
    InstallAction,
    InstallPolicy,
    InstallResult,
    InstallStatus,
    InstallSummary,
    PipelineSummary,
    ResetAction,
    ResetReport,
    StageState,
    SystemConfig,
    infer_archive_format,
)


class TestApplication:
    """Tests for Application path resolution."""

    def test_from_config_resolves_workspace_paths(self) -> None:
        """Paths follow the main/<slug> and target layout."""
        config = AppConfig(
            app_id="org.example.Demo",
            name="Demo",
            slug="demo",
            binary="demo_bin",
            url="https://example.org/demo_build_12_x64.tar.xz",
            sha256="ABC",
        )
        root = Path("/work")

        app = Application.from_config(config, root, root / "target")

        assert app.files_dir == root / "main" / "demo" / "files"
        assert app.build_dir == root / "main" / "demo" / "build-dir"
        assert app.repo_dir == root / "main" / "demo" / "repo"
        assert app.manifest_path == root / "main" / "demo" / "demo.json"
        assert app.bundle_path == root / "target" / "demo.flatpak"
        assert app.desktop_id == "org.example.Demo.desktop"
        assert app.expected_checksum == "ABC"

    def test_empty_checksum_becomes_none(self) -> None:
        """An empty sha256 disables verification."""
        config = AppConfig(app_id="a.b", name="A", slug="a", binary="a", url="https://x/a.zip")

        app = Application.from_config(config, Path("/r"), Path("/r/target"))

        assert app.expected_checksum is None

    def test_application_is_frozen(self) -> None:
        """Resolved applications cannot be mutated."""
        config = AppConfig(app_id="a.b", name="A", slug="a", binary="a", url="https://x/a.zip")
        app = Application.from_config(config, Path("/r"), Path("/r/target"))

        with pytest.raises(ValidationError):
            app.name = "B"  # type: ignore[misc]


class TestInstallPolicy:
    """Tests for InstallPolicy."""

    def test_default_is_only_if_newer(self) -> None:
        """The session starts with only-if-newer on."""
        assert InstallPolicy().only_install_if_newer is True

    def test_toggled_returns_new_value(self) -> None:
        """Toggling returns a flipped copy and leaves the original alone."""
        policy = InstallPolicy()

        flipped = policy.toggled()

        assert flipped.only_install_if_newer is False
        assert policy.only_install_if_newer is True
        assert flipped.toggled() == policy

    def test_system_config_default_policy(self) -> None:
        """The configured install default seeds the session policy."""
        config = SystemConfig.model_validate({"install": {"only_install_if_newer": False}})

        assert config.default_policy() == InstallPolicy(only_install_if_newer=False)


class TestStageState:
    """Tests for StageState."""

    @pytest.mark.parametrize(
        ("files", "descriptor", "expected"),
        [(True, True, True), (True, False, False), (False, True, False)],
    )
    def test_buildable(self, files: bool, descriptor: bool, expected: bool) -> None:
        """Building needs both the files tree and the manifest."""
        state = StageState(files_ready=files, descriptor_ready=descriptor, bundle_ready=False)

        assert state.buildable is expected


class TestSummaries:
    """Tests for result summaries."""

    def test_pipeline_summary_counts(self) -> None:
        """Counts are derived from result statuses."""
        now = datetime.now(tz=UTC)
        summary = PipelineSummary(
            run_id="abc",
            start_time=now,
            results=[
                BuildResult(app_id="a", name="A", status=BuildStatus.BUILT, start_time=now),
                BuildResult(app_id="b", name="B", status=BuildStatus.ALREADY_BUILT, start_time=now),
                BuildResult(app_id="c", name="C", status=BuildStatus.FAILED, start_time=now),
                BuildResult(app_id="d", name="D", status=BuildStatus.FAILED, start_time=now),
            ],
        )

        assert summary.built == 1
        assert summary.already_built == 1
        assert summary.failed == 2

    def test_install_summary_failed(self) -> None:
        """Only FAILED outcomes are counted as failures."""
        summary = InstallSummary(
            results=[
                InstallResult(app_id="a", name="A", status=InstallStatus.SKIPPED),
                InstallResult(app_id="b", name="B", status=InstallStatus.FAILED),
            ]
        )

        assert summary.failed == 1

    def test_only_skip_does_not_install(self) -> None:
        """Every action except SKIP reaches the backend installer."""
        assert [a for a in InstallAction if not a.installs] == [InstallAction.SKIP]


class TestResetReport:
    """Tests for ResetReport."""

    def test_unchanged_when_nothing_happened(self) -> None:
        """ABSENT and ALREADY_EMPTY are not changes."""
        report = ResetReport()
        report.add(Path("/a"), ResetAction.ABSENT)
        report.add(Path("/b"), ResetAction.ALREADY_EMPTY)

        assert report.changed is False
        assert report.as_dict() == {"/a": "absent", "/b": "already_empty"}

    def test_changed_when_removed(self) -> None:
        """A removal is a change."""
        report = ResetReport()
        report.add(Path("/a"), ResetAction.REMOVED)

        assert report.changed is True


class TestDownloadSpec:
    """Tests for DownloadSpec and archive format inference."""

    def test_empty_url_rejected(self) -> None:
        """A download needs a URL."""
        with pytest.raises(ValueError, match="url"):
            DownloadSpec(url="", destination=Path("/tmp/a"))

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("a.tar.xz", "tar.xz"),
            ("A.TGZ", "tar.gz"),
            ("a.tar.bz2", "tar.bz2"),
            ("a.zip", "zip"),
            ("a.deb", None),
        ],
    )
    def test_infer_archive_format(self, name: str, expected: str | None) -> None:
        """Known archive suffixes map to formats."""
        assert infer_archive_format(name) == expected
