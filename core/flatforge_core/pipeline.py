"""Pipeline controller for building application bundles.

Each application goes through the stages in strict order:

1. Fetch (only when forced or when the files directory is not ready)
2. Metadata (always; also writes a default manifest when missing)
3. Backend build
4. Bundle export

An application whose files and bundle both exist is reported as already
built and left alone unless a forced rebuild is requested. Failures are
isolated per application; a missing external tool ends the whole run.
"""

from __future__ import annotations

import shutil
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from .builder import PackageBuilder
from .errors import FlatforgeError, LayoutError, MissingPrerequisiteError
from .fetcher import ArtifactFetcher
from .layout import check_files_ready
from .manifest import write_manifest
from .metadata import MetadataGenerator
from .models import BuildResult, BuildStage, BuildStatus, PipelineSummary, StageState

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from .interfaces import PackagingBackend
    from .models import Application

logger = structlog.get_logger(__name__)


def select_applications(apps: list[Application], names: Iterable[str] | None) -> list[Application]:
    """Select applications by slug, id or name, keeping declared order.

    Args:
        apps: All configured applications.
        names: Requested names; None or empty selects every application.

    Returns:
        Selected applications in declared order.

    Raises:
        KeyError: If a requested name matches no application.
    """
    if not names:
        return list(apps)

    wanted = set(names)
    known = {key for app in apps for key in (app.slug, app.app_id, app.name)}
    unknown = sorted(wanted - known)
    if unknown:
        raise KeyError(f"Unknown application(s): {', '.join(unknown)}")

    return [app for app in apps if wanted & {app.slug, app.app_id, app.name}]


class PipelineController:
    """Sequences fetch, metadata, build and export for applications.

    The controller is responsible for:
    - Deriving stage state from disk on every decision
    - Skipping applications that are already built
    - Running stages in order and stopping at the first failing stage
    - Collecting results into a summary
    """

    def __init__(
        self,
        backend: PackagingBackend,
        root: Path,
        *,
        fetcher: ArtifactFetcher | None = None,
        metadata: MetadataGenerator | None = None,
        builder: PackageBuilder | None = None,
        force_clean: bool = True,
        generate_manifests: bool = True,
    ) -> None:
        """Initialize the pipeline controller.

        Args:
            backend: Packaging backend.
            root: Workspace root.
            fetcher: Artifact fetcher.
            metadata: Metadata generator.
            builder: Package builder; created from backend when omitted.
            force_clean: Discard previous builder state on each build.
            generate_manifests: Write a default manifest when none exists.
        """
        self._backend = backend
        self.root = root
        self._fetcher = fetcher or ArtifactFetcher()
        self._metadata = metadata or MetadataGenerator()
        self._builder = builder or PackageBuilder(backend, force_clean=force_clean)
        self._generate_manifests = generate_manifests
        self._log = logger.bind(component="pipeline")

    @property
    def target_dir(self) -> Path:
        """Directory holding exported bundles."""
        return self.root / "target"

    @property
    def scratch_dir(self) -> Path:
        """Scratch directory for downloads and extraction."""
        return self.target_dir / ".tmp"

    def stage_state(self, app: Application) -> StageState:
        """Read an application's pipeline state from disk."""
        return StageState(
            files_ready=check_files_ready(app.files_dir, app.binary),
            descriptor_ready=app.manifest_path.is_file(),
            bundle_ready=app.bundle_path.is_file(),
        )

    async def build(self, app: Application, *, force: bool = False) -> BuildResult:
        """Run the pipeline for one application.

        Args:
            app: Application to build.
            force: Re-run every stage even if outputs exist.

        Returns:
            BuildResult for the application.

        Raises:
            MissingPrerequisiteError: If the backend tools are not installed.
        """
        start_time = datetime.now(tz=UTC)
        log = self._log.bind(app=app.name)

        state = self.stage_state(app)
        if not force and state.files_ready and state.bundle_ready:
            log.info("already_built", bundle=str(app.bundle_path))
            return BuildResult(
                app_id=app.app_id,
                name=app.name,
                status=BuildStatus.ALREADY_BUILT,
                bundle_path=app.bundle_path,
                start_time=start_time,
                end_time=datetime.now(tz=UTC),
            )

        stage = BuildStage.FETCH
        fetched = False
        try:
            app.files_dir.mkdir(parents=True, exist_ok=True)
            if force or not state.files_ready:
                self.scratch_dir.mkdir(parents=True, exist_ok=True)
                await self._fetcher.prepare(app, self.scratch_dir)
                fetched = True
            else:
                log.info("files_present_skipping_fetch")

            stage = BuildStage.METADATA
            self._metadata.generate(app)
            if self._generate_manifests:
                write_manifest(app)

            state = self.stage_state(app)
            if not state.buildable:
                raise LayoutError(
                    f"{app.name} is not buildable: files_ready={state.files_ready}, "
                    f"manifest_present={state.descriptor_ready}",
                    app=app.name,
                    stage=stage.value,
                )

            stage = BuildStage.BUILD
            self._backend.require()
            await self._builder.build(app)

            stage = BuildStage.EXPORT
            bundle = await self._builder.export(app)

        except MissingPrerequisiteError:
            raise

        except FlatforgeError as e:
            e.app = e.app or app.name
            e.stage = e.stage or stage.value
            log.error("build_failed", stage=stage.value, error=str(e))
            return self._failed(app, stage, e.describe(), fetched, start_time)

        except OSError as e:
            log.error("build_failed", stage=stage.value, error=str(e))
            message = f"[{app.name} / {stage.value}] {e}"
            return self._failed(app, stage, message, fetched, start_time)

        log.info("build_completed", bundle=str(bundle), fetched=fetched)
        return BuildResult(
            app_id=app.app_id,
            name=app.name,
            status=BuildStatus.BUILT,
            fetched=fetched,
            bundle_path=bundle,
            start_time=start_time,
            end_time=datetime.now(tz=UTC),
        )

    def _failed(
        self,
        app: Application,
        stage: BuildStage,
        message: str,
        fetched: bool,
        start_time: datetime,
    ) -> BuildResult:
        return BuildResult(
            app_id=app.app_id,
            name=app.name,
            status=BuildStatus.FAILED,
            fetched=fetched,
            failed_stage=stage,
            error_message=message,
            start_time=start_time,
            end_time=datetime.now(tz=UTC),
        )

    async def build_all(self, apps: list[Application], *, force: bool = False) -> PipelineSummary:
        """Build applications sequentially in declared order.

        Args:
            apps: Applications to build.
            force: Rebuild even if outputs exist.

        Returns:
            PipelineSummary with one result per application.
        """
        run_id = str(uuid.uuid4())[:8]
        summary = PipelineSummary(run_id=run_id, start_time=datetime.now(tz=UTC))

        self._log.info("run_started", run_id=run_id, app_count=len(apps), force=force)

        self.target_dir.mkdir(parents=True, exist_ok=True)
        shutil.rmtree(self.scratch_dir, ignore_errors=True)
        self.scratch_dir.mkdir(parents=True)

        try:
            for app in apps:
                summary.results.append(await self.build(app, force=force))
        finally:
            shutil.rmtree(self.scratch_dir, ignore_errors=True)

        summary.end_time = datetime.now(tz=UTC)
        self._log.info(
            "run_completed",
            run_id=run_id,
            built=summary.built,
            already_built=summary.already_built,
            failed=summary.failed,
        )
        return summary
