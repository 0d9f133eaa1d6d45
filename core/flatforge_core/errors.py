"""Exception hierarchy for flatforge.

Every error carries the application and pipeline stage it occurred in, so the
operator can retry the right step by hand. Nothing is retried automatically.
"""

from __future__ import annotations


class FlatforgeError(Exception):
    """Base exception for flatforge operations."""

    def __init__(self, message: str, *, app: str | None = None, stage: str | None = None) -> None:
        """Initialize the error.

        Args:
            message: Error message.
            app: Name of the application being processed, if any.
            stage: Pipeline stage that failed, if any.
        """
        super().__init__(message)
        self.app = app
        self.stage = stage

    def describe(self) -> str:
        """Message prefixed with the application and stage context."""
        context = [part for part in (self.app, self.stage) if part]
        if not context:
            return str(self)
        return f"[{' / '.join(context)}] {self}"


class TransportError(FlatforgeError):
    """Downloading the source archive failed."""


class IntegrityError(FlatforgeError):
    """The downloaded archive does not match the expected checksum."""


class LayoutError(FlatforgeError):
    """Extraction produced an unexpected tree or the entry point is missing."""


class MetadataError(FlatforgeError):
    """AppStream metadata could not be written or is invalid."""


class BackendError(FlatforgeError):
    """A packaging backend command failed."""

    def __init__(
        self,
        message: str,
        *,
        app: str | None = None,
        stage: str | None = None,
        return_code: int | None = None,
        stderr: str = "",
    ) -> None:
        """Initialize the backend error.

        Args:
            message: Error message.
            app: Name of the application being processed.
            stage: Pipeline stage that failed.
            return_code: Exit code of the backend command.
            stderr: Captured standard error of the backend command.
        """
        super().__init__(message, app=app, stage=stage)
        self.return_code = return_code
        self.stderr = stderr


class BackendBuildError(BackendError):
    """Building or exporting a bundle failed."""


class BackendInstallError(BackendError):
    """Installing or uninstalling a bundle failed."""


class BackendQueryError(BackendError):
    """Querying the install registry failed unexpectedly."""


class MissingPrerequisiteError(FlatforgeError):
    """A required external executable is not available.

    Fatal for the whole run: no later stage can succeed without it.
    """

    def __init__(self, command: str) -> None:
        """Initialize the error.

        Args:
            command: Name of the missing executable.
        """
        super().__init__(f"Missing required command: {command}", stage="prerequisites")
        self.command = command
