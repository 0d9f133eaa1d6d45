"""Base backend implementation with common functionality."""

from __future__ import annotations

import asyncio
import contextlib
import shutil
from abc import abstractmethod

import structlog

from flatforge_core.errors import MissingPrerequisiteError
from flatforge_core.interfaces import PackagingBackend

logger = structlog.get_logger(__name__)

DEFAULT_COMMAND_TIMEOUT = 3600


class CommandBackend(PackagingBackend):
    """Base class for backends driven by external command-line tools.

    Provides:
    - Command execution with timeout handling
    - Structured logging
    - Prerequisite checking against PATH
    """

    def __init__(self, timeout_seconds: int = DEFAULT_COMMAND_TIMEOUT) -> None:
        """Initialize the backend.

        Args:
            timeout_seconds: Timeout for each backend command.
        """
        self.timeout_seconds = timeout_seconds

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the backend name."""
        ...

    def missing_commands(self) -> list[str]:
        """Required commands not found on PATH, in declaration order."""
        return [cmd for cmd in self.required_commands if shutil.which(cmd) is None]

    async def check_available(self) -> bool:
        """Check if every required command is available on the system."""
        return not self.missing_commands()

    def require(self) -> None:
        """Raise MissingPrerequisiteError for the first missing command."""
        missing = self.missing_commands()
        if missing:
            logger.error("missing_required_command", backend=self.name, command=missing[0])
            raise MissingPrerequisiteError(missing[0])

    async def _run_command(
        self,
        cmd: list[str],
        timeout: int | None = None,
    ) -> tuple[int, str, str]:
        """Run a command with timeout.

        Args:
            cmd: Command and arguments as a list.
            timeout: Timeout in seconds (None = backend default).

        Returns:
            Tuple of (return_code, stdout, stderr).

        Raises:
            MissingPrerequisiteError: If the executable does not exist.
            TimeoutError: If command exceeds timeout.
        """
        timeout = timeout or self.timeout_seconds
        log = logger.bind(backend=self.name, command=" ".join(cmd))
        log.debug("running_command")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise MissingPrerequisiteError(cmd[0]) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except TimeoutError as e:
            log.warning("command_timeout", timeout=timeout)
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            raise TimeoutError(f"Command timed out after {timeout}s") from e

        return_code = process.returncode or 0
        stdout_str = stdout.decode("utf-8", errors="replace")
        stderr_str = stderr.decode("utf-8", errors="replace")

        log.debug(
            "command_completed",
            return_code=return_code,
            stdout_len=len(stdout_str),
            stderr_len=len(stderr_str),
        )

        return return_code, stdout_str, stderr_str
