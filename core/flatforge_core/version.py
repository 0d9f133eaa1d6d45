"""Version oracle: compare installed and bundled commits.

Commits are opaque tokens. The only question ever asked of them is
"same or not", and ``same_version`` is the one place that answers it.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog

from .errors import BackendError

if TYPE_CHECKING:
    from pathlib import Path

    from .interfaces import PackagingBackend
    from .models import VersionToken

logger = structlog.get_logger(__name__)

COMMIT_PATTERN = re.compile(r"^[0-9a-f]{7,64}$", re.IGNORECASE)


def normalize_token(token: str | None) -> VersionToken:
    """Strip whitespace; blank tokens become None."""
    if token is None:
        return None
    token = token.strip()
    return token or None


def is_commit(token: str | None) -> bool:
    """Check whether a token looks like an ostree commit checksum."""
    token = normalize_token(token)
    return token is not None and bool(COMMIT_PATTERN.match(token))


def same_version(a: VersionToken, b: VersionToken) -> bool:
    """Whether two version tokens denote the same build.

    True only if both are present and equal. Two absent tokens are not the
    same version.

    Examples:
        >>> same_version("abc", "abc")
        True
        >>> same_version(None, None)
        False
    """
    a = normalize_token(a)
    b = normalize_token(b)
    return a is not None and b is not None and a == b


class VersionOracle:
    """Queries installed and bundled commits from a packaging backend."""

    def __init__(self, backend: PackagingBackend) -> None:
        """Initialize the oracle.

        Args:
            backend: Backend used for commit queries.
        """
        self._backend = backend
        self._log = logger.bind(component="version_oracle")

    async def installed_version(self, app_id: str) -> VersionToken:
        """Commit of the installed application, or None if not installed.

        Backend failures are logged and reported as unknown.
        """
        try:
            token = normalize_token(await self._backend.show_commit(app_id))
        except BackendError as e:
            self._log.warning("installed_commit_query_failed", app_id=app_id, error=str(e))
            return None
        self._log.debug("installed_commit", app_id=app_id, commit=token)
        return token

    async def bundle_version(self, bundle_path: Path) -> VersionToken:
        """Commit embedded in a bundle, or None if it has none."""
        token: VersionToken = None
        if bundle_path.is_file():
            try:
                token = normalize_token(await self._backend.bundle_commit(bundle_path))
            except BackendError as e:
                self._log.warning(
                    "bundle_commit_query_failed", bundle=str(bundle_path), error=str(e)
                )
        if token is None:
            self._log.warning("bundle_has_no_commit", bundle=str(bundle_path))
        return token

    @staticmethod
    def same_version(a: VersionToken, b: VersionToken) -> bool:
        """See :func:`same_version`."""
        return same_version(a, b)
