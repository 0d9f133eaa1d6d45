"""Archive extraction and files-directory normalization.

The upstream archives unpack into a single versioned directory
(``sublime_text/``, ``sublime_merge/``). Its inner contents become the
application's files directory, mirrored exactly: whatever was in the files
directory before is gone afterwards.

Root selection is deterministic: the lexicographically first top-level
directory wins, top-level plain files are ignored.
"""

from __future__ import annotations

import shutil
import stat
import tarfile
import zipfile
from pathlib import Path

import structlog

from .errors import LayoutError
from .models import infer_archive_format

logger = structlog.get_logger(__name__)

DIR_MODE = 0o755
EXEC_FILE_MODE = 0o755
FILE_MODE = 0o644

_TAR_MODES = {"tar.gz": "r:gz", "tar.bz2": "r:bz2", "tar.xz": "r:xz"}


def extract_archive(archive_path: Path, destination: Path) -> Path:
    """Extract an archive to the destination directory.

    The format is inferred from the archive file name.

    Args:
        archive_path: Path to the archive file.
        destination: Directory to extract to.

    Returns:
        The destination directory.

    Raises:
        LayoutError: If the format is unsupported or the archive is corrupt.
    """
    archive_format = infer_archive_format(archive_path.name)
    destination.mkdir(parents=True, exist_ok=True)

    try:
        if archive_format in _TAR_MODES:
            with tarfile.open(archive_path, _TAR_MODES[archive_format]) as tar:
                tar.extractall(destination, filter="data")
        elif archive_format == "zip":
            with zipfile.ZipFile(archive_path, "r") as zf:
                zf.extractall(destination)
        else:
            raise LayoutError(f"Unsupported archive format: {archive_format}", stage="fetch")
    except (tarfile.TarError, zipfile.BadZipFile) as e:
        raise LayoutError(f"Failed to extract archive: {e}", stage="fetch") from e

    return destination


def select_root(extract_dir: Path) -> Path:
    """Pick the application root among the extracted top-level entries.

    Args:
        extract_dir: Directory the archive was extracted into.

    Returns:
        The lexicographically first top-level directory.

    Raises:
        LayoutError: If the extraction produced no directory at all.
    """
    candidates = sorted(
        entry.name
        for entry in extract_dir.iterdir()
        if entry.is_dir() and not entry.is_symlink()
    )
    if not candidates:
        raise LayoutError(f"No extracted root directory found in {extract_dir}", stage="fetch")
    if len(candidates) > 1:
        logger.warning("multiple_extracted_roots", candidates=candidates, selected=candidates[0])
    return extract_dir / candidates[0]


def remove_desktop_files(root: Path, binary: str) -> list[Path]:
    """Delete upstream ``<binary>.desktop`` launchers anywhere under root.

    Returns:
        The removed paths.
    """
    removed = []
    for desktop in sorted(root.rglob(f"{binary}.desktop")):
        if desktop.is_file() or desktop.is_symlink():
            desktop.unlink()
            removed.append(desktop)
    return removed


def normalize_permissions(tree: Path) -> None:
    """Normalize modes under tree to ``u+rwX,go+rX`` with no extra bits.

    Directories and files with any execute bit become 0755, other regular
    files 0644. Symlinks are left alone.
    """
    for path in [tree, *tree.rglob("*")]:
        if path.is_symlink():
            continue
        mode = path.stat().st_mode
        if stat.S_ISDIR(mode):
            path.chmod(DIR_MODE)
        elif mode & 0o111:
            path.chmod(EXEC_FILE_MODE)
        else:
            path.chmod(FILE_MODE)


def ensure_executable(path: Path) -> None:
    """Make sure path is a regular file with the execute bit set.

    Raises:
        LayoutError: If the file is missing or cannot be made executable.
    """
    if not path.is_file():
        raise LayoutError(f"Expected binary not found: {path.name}")
    mode = path.stat().st_mode
    if mode & stat.S_IXUSR:
        return
    try:
        path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    except OSError as e:
        raise LayoutError(f"Missing exec bit on {path.name}: {e}") from e


def staging_path(files_dir: Path) -> Path:
    """Sibling directory a new files tree is assembled in."""
    return files_dir.parent / f".{files_dir.name}.staging"


def retired_path(files_dir: Path) -> Path:
    """Sibling the previous files tree is moved to while being replaced."""
    return files_dir.parent / f".{files_dir.name}.old"


def mirror_tree(source: Path, destination: Path, binary: str) -> Path:
    """Mirror source's contents into destination, verified before promotion.

    The copy is staged next to destination and only swapped into place once
    permissions are normalized and the binary is executable. On failure the
    staging tree is removed and destination is left as it was.

    Args:
        source: Directory whose inner contents are copied.
        destination: Files directory to replace.
        binary: Entry point that must be executable afterwards.

    Returns:
        The destination directory.

    Raises:
        LayoutError: If the binary is missing from source.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    staging = staging_path(destination)
    retired = retired_path(destination)

    for leftover in (staging, retired):
        if leftover.exists() or leftover.is_symlink():
            shutil.rmtree(leftover)

    try:
        shutil.copytree(source, staging, symlinks=True)
        normalize_permissions(staging)
        ensure_executable(staging / binary)
    except (LayoutError, OSError) as e:
        shutil.rmtree(staging, ignore_errors=True)
        if isinstance(e, LayoutError):
            raise
        raise LayoutError(f"Failed to mirror {source} into {destination}: {e}") from e

    if destination.exists():
        destination.rename(retired)
    staging.rename(destination)
    shutil.rmtree(retired, ignore_errors=True)

    return destination


def check_files_ready(files_dir: Path, binary: str) -> bool:
    """Whether the files directory holds an executable entry point."""
    entry = files_dir / binary
    return entry.is_file() and bool(entry.stat().st_mode & stat.S_IXUSR)
