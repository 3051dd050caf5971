"""File handler module: destination path resolution, digests, whole-file replace.

Provides the file I/O used by the sync engine and the publish helpers.
Writes always replace a file as a whole: bytes go to a temporary sibling
that is renamed over the destination, so readers never see mixed content.
"""

import hashlib
import os
import tempfile
from pathlib import Path

# =============================================================================
# Path Validation
# =============================================================================


def resolve_destination(root: Path, relative: str) -> Path:
    """Join a remote-relative path onto *root*, refusing escapes.

    Args:
        root: Destination root directory.
        relative: POSIX-style relative path (``chatmodes/a.md``).

    Returns:
        Absolute path under *root*.

    Raises:
        ValueError: If the path is absolute or resolves outside *root*.
    """
    if relative.startswith("/") or Path(relative).is_absolute():
        raise ValueError(f"Path must be relative: {relative}")
    root_resolved = root.resolve()
    candidate = (root_resolved / relative).resolve()
    if not candidate.is_relative_to(root_resolved):
        raise ValueError(
            f"Path escapes destination root: {relative} not under {root_resolved}"
        )
    return candidate


# =============================================================================
# Digests
# =============================================================================


def bytes_digest(data: bytes) -> str:
    """SHA-256 hex digest of *data*."""
    return hashlib.sha256(data).hexdigest()


def file_digest(path: Path) -> str | None:
    """SHA-256 hex digest of a file, or ``None`` if it is not a regular file."""
    if not path.is_file():
        return None
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


# =============================================================================
# Write / Remove
# =============================================================================


def replace_file(path: Path, data: bytes) -> int:
    """Replace *path* with *data* as a whole.

    The existing file (or link) is removed first, then the full content is
    written to a temporary file in the same directory and renamed into
    place.  Parent directories are created as needed.

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.is_symlink() or path.is_file():
        path.unlink()

    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return len(data)


def write_atomic(path: Path, data: bytes) -> None:
    """Write *data* to a temp file and ``os.replace`` it over *path*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def remove_file(path: Path, stop_at: Path | None = None) -> bool:
    """Delete *path* if present and prune now-empty parents up to *stop_at*.

    Returns:
        ``True`` if a file was removed.
    """
    if not (path.is_file() or path.is_symlink()):
        return False
    path.unlink()
    if stop_at is not None:
        parent = path.parent
        stop = stop_at.resolve()
        while parent.resolve() != stop and parent.resolve().is_relative_to(stop):
            try:
                parent.rmdir()
            except OSError:
                break
            parent = parent.parent
    return True
