"""Link-or-copy strategies for exposing a directory somewhere else.

Strategies are tried in order and the first one that succeeds wins:
symlink, then (Windows only) a directory junction, then a plain copy.
Falling back to a copy is a normal outcome, not an error.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from copilot_mirror.errors import PublishError

logger = logging.getLogger(__name__)


class LinkStrategy(Protocol):
    name: str

    def create(self, source: Path, target: Path) -> bool:
        """Expose *source* at *target*; return ``False`` if not possible."""
        ...


class SymlinkStrategy:
    name = "symlink"

    def create(self, source: Path, target: Path) -> bool:
        try:
            target.symlink_to(source.resolve(), target_is_directory=source.is_dir())
        except (OSError, NotImplementedError) as exc:
            logger.debug("Symlink %s -> %s failed: %s", target, source, exc)
            return False
        return True


class JunctionStrategy:
    """NTFS directory junction via ``mklink /J`` (needs no privileges)."""

    name = "junction"

    def create(self, source: Path, target: Path) -> bool:
        if os.name != "nt" or not source.is_dir():
            return False
        try:
            result = subprocess.run(
                ["cmd", "/c", "mklink", "/J", str(target), str(source.resolve())],
                capture_output=True,
                text=True,
                timeout=30,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError) as exc:
            logger.debug("Junction %s -> %s failed: %s", target, source, exc)
            return False
        if result.returncode != 0:
            logger.debug(
                "Junction %s -> %s failed: %s",
                target,
                source,
                result.stderr.strip(),
            )
            return False
        return True


class CopyStrategy:
    name = "copy"

    def create(self, source: Path, target: Path) -> bool:
        try:
            if source.is_dir():
                shutil.copytree(source, target, symlinks=False)
            else:
                shutil.copy2(source, target)
        except (OSError, shutil.Error) as exc:
            logger.debug("Copy %s -> %s failed: %s", source, target, exc)
            _discard(target)
            return False
        return True


DEFAULT_STRATEGIES: tuple[LinkStrategy, ...] = (
    SymlinkStrategy(),
    JunctionStrategy(),
    CopyStrategy(),
)


def is_link(path: Path) -> bool:
    """True for symlinks and, on Python 3.12+, NTFS junctions."""
    if path.is_symlink():
        return True
    is_junction = getattr(path, "is_junction", None)
    return bool(is_junction and is_junction())


def _discard(target: Path) -> None:
    if is_link(target):
        try:
            target.unlink()
        except (IsADirectoryError, PermissionError):
            os.rmdir(target)
    elif target.is_dir():
        shutil.rmtree(target, ignore_errors=True)
    elif target.exists():
        target.unlink()


def link_or_copy(
    source: Path,
    target: Path,
    strategies: Sequence[LinkStrategy] = DEFAULT_STRATEGIES,
) -> str:
    """Expose *source* at *target* with the first strategy that works.

    *target* must not exist yet; its parent is created if needed.

    Returns:
        Name of the strategy that succeeded.

    Raises:
        PublishError: *target* already exists, or every strategy failed.
    """
    if target.exists() or is_link(target):
        raise PublishError(f"Target already exists: {target}")
    target.parent.mkdir(parents=True, exist_ok=True)

    for strategy in strategies:
        if strategy.create(source, target):
            logger.debug("Exposed %s at %s via %s", source, target, strategy.name)
            return strategy.name
    raise PublishError(
        f"No strategy could expose {source} at {target} "
        f"(tried {', '.join(s.name for s in strategies)})"
    )
