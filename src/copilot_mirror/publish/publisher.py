"""Expose the combined collection in one or more profile directories."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from copilot_mirror.errors import PublishError

from .links import DEFAULT_STRATEGIES, CopyStrategy, is_link, link_or_copy

logger = logging.getLogger(__name__)

# Dropped into copied targets so the next publish knows it may replace them.
PUBLISH_MARKER = ".copilot-mirror-published"


@dataclass(frozen=True)
class PublishResult:
    target: Path
    strategy: str | None
    replaced: bool = False
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None


def _clear_previous(target: Path) -> bool:
    """Remove a target left by an earlier publish.

    Raises:
        PublishError: *target* is a user-owned file or directory.
    """
    if is_link(target):
        try:
            target.unlink()
        except (IsADirectoryError, PermissionError):
            target.rmdir()
        return True
    if not target.exists():
        return False
    if target.is_dir() and (target / PUBLISH_MARKER).is_file():
        shutil.rmtree(target)
        return True
    raise PublishError(f"Refusing to replace user data at {target}")


def publish(
    source_dir: Path, targets: list[Path], force_copy: bool = False
) -> list[PublishResult]:
    """Link (or copy) *source_dir* into every target path.

    A failure for one target is logged and reported; other targets still
    get published.
    """
    if not source_dir.is_dir():
        raise PublishError(f"Nothing to publish: {source_dir} does not exist")

    strategies = (CopyStrategy(),) if force_copy else DEFAULT_STRATEGIES
    results: list[PublishResult] = []
    for target in targets:
        target = target.expanduser()
        try:
            replaced = _clear_previous(target)
            strategy = link_or_copy(source_dir, target, strategies)
            if strategy == "copy":
                (target / PUBLISH_MARKER).write_text(
                    f"{source_dir.resolve()}\n", encoding="utf-8"
                )
        except (PublishError, OSError) as exc:
            logger.error("Publishing to %s failed: %s", target, exc)
            results.append(PublishResult(target=target, strategy=None, error=str(exc)))
            continue

        logger.info("Published %s -> %s (%s)", source_dir, target, strategy)
        results.append(
            PublishResult(target=target, strategy=strategy, replaced=replaced)
        )
    return results
