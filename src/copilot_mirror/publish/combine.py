"""Merge per-category trees into one flat, deduplicated collection.

The output directory is owned by this step: files it did not produce on
the current pass are removed.  When two categories carry a file with the
same name, the first category in order wins; identical copies are
counted as duplicates, differing ones as conflicts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from copilot_mirror.file_handler import file_digest, replace_file

logger = logging.getLogger(__name__)


@dataclass
class CombineResult:
    output_dir: Path
    copied: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)


def combine_categories(
    cache_root: Path, categories: list[str], output_dir: Path
) -> CombineResult:
    """Flatten ``cache_root/<category>/**`` into *output_dir*.

    Args:
        cache_root: Root of the mirrored category trees.
        categories: Categories to merge, in priority order.
        output_dir: Flat collection directory (created if missing).

    Returns:
        What was copied, skipped and removed.
    """
    result = CombineResult(output_dir=output_dir)
    chosen: dict[str, tuple[Path, str, str]] = {}

    for category in categories:
        category_dir = cache_root / category
        if not category_dir.is_dir():
            logger.debug("No directory for %s, skipping", category)
            continue
        for source in sorted(category_dir.rglob("*")):
            if not source.is_file() or source.name.startswith("."):
                continue
            digest = file_digest(source)
            if digest is None:
                continue
            existing = chosen.get(source.name)
            if existing is None:
                chosen[source.name] = (source, digest, category)
            elif existing[1] == digest:
                result.duplicates.append(source.name)
            else:
                logger.warning(
                    "Name collision for %s: keeping %s copy, ignoring %s",
                    source.name,
                    existing[2],
                    category,
                )
                result.conflicts.append(source.name)

    output_dir.mkdir(parents=True, exist_ok=True)
    for name, (source, digest, _category) in sorted(chosen.items()):
        dest = output_dir / name
        if file_digest(dest) == digest:
            result.unchanged.append(name)
            continue
        replace_file(dest, source.read_bytes())
        result.copied.append(name)

    for leftover in sorted(output_dir.iterdir()):
        if leftover.name.startswith(".") or leftover.name in chosen:
            continue
        if leftover.is_file() or leftover.is_symlink():
            leftover.unlink()
            result.removed.append(leftover.name)

    logger.info(
        "Combined %d files into %s (%d copied, %d duplicates, %d conflicts, %d removed)",
        len(chosen),
        output_dir,
        len(result.copied),
        len(result.duplicates),
        len(result.conflicts),
        len(result.removed),
    )
    return result
