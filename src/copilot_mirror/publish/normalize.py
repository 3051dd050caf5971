"""Relocate misfiled resources by filename suffix.

``foo.prompt.md`` belongs in ``prompts/``, ``foo.chatmode.md`` in
``chatmodes/`` and so on.  Files found in the wrong category directory,
or loose at the root, are moved to where their suffix says they belong.
An existing file at the destination is never overwritten.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from copilot_mirror.validators import KNOWN_CATEGORIES

logger = logging.getLogger(__name__)

SUFFIX_CATEGORIES: tuple[tuple[str, str], ...] = (
    (".chatmode.md", "chatmodes"),
    (".instructions.md", "instructions"),
    (".prompt.md", "prompts"),
    (".collection.yml", "collections"),
    (".collection.json", "collections"),
    (".collection.md", "collections"),
)


@dataclass(frozen=True)
class Move:
    source: Path
    destination: Path
    category: str


def category_for(name: str) -> str | None:
    """Category implied by a file name's suffix, if any."""
    lowered = name.lower()
    for suffix, category in SUFFIX_CATEGORIES:
        if lowered.endswith(suffix):
            return category
    return None


def normalize_tree(root: Path, dry_run: bool = False) -> list[Move]:
    """Move misfiled resources under *root* into their category directory.

    Returns:
        The moves performed (or planned, when *dry_run*).
    """
    candidates: list[tuple[Path, str | None]] = []
    if root.is_dir():
        candidates.extend((p, None) for p in sorted(root.iterdir()) if p.is_file())
    for category in KNOWN_CATEGORIES:
        category_dir = root / category
        if category_dir.is_dir():
            candidates.extend(
                (p, category) for p in sorted(category_dir.iterdir()) if p.is_file()
            )

    moves: list[Move] = []
    for source, current in candidates:
        expected = category_for(source.name)
        if expected is None or expected == current:
            continue
        destination = root / expected / source.name
        if destination.exists():
            logger.warning(
                "Not moving %s: %s already exists", source, destination
            )
            continue
        if not dry_run:
            destination.parent.mkdir(parents=True, exist_ok=True)
            source.replace(destination)
        logger.info(
            "%s %s -> %s",
            "Would move" if dry_run else "Moved",
            source.relative_to(root),
            destination.relative_to(root),
        )
        moves.append(Move(source=source, destination=destination, category=expected))
    return moves
