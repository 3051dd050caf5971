"""Downstream steps that consume the mirrored tree.

- ``combine``   -- flatten categories into one deduplicated collection.
- ``publisher`` -- link or copy the collection into profile directories.
- ``normalize`` -- move misfiled resources by filename suffix.
- ``links``     -- ordered link-or-copy strategies.
"""

from .combine import CombineResult, combine_categories
from .links import DEFAULT_STRATEGIES, link_or_copy
from .normalize import Move, category_for, normalize_tree
from .publisher import PUBLISH_MARKER, PublishResult, publish

__all__ = [
    "DEFAULT_STRATEGIES",
    "PUBLISH_MARKER",
    "CombineResult",
    "Move",
    "PublishResult",
    "category_for",
    "combine_categories",
    "link_or_copy",
    "normalize_tree",
    "publish",
]
