"""Incremental, hash-verified mirror sync engine.

Mirrors the files of selected remote categories into a local cache and
keeps a manifest that records exactly what is on disk.

Architecture
------------
A run lists each category, fetches and hashes every file, and classifies
it against the prior manifest record as added, updated or unchanged.
Removals are computed only for categories whose listing succeeded, and
are suppressed entirely when the remote rate-limits the run or the run
deadline expires: absence is never inferred from a partial observation.

Modules:

- ``engine``   -- ``Reconciler``: orchestrates a full sync run.
- ``context``  -- ``RunContext``: deadline, rate-limit flag, category outcome.
- ``state``    -- ``ManifestStore``: manifest + integrity marker persistence.
- ``backup``   -- ``BackupSnapshotter``: pre-deletion archives and retention.
- ``models``   -- pydantic data contracts.
- ``reporter`` -- human-readable and JSON report formatting.

Usage example
-------------
::

    from copilot_mirror.config import load_config
    from copilot_mirror.core.client import GitHubContentsClient
    from copilot_mirror.sync import (
        Reconciler,
        format_dry_run_preview,
        format_sync_report,
    )

    config = load_config()
    reconciler = Reconciler(GitHubContentsClient(config), config)

    preview = reconciler.run(dry_run=True)
    print(format_dry_run_preview(preview))

    report = reconciler.run()
    print(format_sync_report(report))
"""

from .backup import BackupSnapshotter
from .context import RunContext
from .engine import Reconciler
from .models import (
    BackupSnapshot,
    Category,
    IntegrityMarker,
    Manifest,
    RemoteEntry,
    ResourceRecord,
    Summary,
    SyncAction,
    SyncReport,
    SyncResult,
)
from .reporter import (
    format_dry_run_preview,
    format_sync_report,
    report_to_json,
)
from .state import ManifestStore

__all__ = [
    "BackupSnapshot",
    "BackupSnapshotter",
    "Category",
    "IntegrityMarker",
    "Manifest",
    "ManifestStore",
    "Reconciler",
    "RemoteEntry",
    "ResourceRecord",
    "RunContext",
    "Summary",
    "SyncAction",
    "SyncReport",
    "SyncResult",
    "format_dry_run_preview",
    "format_sync_report",
    "report_to_json",
]
