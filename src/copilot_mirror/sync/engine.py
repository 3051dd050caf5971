"""Reconciler: the sync engine that mirrors remote categories locally.

The ``Reconciler`` ties together the remote client, manifest store and
backup snapshotter into a complete run.  It:

1. Loads the prior manifest (absent or corrupt means empty prior state).
2. Lists each requested category; a failed listing skips the category.
3. Fetches and hashes every listed file, classifying it as added,
   updated or unchanged against the prior record, and rewrites changed
   files as a whole.
4. Computes removals, but only for categories listed successfully and
   only when no rate limit or deadline interrupted the run.
5. Archives the affected categories before deleting anything.
6. Persists the new manifest and integrity marker when at least one
   category succeeded, then writes the status file.

Error handling is per-file and per-category; only ``RateLimited`` and
``TimeoutExceeded`` stop the run early.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from copilot_mirror.config import Config
from copilot_mirror.errors import (
    BackupFailure,
    FetchError,
    RateLimited,
    RemoteError,
    TimeoutExceeded,
)
from copilot_mirror.file_handler import (
    file_digest,
    remove_file,
    replace_file,
    resolve_destination,
)
from copilot_mirror.sync.backup import BackupSnapshotter
from copilot_mirror.sync.context import RunContext
from copilot_mirror.sync.models import (
    BackupSnapshot,
    Manifest,
    RemoteEntry,
    ResourceRecord,
    SyncAction,
    SyncReport,
    SyncResult,
)
from copilot_mirror.sync.reporter import write_status_file
from copilot_mirror.sync.state import ManifestStore

if TYPE_CHECKING:
    from copilot_mirror.core.client import GitHubContentsClient

logger = logging.getLogger(__name__)

STATUS_FILE = "status.txt"

Key = tuple[str, str]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Reconciler:
    """Run incremental, hash-verified syncs of remote categories.

    Args:
        client: Remote lister and content fetcher.
        config: Mirror configuration.
        store: Manifest store (defaults to one rooted at the cache dir).
        snapshotter: Backup snapshotter (defaults from config).
    """

    def __init__(
        self,
        client: GitHubContentsClient,
        config: Config,
        store: ManifestStore | None = None,
        snapshotter: BackupSnapshotter | None = None,
    ) -> None:
        self.client = client
        self.config = config
        self.dest_root = config.cache_root
        self.store = store or ManifestStore(self.dest_root)
        self.snapshotter = snapshotter or BackupSnapshotter(
            config.backup_root, config.backup_retention
        )

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(
        self,
        dry_run: bool = False,
        categories: list[str] | None = None,
        ctx: RunContext | None = None,
    ) -> SyncReport:
        """Execute one sync run.

        Args:
            dry_run: Classify only; write, delete and persist nothing.
            categories: Override the configured categories.
            ctx: Run context (built from config when omitted).

        Returns:
            A ``SyncReport`` describing the run.

        Raises:
            OSError: The destination root or the manifest cannot be written.
        """
        ctx = ctx or RunContext(budget=self.config.run_timeout, dry_run=dry_run)
        requested = list(dict.fromkeys(categories or self.config.categories))
        started_at = ctx.started_at.isoformat()

        if not dry_run:
            self.dest_root.mkdir(parents=True, exist_ok=True)

        prior = self.store.load()
        prior_index: dict[Key, ResourceRecord] = prior.index() if prior else {}

        results: list[SyncResult] = []
        new_records: dict[Key, ResourceRecord] = {}
        observed: set[Key] = set()

        position = 0
        try:
            for position, category in enumerate(requested):
                if not self._sync_category(
                    category, ctx, dry_run, prior_index, new_records, observed, results
                ):
                    for skipped in requested[position:]:
                        ctx.mark_failed(skipped)
                    break
        except TimeoutExceeded as exc:
            logger.error("Aborting run: %s", exc)
            ctx.timed_out = True
            for category in requested[position:]:
                ctx.mark_failed(category)

        # Removals
        block_reason = self._removal_block_reason(ctx, prior, dry_run)
        stale = [
            record
            for record in (prior.items if prior else [])
            if record.category in ctx.successful_categories
            and record.key not in observed
            and record.key not in new_records
        ]
        backup: BackupSnapshot | None = None
        removed: set[Key] = set()

        if block_reason is not None:
            if stale:
                logger.warning(
                    "Not removing %d stale files: %s", len(stale), block_reason
                )
        else:
            backup = self._backup(ctx, stale)
            removed = self._apply_removals(stale, results)

        # Carry over every prior record not re-fetched and not removed
        for record in prior.items if prior else []:
            if record.key not in new_records and record.key not in removed:
                new_records[record.key] = record

        report_kwargs = dict(
            repo=self.config.repo,
            dry_run=dry_run,
            categories=requested,
            successful_categories=list(ctx.successful_categories),
            failed_categories=list(ctx.failed_categories),
            results=results,
            rate_limited=ctx.rate_limited,
            timed_out=ctx.timed_out,
            removals_skipped_reason=block_reason,
            backup=backup,
            manifest_path=str(self.store.manifest_path),
            started_at=started_at,
        )
        summary = SyncReport(**report_kwargs).summary

        # Persist
        persisted = False
        manifest_sha256: str | None = None
        if dry_run:
            logger.info("Dry run: manifest not written")
        elif not ctx.successful_categories:
            logger.warning(
                "No category was fetched successfully; keeping prior manifest"
            )
        else:
            manifest = Manifest(
                repo=self.config.repo,
                fetched_at=_now_iso(),
                categories=requested,
                items=sorted(new_records.values(), key=lambda r: r.key),
                summary=summary,
            )
            marker = self.store.save(manifest, ctx.successful_categories)
            persisted = True
            manifest_sha256 = marker.manifest_sha256

        report = SyncReport(
            **report_kwargs,
            persisted=persisted,
            manifest_sha256=manifest_sha256,
            completed_at=_now_iso(),
            duration_seconds=round(ctx.elapsed(), 3),
        )

        logger.info(
            "Sync finished: added=%d updated=%d removed=%d unchanged=%d errors=%d",
            summary.added,
            summary.updated,
            summary.removed,
            summary.unchanged,
            len(report.errors),
        )
        if not dry_run:
            try:
                write_status_file(report, self.dest_root / STATUS_FILE)
            except OSError as exc:
                logger.error("Could not write status file: %s", exc)
        return report

    # ------------------------------------------------------------------
    # Per-category sync
    # ------------------------------------------------------------------

    def _sync_category(
        self,
        category: str,
        ctx: RunContext,
        dry_run: bool,
        prior_index: dict[Key, ResourceRecord],
        new_records: dict[Key, ResourceRecord],
        observed: set[Key],
        results: list[SyncResult],
    ) -> bool:
        """Reconcile one category.

        Returns:
            ``False`` when a rate limit means the run must stop.
        """
        ctx.check_deadline()
        try:
            entries = self.client.list_category(category, ctx)
        except RateLimited as exc:
            logger.error("Rate limited while listing %s: %s", category, exc)
            ctx.note_rate_limited()
            ctx.mark_failed(category)
            return False
        except RemoteError as exc:
            logger.error("Listing %s failed, skipping category: %s", category, exc)
            ctx.mark_failed(category)
            return True

        ctx.mark_successful(category)
        logger.info("Listed %d files in %s", len(entries), category)

        for entry in entries:
            key = (category, entry.path)
            observed.add(key)
            prior = prior_index.get(key)
            try:
                data = self.client.fetch(entry, ctx)
            except RateLimited as exc:
                logger.error("Rate limited while fetching %s: %s", entry.path, exc)
                ctx.note_rate_limited()
                self._fail(results, category, entry.path, str(exc), prior, new_records)
                return False
            except FetchError as exc:
                logger.error("Fetch failed: %s", exc)
                self._fail(results, category, entry.path, str(exc), prior, new_records)
                continue

            results.append(
                self._reconcile_entry(
                    category, entry, data, prior, dry_run, new_records
                )
            )
        return True

    def _reconcile_entry(
        self,
        category: str,
        entry: RemoteEntry,
        data: bytes,
        prior: ResourceRecord | None,
        dry_run: bool,
        new_records: dict[Key, ResourceRecord],
    ) -> SyncResult:
        """Classify fetched bytes against the prior record and apply."""
        digest = ManifestStore.content_hash(data)
        try:
            dest = resolve_destination(self.dest_root, entry.path)
        except ValueError as exc:
            return self._fail([], category, entry.path, str(exc), prior, new_records)

        if prior is None:
            action = SyncAction.ADDED
        elif (
            prior.remote_id == entry.remote_id
            and prior.hash == digest
            and self._local_digest(dest) == digest
        ):
            action = SyncAction.UNCHANGED
        else:
            action = SyncAction.UPDATED

        if action != SyncAction.UNCHANGED and not dry_run:
            try:
                replace_file(dest, data)
            except OSError as exc:
                logger.error("Writing %s failed: %s", dest, exc)
                return self._fail([], category, entry.path, str(exc), prior, new_records)

        if action == SyncAction.UNCHANGED:
            logger.debug("Unchanged: %s", entry.path)
        else:
            logger.info("%s: %s", action.value.capitalize(), entry.path)

        new_records[(category, entry.path)] = ResourceRecord(
            category=category,
            path=entry.path,
            remote_id=entry.remote_id,
            size=len(data),
            fetched_at=_now_iso(),
            hash=digest,
        )
        return SyncResult(category=category, path=entry.path, action=action)

    @staticmethod
    def _local_digest(dest: Path) -> str | None:
        """Digest of the destination file; unreadable counts as missing."""
        try:
            return file_digest(dest)
        except OSError as exc:
            logger.warning("Cannot read %s, rewriting it: %s", dest, exc)
            return None

    @staticmethod
    def _fail(
        results: list[SyncResult],
        category: str,
        path: str,
        error: str,
        prior: ResourceRecord | None,
        new_records: dict[Key, ResourceRecord],
    ) -> SyncResult:
        """Record a per-file failure, keeping the prior record if any."""
        if prior is not None:
            new_records[prior.key] = prior
        result = SyncResult(
            category=category,
            path=path,
            action=SyncAction.SKIP,
            success=False,
            error=error,
        )
        results.append(result)
        return result

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def _removal_block_reason(
        self, ctx: RunContext, prior: Manifest | None, dry_run: bool
    ) -> str | None:
        """Return why removals must be skipped, or ``None`` if they may run."""
        if not self.config.allow_delete:
            return "deletions disabled"
        if dry_run:
            return "dry run"
        if prior is None:
            return "no prior manifest"
        if ctx.rate_limited:
            return "rate limited; remote listing may be incomplete"
        if ctx.timed_out:
            return "run deadline exceeded"
        if not ctx.successful_categories:
            return "no category fetched successfully"
        return None

    def _backup(
        self, ctx: RunContext, stale: list[ResourceRecord]
    ) -> BackupSnapshot | None:
        if not stale:
            return None
        try:
            return self.snapshotter.snapshot(
                list(ctx.successful_categories), self.dest_root, ctx.run_id
            )
        except BackupFailure as exc:
            logger.error("Backup failed, continuing with removals: %s", exc)
            return None

    def _apply_removals(
        self, stale: list[ResourceRecord], results: list[SyncResult]
    ) -> set[Key]:
        """Delete stale files.

        Returns:
            Keys of records that were removed.  Records whose deletion
            failed are not included and stay in the manifest.
        """
        removed_keys: set[Key] = set()
        for record in stale:
            try:
                target = resolve_destination(self.dest_root, record.path)
                removed = remove_file(target, stop_at=self.dest_root / record.category)
            except (OSError, ValueError) as exc:
                logger.error("Removing %s failed: %s", record.path, exc)
                results.append(
                    SyncResult(
                        category=record.category,
                        path=record.path,
                        action=SyncAction.REMOVED,
                        success=False,
                        error=str(exc),
                    )
                )
                continue
            if removed:
                logger.info("Removed: %s", record.path)
            else:
                logger.info("Removed from manifest (already gone): %s", record.path)
            removed_keys.add(record.key)
            results.append(
                SyncResult(
                    category=record.category,
                    path=record.path,
                    action=SyncAction.REMOVED,
                )
            )
        return removed_keys

