"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync runs:

- ``format_sync_report`` -- full post-sync summary.
- ``format_dry_run_preview`` -- planned changes grouped by action.
- ``report_to_json`` -- structured dict for ``--json`` output.
- ``write_status_file`` -- the status file left in the cache root.
"""

from __future__ import annotations

from collections import defaultdict
from pathlib import Path
from typing import TYPE_CHECKING

from copilot_mirror.file_handler import write_atomic

if TYPE_CHECKING:
    from .models import SyncReport

from .models import SyncAction

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(report: SyncReport) -> str:
    """Format a complete sync report as human-readable text.

    Sections are only included when they contain at least one result.
    Unchanged files are summarised by count only.
    """
    lines: list[str] = []
    summary = report.summary

    header = f"Sync report for '{report.repo}'"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append(f"Duration: {report.duration_seconds:.1f}s")
    lines.append("")

    lines.append(
        f"added={summary.added} updated={summary.updated} "
        f"removed={summary.removed} unchanged={summary.unchanged} "
        f"errors={len(report.errors)}"
    )
    lines.append(
        "Categories: "
        + (", ".join(report.successful_categories) or "none")
        + " succeeded"
        + (
            f"; {', '.join(report.failed_categories)} failed"
            if report.failed_categories
            else ""
        )
    )
    if report.rate_limited:
        lines.append("WARNING: rate limited by remote; deletions suppressed")
    if report.timed_out:
        lines.append("WARNING: run deadline exceeded; run aborted early")
    if report.removals_skipped_reason and not report.dry_run:
        lines.append(f"Removals skipped: {report.removals_skipped_reason}")
    lines.append("")

    for title, results in (
        ("Added:", report.added),
        ("Updated:", report.updated),
        ("Removed:", report.removed),
    ):
        applied = [r for r in results if r.success]
        if applied:
            lines.append(title)
            for r in applied:
                lines.append(f"  {r.path}")
            lines.append("")

    if report.errors:
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  {r.path}: {r.error}")
        lines.append("")

    if report.backup is not None:
        lines.append(f"Backup: {report.backup.archive}")
    if report.persisted:
        lines.append(
            f"Manifest: {report.manifest_path} (sha256 {report.manifest_sha256})"
        )
    elif not report.dry_run:
        lines.append("Manifest: not updated, prior manifest kept")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Dry-run preview
# ------------------------------------------------------------------


def format_dry_run_preview(report: SyncReport) -> str:
    """Format planned changes as ``[ACTION] path`` lines grouped by action."""
    lines: list[str] = []
    lines.append("DRY RUN -- No changes will be made")
    lines.append(f"Repository: {report.repo}")
    lines.append("")

    groups: dict[SyncAction, list[str]] = defaultdict(list)
    for r in report.results:
        groups[r.action].append(r.path)

    for action in (SyncAction.ADDED, SyncAction.UPDATED, SyncAction.SKIP):
        if action not in groups:
            continue
        label = "FAILED" if action == SyncAction.SKIP else action.value.upper()
        lines.append(f"[{label}]")
        for path in groups[action]:
            lines.append(f"  {path}")
        lines.append("")

    unchanged = len(groups.get(SyncAction.UNCHANGED, []))
    if unchanged:
        lines.append(f"Unchanged: {unchanged} files")
        lines.append("")

    if not (groups.get(SyncAction.ADDED) or groups.get(SyncAction.UPDATED)):
        lines.append("No changes needed.")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a structured dict for JSON serialisation."""
    results_list = []
    for r in report.results:
        entry: dict = {
            "category": r.category,
            "path": r.path,
            "action": r.action.value,
            "success": r.success,
        }
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    return {
        "repo": report.repo,
        "dry_run": report.dry_run,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "duration_seconds": report.duration_seconds,
        "categories": report.categories,
        "successful_categories": report.successful_categories,
        "failed_categories": report.failed_categories,
        "rate_limited": report.rate_limited,
        "timed_out": report.timed_out,
        "removals_skipped_reason": report.removals_skipped_reason,
        "summary": report.summary.model_dump(),
        "errors": len(report.errors),
        "backup": report.backup.archive if report.backup else None,
        "persisted": report.persisted,
        "manifest": report.manifest_path,
        "manifest_sha256": report.manifest_sha256,
        "results": results_list,
    }


# ------------------------------------------------------------------
# Status file
# ------------------------------------------------------------------


def write_status_file(report: SyncReport, path: Path) -> None:
    """Atomically write the human-readable report to *path*."""
    write_atomic(path, (format_sync_report(report) + "\n").encode("utf-8"))
