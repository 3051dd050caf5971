"""Tests for sync report formatting."""

from __future__ import annotations

import json

import pytest

from copilot_mirror.sync.models import BackupSnapshot, SyncAction, SyncReport, SyncResult
from copilot_mirror.sync.reporter import (
    format_dry_run_preview,
    format_sync_report,
    report_to_json,
    write_status_file,
)


def _result(path, action, success=True, error=None):
    return SyncResult(
        category=path.split("/", 1)[0],
        path=path,
        action=action,
        success=success,
        error=error,
    )


@pytest.fixture
def report():
    return SyncReport(
        repo="github/awesome-copilot",
        categories=["chatmodes", "prompts"],
        successful_categories=["chatmodes"],
        failed_categories=["prompts"],
        results=[
            _result("chatmodes/a.md", SyncAction.ADDED),
            _result("chatmodes/b.md", SyncAction.UPDATED),
            _result("chatmodes/c.md", SyncAction.UNCHANGED),
            _result("chatmodes/d.md", SyncAction.REMOVED),
            _result("chatmodes/e.md", SyncAction.SKIP, False, "HTTP 502"),
        ],
        backup=BackupSnapshot(
            run_id="r1", categories=["chatmodes"], archive="/b/backup-r1.tar.gz"
        ),
        persisted=True,
        manifest_path="/cache/manifest.json",
        manifest_sha256="deadbeef",
        started_at="2025-01-01T00:00:00+00:00",
        completed_at="2025-01-01T00:00:02+00:00",
        duration_seconds=2.0,
    )


class TestSyncReportModel:
    def test_summary_counts(self, report):
        summary = report.summary
        assert (summary.added, summary.updated, summary.removed, summary.unchanged) == (
            1,
            1,
            1,
            1,
        )
        assert len(report.errors) == 1

    def test_failed_removal_not_counted(self):
        report = SyncReport(
            repo="o/r",
            started_at="t",
            results=[_result("prompts/x.md", SyncAction.REMOVED, False, "busy")],
        )
        assert report.summary.removed == 0
        assert len(report.errors) == 1


class TestFormatSyncReport:
    def test_sections(self, report):
        text = format_sync_report(report)
        assert text.startswith("Sync report for 'github/awesome-copilot'")
        assert "added=1 updated=1 removed=1 unchanged=1 errors=1" in text
        assert "Categories: chatmodes succeeded; prompts failed" in text
        assert "Added:\n  chatmodes/a.md" in text
        assert "Removed:\n  chatmodes/d.md" in text
        assert "Errors:\n  chatmodes/e.md: HTTP 502" in text
        assert "Backup: /b/backup-r1.tar.gz" in text
        assert "Manifest: /cache/manifest.json (sha256 deadbeef)" in text
        assert "unchanged" not in text.split("Added:")[1].split("Errors:")[0]

    def test_warnings(self, report):
        flagged = report.model_copy(
            update={
                "rate_limited": True,
                "timed_out": True,
                "removals_skipped_reason": "rate limited; remote listing may be incomplete",
                "persisted": False,
            }
        )
        text = format_sync_report(flagged)
        assert "WARNING: rate limited" in text
        assert "WARNING: run deadline exceeded" in text
        assert "Removals skipped: rate limited" in text
        assert "Manifest: not updated, prior manifest kept" in text

    def test_dry_run_header(self, report):
        text = format_sync_report(report.model_copy(update={"dry_run": True}))
        assert "(DRY RUN)" in text.splitlines()[0]


class TestDryRunPreview:
    def test_groups(self, report):
        text = format_dry_run_preview(report)
        assert text.startswith("DRY RUN -- No changes will be made")
        assert "[ADDED]\n  chatmodes/a.md" in text
        assert "[UPDATED]\n  chatmodes/b.md" in text
        assert "[FAILED]\n  chatmodes/e.md" in text
        assert "Unchanged: 1 files" in text
        assert "No changes needed." not in text

    def test_nothing_to_do(self):
        report = SyncReport(
            repo="o/r",
            started_at="t",
            dry_run=True,
            results=[_result("prompts/x.md", SyncAction.UNCHANGED)],
        )
        assert format_dry_run_preview(report).endswith("No changes needed.")


class TestJson:
    def test_serialisable(self, report):
        data = report_to_json(report)
        json.dumps(data)
        assert data["summary"] == {"added": 1, "updated": 1, "removed": 1, "unchanged": 1}
        assert data["errors"] == 1
        assert data["backup"] == "/b/backup-r1.tar.gz"
        assert data["results"][4] == {
            "category": "chatmodes",
            "path": "chatmodes/e.md",
            "action": "skip",
            "success": False,
            "error": "HTTP 502",
        }


class TestStatusFile:
    def test_written(self, report, tmp_path):
        path = tmp_path / "status.txt"
        write_status_file(report, path)
        assert path.read_text(encoding="utf-8") == format_sync_report(report) + "\n"
