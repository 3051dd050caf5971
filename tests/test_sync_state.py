"""Tests for the manifest persistence layer.

Covers:
- load() returns None for missing or corrupt manifests
- load_strict() raises the precise error
- save() writes manifest then marker, with camelCase keys
- verify() detects torn writes and tampered files
- content_hash is raw SHA-256 (no normalisation)
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path

import pytest

from copilot_mirror.errors import CorruptManifest
from copilot_mirror.sync.models import Manifest, ResourceRecord, Summary
from copilot_mirror.sync.state import MANIFEST_FILE, MARKER_FILE, ManifestStore


def _record(path: str, content: bytes, category: str = "prompts") -> ResourceRecord:
    return ResourceRecord(
        category=category,
        path=path,
        remote_id="r-" + path,
        size=len(content),
        fetched_at="2025-01-01T00:00:00+00:00",
        hash=hashlib.sha256(content).hexdigest(),
    )


def _manifest(*records: ResourceRecord, fetched_at="2025-01-01T00:00:00+00:00"):
    return Manifest(
        repo="github/awesome-copilot",
        fetched_at=fetched_at,
        categories=["prompts"],
        items=list(records),
        summary=Summary(added=len(records)),
    )


class TestManifestStoreLoad:
    def test_missing_returns_none(self, tmp_path: Path):
        assert ManifestStore(tmp_path / "absent").load() is None

    def test_missing_strict_raises(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            ManifestStore(tmp_path).load_strict()

    def test_corrupt_returns_none_with_warning(self, tmp_path: Path, caplog):
        (tmp_path / MANIFEST_FILE).write_text("{broken", encoding="utf-8")
        assert ManifestStore(tmp_path).load() is None
        assert "Ignoring corrupt manifest" in caplog.text

    def test_invalid_schema_is_corrupt(self, tmp_path: Path):
        (tmp_path / MANIFEST_FILE).write_text(
            json.dumps({"items": "nope"}), encoding="utf-8"
        )
        with pytest.raises(CorruptManifest):
            ManifestStore(tmp_path).load_strict()


class TestManifestStoreSave:
    def test_round_trip(self, tmp_path: Path):
        store = ManifestStore(tmp_path)
        manifest = _manifest(_record("prompts/a.md", b"a"))
        store.save(manifest, ["prompts"])
        assert store.load() == manifest

    def test_on_disk_format_uses_aliases(self, tmp_path: Path):
        store = ManifestStore(tmp_path)
        store.save(_manifest(_record("prompts/a.md", b"a")), ["prompts"])

        data = json.loads((tmp_path / MANIFEST_FILE).read_text(encoding="utf-8"))
        assert data["version"] == 1
        assert data["repo"] == "github/awesome-copilot"
        assert "fetchedAt" in data
        item = data["items"][0]
        assert set(item) == {"category", "path", "sha", "size", "lastFetched", "hash"}

    def test_marker_records_manifest_digest(self, tmp_path: Path):
        store = ManifestStore(tmp_path)
        marker = store.save(_manifest(_record("prompts/a.md", b"a")), ["prompts"])

        raw = (tmp_path / MANIFEST_FILE).read_bytes()
        assert marker.manifest_sha256 == hashlib.sha256(raw).hexdigest()
        on_disk = json.loads((tmp_path / MARKER_FILE).read_text(encoding="utf-8"))
        assert on_disk["manifestSha256"] == marker.manifest_sha256
        assert on_disk["successfulCategories"] == ["prompts"]
        assert on_disk["summary"]["added"] == 1

    def test_items_digest_ignores_timestamps(self, tmp_path: Path):
        store = ManifestStore(tmp_path)
        record = _record("prompts/a.md", b"a")
        first = store.save(_manifest(record, fetched_at="2025-01-01T00:00:00Z"), [])
        later = record.model_copy(update={"fetched_at": "2025-06-01T00:00:00Z"})
        second = store.save(_manifest(later, fetched_at="2025-06-01T00:00:00Z"), [])

        assert first.items_sha256 == second.items_sha256
        assert first.manifest_sha256 != second.manifest_sha256

    def test_creates_root(self, tmp_path: Path):
        root = tmp_path / "deep" / "cache"
        ManifestStore(root).save(_manifest(), [])
        assert (root / MANIFEST_FILE).is_file()


class TestManifestStoreVerify:
    def _populate(self, root: Path) -> ManifestStore:
        (root / "prompts").mkdir(parents=True)
        (root / "prompts/a.md").write_bytes(b"a")
        store = ManifestStore(root)
        store.save(_manifest(_record("prompts/a.md", b"a")), ["prompts"])
        return store

    def test_ok(self, tmp_path: Path):
        result = self._populate(tmp_path).verify(check_files=True)
        assert result.ok
        assert result.manifest_sha256 == result.expected_sha256

    def test_missing_manifest(self, tmp_path: Path):
        result = ManifestStore(tmp_path).verify()
        assert not result.ok
        assert result.problems == ["manifest missing"]

    def test_missing_marker_means_torn_write(self, tmp_path: Path):
        store = self._populate(tmp_path)
        store.marker_path.unlink()
        result = store.verify()
        assert not result.ok
        assert "integrity marker missing" in result.problems[0]

    def test_manifest_edited_after_marker(self, tmp_path: Path):
        store = self._populate(tmp_path)
        with open(store.manifest_path, "ab") as fh:
            fh.write(b" ")
        result = store.verify()
        assert result.problems == ["manifest digest does not match integrity marker"]

    def test_file_checks(self, tmp_path: Path):
        store = self._populate(tmp_path)
        (tmp_path / "prompts/a.md").write_bytes(b"tampered")
        assert store.verify().ok
        assert store.verify(check_files=True).problems == [
            "modified file: prompts/a.md"
        ]
        (tmp_path / "prompts/a.md").unlink()
        assert store.verify(check_files=True).problems == [
            "missing file: prompts/a.md"
        ]


class TestContentHash:
    def test_raw_sha256(self):
        assert ManifestStore.content_hash(b"abc") == hashlib.sha256(b"abc").hexdigest()

    def test_no_line_ending_normalisation(self):
        assert ManifestStore.content_hash(b"a\r\n") != ManifestStore.content_hash(
            b"a\n"
        )
