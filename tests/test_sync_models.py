"""Tests for sync models: aliases, ordering helpers and digests."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from copilot_mirror.sync.models import Category, Manifest, RemoteEntry, ResourceRecord


def _record(path="prompts/a.md", fetched_at="2025-01-01T00:00:00Z", **overrides):
    values = dict(
        category="prompts",
        path=path,
        remote_id="abc",
        size=3,
        fetched_at=fetched_at,
        hash="0" * 64,
    )
    values.update(overrides)
    return ResourceRecord(**values)


class TestResourceRecord:
    def test_accepts_aliases(self):
        record = ResourceRecord.model_validate(
            {
                "category": "prompts",
                "path": "prompts/a.md",
                "sha": "abc",
                "size": 3,
                "lastFetched": "2025-01-01T00:00:00Z",
                "hash": "0" * 64,
            }
        )
        assert record.remote_id == "abc"
        assert record.key == ("prompts", "prompts/a.md")

    def test_frozen(self):
        record = _record()
        with pytest.raises(ValidationError):
            record.size = 4


class TestManifest:
    def test_index_and_records_for(self):
        manifest = Manifest(
            repo="o/r",
            fetched_at="t",
            items=[
                _record(),
                _record(path="chatmodes/b.md", category="chatmodes"),
            ],
        )
        assert set(manifest.index()) == {
            ("prompts", "prompts/a.md"),
            ("chatmodes", "chatmodes/b.md"),
        }
        assert [r.path for r in manifest.records_for("chatmodes")] == ["chatmodes/b.md"]

    def test_json_bytes_use_aliases(self):
        manifest = Manifest(repo="o/r", fetched_at="t", items=[_record()])
        data = json.loads(manifest.to_json_bytes())
        assert data["fetchedAt"] == "t"
        assert data["items"][0]["sha"] == "abc"
        assert manifest.to_json_bytes().endswith(b"\n")

    def test_content_digest_ignores_timestamps_and_order(self):
        a = Manifest(
            repo="o/r",
            fetched_at="t1",
            items=[_record(), _record(path="prompts/b.md")],
        )
        b = Manifest(
            repo="o/r",
            fetched_at="t2",
            items=[
                _record(path="prompts/b.md", fetched_at="later"),
                _record(fetched_at="later"),
            ],
        )
        assert a.content_digest() == b.content_digest()

    def test_content_digest_tracks_hash(self):
        a = Manifest(repo="o/r", fetched_at="t", items=[_record()])
        b = Manifest(repo="o/r", fetched_at="t", items=[_record(hash="1" * 64)])
        assert a.content_digest() != b.content_digest()


class TestEnums:
    def test_category_values(self):
        assert [c.value for c in Category] == [
            "chatmodes",
            "instructions",
            "prompts",
            "collections",
        ]

    def test_remote_entry_defaults(self):
        entry = RemoteEntry(name="a.md", path="prompts/a.md", remote_id="x")
        assert entry.type == "file"
        assert entry.download_url is None
