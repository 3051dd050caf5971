"""Pydantic models for the mirror sync engine.

Defines the core data contracts used across all sync modules:

- ``Category``: Enum of mirrored resource groups.
- ``RemoteEntry``: One file reported by the remote listing.
- ``ResourceRecord``: One tracked file in the manifest.
- ``Summary``: Added/updated/removed/unchanged counters.
- ``Manifest``: The durable snapshot persisted as ``manifest.json``.
- ``IntegrityMarker``: Companion record proving a manifest was completed.
- ``BackupSnapshot``: Pre-deletion archive description.
- ``SyncAction`` / ``SyncResult`` / ``SyncReport``: Run outcome.

Persisted models serialise with camelCase aliases so the JSON files match
the documented on-disk format.  All models are frozen (immutable).
"""

from __future__ import annotations

import hashlib
import json
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Category(str, Enum):
    """Resource groups mirrored from the remote repository."""

    CHATMODES = "chatmodes"
    INSTRUCTIONS = "instructions"
    PROMPTS = "prompts"
    COLLECTIONS = "collections"


class RemoteEntry(BaseModel):
    """A file reported by the remote listing endpoint.

    Attributes:
        name: Base file name.
        path: Repository-relative path (``chatmodes/a.md``).
        remote_id: Remote-assigned content identifier (git blob sha).
        size: Size in bytes as reported by the remote.
        download_url: Raw-content URL, if the remote offers one.
        type: Entry type (``file``, ``dir``, ``symlink``...).
    """

    name: str
    path: str
    remote_id: str
    size: int = 0
    download_url: str | None = None
    type: str = "file"

    model_config = ConfigDict(frozen=True)


class ResourceRecord(BaseModel):
    """One tracked remote file.

    ``(category, path)`` is unique within a manifest.  ``hash`` is the
    SHA-256 of the bytes written at the destination file.
    """

    category: str
    path: str
    remote_id: str = Field(alias="sha")
    size: int
    fetched_at: str = Field(alias="lastFetched")
    hash: str

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @property
    def key(self) -> tuple[str, str]:
        return (self.category, self.path)


class Summary(BaseModel):
    """Outcome counters for one run."""

    added: int = 0
    updated: int = 0
    removed: int = 0
    unchanged: int = 0

    model_config = ConfigDict(frozen=True)


class Manifest(BaseModel):
    """Durable snapshot of every tracked record.

    Attributes:
        version: Manifest format version.
        repo: Remote repository identifier (``owner/name``).
        fetched_at: ISO 8601 timestamp of the run that produced it.
        categories: Categories requested by that run.
        items: Records ordered by category then path.
        summary: Counters of the producing run.
    """

    version: int = 1
    repo: str
    fetched_at: str = Field(alias="fetchedAt")
    categories: list[str] = []
    items: list[ResourceRecord] = []
    summary: Summary = Field(default_factory=Summary)

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def index(self) -> dict[tuple[str, str], ResourceRecord]:
        """Return records keyed by ``(category, path)``."""
        return {item.key: item for item in self.items}

    def records_for(self, category: str) -> list[ResourceRecord]:
        return [item for item in self.items if item.category == category]

    def to_json_bytes(self) -> bytes:
        """Serialise exactly as written to ``manifest.json``."""
        return (
            self.model_dump_json(by_alias=True, indent=2) + "\n"
        ).encode("utf-8")

    def content_digest(self) -> str:
        """SHA-256 over item identities, ignoring timestamps.

        Two runs against an unchanged remote produce the same value even
        though ``fetchedAt``/``lastFetched`` differ.
        """
        identity = [
            [item.category, item.path, item.remote_id, item.size, item.hash]
            for item in sorted(self.items, key=lambda r: r.key)
        ]
        payload = json.dumps(identity, separators=(",", ":"))
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class IntegrityMarker(BaseModel):
    """Proof that a manifest was written by a completed run."""

    fetched_at: str = Field(alias="fetchedAt")
    successful_categories: list[str] = Field(
        default=[], alias="successfulCategories"
    )
    summary: Summary = Field(default_factory=Summary)
    manifest_sha256: str = Field(alias="manifestSha256")
    items_sha256: str | None = Field(default=None, alias="itemsSha256")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class BackupSnapshot(BaseModel):
    """Archive of category directories taken before deletions.

    Attributes:
        run_id: Identifier of the run that took the snapshot.
        categories: Categories included in the archive.
        archive: Filesystem path of the compressed archive.
    """

    run_id: str
    categories: list[str]
    archive: str

    model_config = ConfigDict(frozen=True)


class VerificationResult(BaseModel):
    """Outcome of checking the integrity marker against the manifest."""

    ok: bool
    manifest_sha256: str | None = None
    expected_sha256: str | None = None
    problems: list[str] = []

    model_config = ConfigDict(frozen=True)


class SyncAction(str, Enum):
    """Classification of one resource in a run."""

    ADDED = "added"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    REMOVED = "removed"
    SKIP = "skip"


class SyncResult(BaseModel):
    """Result of reconciling one resource.

    Attributes:
        category: Category of the resource.
        path: Remote-relative path.
        action: Classification (``SKIP`` for files that could not be fetched).
        success: Whether the action was applied.
        error: Error message if the operation failed.
    """

    category: str
    path: str
    action: SyncAction
    success: bool = True
    error: str | None = None

    model_config = ConfigDict(frozen=True)


class SyncReport(BaseModel):
    """Aggregate report for a full sync run.

    Attributes:
        repo: Remote repository identifier.
        dry_run: Whether this was a plan-only run.
        categories: Categories requested.
        successful_categories: Categories whose listing succeeded.
        failed_categories: Categories whose listing failed or was skipped.
        results: Per-resource results.
        rate_limited: Whether a rate-limit signal was observed.
        timed_out: Whether the run deadline was exceeded.
        removals_skipped_reason: Why removal computation was skipped, if it was.
        backup: Snapshot taken before deletions, if any.
        persisted: Whether a new manifest was written.
        manifest_path: Location of ``manifest.json``.
        manifest_sha256: Digest of the written manifest, if persisted.
        started_at: ISO 8601 start timestamp.
        completed_at: ISO 8601 completion timestamp.
        duration_seconds: Wall-clock duration.
    """

    repo: str
    dry_run: bool = False
    categories: list[str] = []
    successful_categories: list[str] = []
    failed_categories: list[str] = []
    results: list[SyncResult] = []
    rate_limited: bool = False
    timed_out: bool = False
    removals_skipped_reason: str | None = None
    backup: BackupSnapshot | None = None
    persisted: bool = False
    manifest_path: str | None = None
    manifest_sha256: str | None = None
    started_at: str
    completed_at: str | None = None
    duration_seconds: float = 0.0

    model_config = ConfigDict(frozen=True)

    def _with_action(self, action: SyncAction) -> list[SyncResult]:
        return [r for r in self.results if r.action == action]

    @property
    def added(self) -> list[SyncResult]:
        return self._with_action(SyncAction.ADDED)

    @property
    def updated(self) -> list[SyncResult]:
        return self._with_action(SyncAction.UPDATED)

    @property
    def unchanged(self) -> list[SyncResult]:
        return self._with_action(SyncAction.UNCHANGED)

    @property
    def removed(self) -> list[SyncResult]:
        return self._with_action(SyncAction.REMOVED)

    @property
    def errors(self) -> list[SyncResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    @property
    def summary(self) -> Summary:
        """Counters over successfully applied results."""
        return Summary(
            added=sum(1 for r in self.added if r.success),
            updated=sum(1 for r in self.updated if r.success),
            removed=sum(1 for r in self.removed if r.success),
            unchanged=len(self.unchanged),
        )
