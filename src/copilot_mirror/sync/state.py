"""Manifest persistence layer.

Owns ``manifest.json`` and its integrity marker in the cache root.  It is
the only writer of either file.

Key design choices:

* **Atomic writes** -- both files are written to a temp file then moved
  into place with ``os.replace()``, so the prior manifest stays valid on
  disk until a complete new one replaces it.
* **Sequential, not transactional** -- the marker is written after the
  manifest and records the SHA-256 of the exact manifest bytes.  A missing
  or mismatched marker tells any consumer the last run was torn.
* **Tolerant load** -- a missing or unreadable manifest yields ``None``
  (empty prior state) plus a warning, never an exception.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from copilot_mirror.errors import CorruptManifest
from copilot_mirror.file_handler import bytes_digest, file_digest, write_atomic
from copilot_mirror.sync.models import (
    IntegrityMarker,
    Manifest,
    VerificationResult,
)

logger = logging.getLogger(__name__)

MANIFEST_FILE = "manifest.json"
MARKER_FILE = "manifest.sha256.json"


class ManifestStore:
    """Load, save, and verify the manifest for one cache root.

    Args:
        root: Cache root holding ``manifest.json`` and the category trees.
    """

    def __init__(self, root: Path) -> None:
        self._root = root

    @property
    def manifest_path(self) -> Path:
        return self._root / MANIFEST_FILE

    @property
    def marker_path(self) -> Path:
        return self._root / MARKER_FILE

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> Manifest | None:
        """Return the persisted manifest, or ``None`` if absent or corrupt."""
        try:
            return self.load_strict()
        except FileNotFoundError:
            logger.info("No prior manifest at %s", self.manifest_path)
            return None
        except CorruptManifest as exc:
            logger.warning(
                "Ignoring corrupt manifest %s: %s", self.manifest_path, exc
            )
            return None

    def load_strict(self) -> Manifest:
        """Like ``load()`` but raises instead of returning ``None``.

        Raises:
            FileNotFoundError: No manifest on disk.
            CorruptManifest: The file is unreadable or fails validation.
        """
        try:
            raw = self.manifest_path.read_bytes()
        except FileNotFoundError:
            raise
        except OSError as exc:
            raise CorruptManifest(str(exc)) from exc
        try:
            return Manifest.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as exc:
            raise CorruptManifest(str(exc)) from exc

    def save(
        self, manifest: Manifest, successful_categories: list[str]
    ) -> IntegrityMarker:
        """Write *manifest*, then its integrity marker.

        Returns:
            The marker that was written.
        """
        self._root.mkdir(parents=True, exist_ok=True)
        payload = manifest.to_json_bytes()
        write_atomic(self.manifest_path, payload)

        marker = IntegrityMarker(
            fetched_at=manifest.fetched_at,
            successful_categories=list(successful_categories),
            summary=manifest.summary,
            manifest_sha256=bytes_digest(payload),
            items_sha256=manifest.content_digest(),
        )
        write_atomic(
            self.marker_path,
            (marker.model_dump_json(by_alias=True, indent=2) + "\n").encode(
                "utf-8"
            ),
        )
        logger.info(
            "Persisted manifest with %d items (sha256 %s)",
            len(manifest.items),
            marker.manifest_sha256[:12],
        )
        return marker

    def load_marker(self) -> IntegrityMarker | None:
        try:
            return IntegrityMarker.model_validate_json(
                self.marker_path.read_bytes()
            )
        except FileNotFoundError:
            return None
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning("Unreadable integrity marker: %s", exc)
            return None

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify(self, check_files: bool = False) -> VerificationResult:
        """Check the marker against the manifest on disk.

        Args:
            check_files: Also confirm every destination file still hashes
                to its recorded digest.
        """
        problems: list[str] = []
        actual = file_digest(self.manifest_path)
        if actual is None:
            return VerificationResult(ok=False, problems=["manifest missing"])

        marker = self.load_marker()
        if marker is None:
            return VerificationResult(
                ok=False,
                manifest_sha256=actual,
                problems=["integrity marker missing or unreadable"],
            )
        if marker.manifest_sha256 != actual:
            problems.append("manifest digest does not match integrity marker")

        if check_files:
            try:
                manifest = self.load_strict()
            except CorruptManifest as exc:
                problems.append(f"manifest unreadable: {exc}")
            else:
                for item in manifest.items:
                    on_disk = file_digest(self._root / item.path)
                    if on_disk is None:
                        problems.append(f"missing file: {item.path}")
                    elif on_disk != item.hash:
                        problems.append(f"modified file: {item.path}")

        return VerificationResult(
            ok=not problems,
            manifest_sha256=actual,
            expected_sha256=marker.manifest_sha256,
            problems=problems,
        )

    # ------------------------------------------------------------------
    # Content hashing
    # ------------------------------------------------------------------

    @staticmethod
    def content_hash(data: bytes) -> str:
        """SHA-256 hex digest of raw downloaded bytes (no normalisation)."""
        return bytes_digest(data)
