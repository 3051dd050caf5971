"""Pre-deletion backup snapshots with retention pruning.

Before the reconciler deletes anything it archives the affected category
directories into one ``.tar.gz``.  The category trees are staged into a
temporary directory first so the archive reflects a single point in time
even if the destination is touched while compressing.
"""

from __future__ import annotations

import logging
import shutil
import tarfile
import tempfile
from pathlib import Path

from copilot_mirror.errors import BackupFailure
from copilot_mirror.sync.models import BackupSnapshot

logger = logging.getLogger(__name__)

ARCHIVE_PREFIX = "backup-"
ARCHIVE_SUFFIX = ".tar.gz"


class BackupSnapshotter:
    """Create and prune backup archives.

    Args:
        backup_dir: Directory that holds the archives.
        retention: Number of archives to keep (oldest pruned first).
    """

    def __init__(self, backup_dir: Path, retention: int = 5) -> None:
        if retention < 1:
            raise ValueError("retention must be >= 1")
        self.backup_dir = backup_dir
        self.retention = retention

    def snapshot(
        self, categories: list[str], dest_root: Path, run_id: str
    ) -> BackupSnapshot:
        """Archive ``dest_root/<category>`` for every category in *categories*.

        Categories without a directory on disk are skipped.

        Raises:
            BackupFailure: Staging or compression failed.
        """
        archive = self.backup_dir / f"{ARCHIVE_PREFIX}{run_id}{ARCHIVE_SUFFIX}"
        included: list[str] = []
        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.TemporaryDirectory(
                prefix="stage-", dir=str(self.backup_dir)
            ) as staging:
                stage_root = Path(staging)
                for category in categories:
                    source = dest_root / category
                    if not source.is_dir():
                        continue
                    shutil.copytree(source, stage_root / category, symlinks=True)
                    included.append(category)

                tmp_archive = archive.with_name(archive.name + ".partial")
                with tarfile.open(tmp_archive, "w:gz") as tar:
                    for category in included:
                        tar.add(stage_root / category, arcname=category)
                tmp_archive.replace(archive)
        except (OSError, tarfile.TarError, shutil.Error) as exc:
            raise BackupFailure(f"backup to {archive} failed: {exc}") from exc

        logger.info(
            "Backed up %s to %s", ", ".join(included) or "(nothing)", archive
        )
        self.prune()
        return BackupSnapshot(
            run_id=run_id, categories=included, archive=str(archive)
        )

    def list_archives(self) -> list[Path]:
        """Existing archives, newest first (by mtime, then name)."""
        if not self.backup_dir.is_dir():
            return []
        archives = [
            p
            for p in self.backup_dir.glob(f"{ARCHIVE_PREFIX}*{ARCHIVE_SUFFIX}")
            if p.is_file()
        ]
        return sorted(
            archives, key=lambda p: (p.stat().st_mtime, p.name), reverse=True
        )

    def prune(self) -> list[Path]:
        """Delete archives beyond the retention count.

        Returns:
            The archives that were removed.
        """
        removed: list[Path] = []
        for stale in self.list_archives()[self.retention :]:
            try:
                stale.unlink()
                removed.append(stale)
                logger.info("Pruned old backup %s", stale.name)
            except OSError as exc:
                logger.warning("Could not prune backup %s: %s", stale, exc)
        return removed
