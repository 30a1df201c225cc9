"""
Store backups for commlog.

Correction passes rewrite sender/receiver attribution and delete merged
contacts, and none of that can be undone from the store itself. Before a
pass runs, the correction CLI can take a timestamped backup of the store.

Backups are consistent SQLite copies made with the backup API and named
<store stem>_YYYYmmdd_HHMMSS.db, so they sort chronologically by name.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from contextlib import closing
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackupResult:
    """Result of backing up the store."""

    source_path: Path
    backup_path: Path
    created_at: datetime


@dataclass(frozen=True)
class BackupInfo:
    """Information about an existing backup."""

    path: Path
    created_at: datetime
    source_stem: str

    @property
    def age_days(self) -> float:
        """Get the age of the backup in days."""
        delta = datetime.now() - self.created_at
        return delta.total_seconds() / (24 * 60 * 60)


# commlog_YYYYmmdd_HHMMSS.db
_BACKUP_PATTERN = re.compile(r"^(.+)_(\d{8})_(\d{6})\.db$")


def _default_backup_filename(source: Path, created_at: datetime) -> str:
    ts = created_at.strftime("%Y%m%d_%H%M%S")
    stem = source.stem if source.stem else "commlog"
    return f"{stem}_{ts}.db"


def _parse_backup_filename(path: Path) -> Optional[BackupInfo]:
    """
    Parse a backup filename to extract metadata.

    Returns:
        BackupInfo if the filename matches the backup pattern, None otherwise.
    """
    match = _BACKUP_PATTERN.match(path.name)
    if not match:
        return None

    try:
        created_at = datetime.strptime(f"{match.group(2)}_{match.group(3)}", "%Y%m%d_%H%M%S")
    except ValueError:
        return None
    return BackupInfo(path=path, created_at=created_at, source_stem=match.group(1))


def list_backups(backup_dir: Path, source_stem: str = "commlog") -> List[BackupInfo]:
    """
    List backups of a store, newest first.

    Args:
        backup_dir: Directory containing backups.
        source_stem: Only list backups of the store with this file stem.

    Returns:
        List of BackupInfo objects, sorted newest first.
    """
    backup_dir = Path(backup_dir).expanduser().resolve()
    if not backup_dir.exists():
        return []

    backups: List[BackupInfo] = []
    for f in backup_dir.iterdir():
        if not f.is_file():
            continue
        info = _parse_backup_filename(f)
        if info and info.source_stem == source_stem:
            backups.append(info)

    backups.sort(key=lambda b: (b.created_at, b.path.name), reverse=True)
    return backups


def create_backup(
    db_path: Path,
    backup_dir: Path,
    *,
    backup_name: Optional[str] = None,
) -> BackupResult:
    """
    Create a consistent, timestamped backup of the store.

    Args:
        db_path: Path to the store.
        backup_dir: Directory the backup is written to (created if missing).
        backup_name: Optional explicit filename for the backup.

    Returns:
        BackupResult with the backup path.

    Raises:
        FileNotFoundError: If the store does not exist.
    """
    db_path = Path(db_path).expanduser().resolve()
    backup_dir = Path(backup_dir).expanduser().resolve()

    if not db_path.exists():
        raise FileNotFoundError(f"Store not found: {db_path}")

    created_at = datetime.now()
    backup_dir.mkdir(parents=True, exist_ok=True)
    backup_path = backup_dir / (backup_name or _default_backup_filename(db_path, created_at))

    logger.info(f"Creating backup: {backup_path}")
    with closing(sqlite3.connect(f"file:{db_path}?mode=ro", uri=True)) as src_conn:
        with closing(sqlite3.connect(str(backup_path))) as dst_conn:
            src_conn.backup(dst_conn)

    logger.info(f"Backup created successfully: {backup_path}")
    return BackupResult(source_path=db_path, backup_path=backup_path, created_at=created_at)


def cleanup_old_backups(
    backup_dir: Path,
    keep_count: int = 5,
    source_stem: str = "commlog",
) -> List[Path]:
    """
    Remove old backups, keeping only the most recent ones.

    Args:
        backup_dir: Directory containing backups.
        keep_count: Number of recent backups to keep.
        source_stem: Only consider backups of the store with this file stem.

    Returns:
        List of paths that were deleted.

    Raises:
        ValueError: If keep_count is below 1.
    """
    if keep_count < 1:
        raise ValueError(f"keep_count must be at least 1, got {keep_count}")

    deleted: List[Path] = []
    for backup in list_backups(backup_dir, source_stem)[keep_count:]:
        try:
            backup.path.unlink()
            deleted.append(backup.path)
            logger.info(f"Deleted old backup: {backup.path.name}")
        except OSError as e:
            logger.warning(f"Failed to delete backup {backup.path}: {e}")

    return deleted
