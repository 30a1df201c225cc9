"""
Configuration module for commlog.

Handles configuration settings for an import or correction run: where the
contact/message store lives, how large import batches are, and where store
backups are written before destructive correction passes.

Resolution order for the store path:
    1. Explicit argument (e.g. --db-path)
    2. COMMLOG_DB_PATH environment variable
    3. ~/.commlog/commlog.db
"""

import os
from pathlib import Path
from typing import Optional


class Config:
    """Configuration class for commlog."""

    # Default store location
    DEFAULT_STORE_DIR = Path.home() / ".commlog"
    DEFAULT_STORE_NAME = "commlog.db"

    # Import batching
    DEFAULT_BATCH_SIZE = 100

    # Backups live next to the store unless told otherwise
    DEFAULT_BACKUP_DIR_NAME = "backups"

    def __init__(
        self,
        db_path: Optional[str] = None,
        batch_size: Optional[int] = None,
        backup_dir: Optional[str] = None,
    ):
        """
        Initialize configuration.

        Args:
            db_path: Optional path to the store. Falls back to COMMLOG_DB_PATH,
                    then to ~/.commlog/commlog.db.
            batch_size: Optional import batch size. Falls back to
                    COMMLOG_BATCH_SIZE, then to 100.
            backup_dir: Optional directory for store backups. Defaults to a
                    'backups' directory beside the store.

        Raises:
            ValueError: If the batch size is not a positive integer.
        """
        if db_path:
            self._db_path = Path(db_path)
        elif os.getenv("COMMLOG_DB_PATH"):
            self._db_path = Path(os.environ["COMMLOG_DB_PATH"])
        else:
            self._db_path = self.DEFAULT_STORE_DIR / self.DEFAULT_STORE_NAME

        if batch_size is None:
            env_batch = os.getenv("COMMLOG_BATCH_SIZE")
            batch_size = int(env_batch) if env_batch else self.DEFAULT_BATCH_SIZE
        if batch_size < 1:
            raise ValueError(f"Batch size must be at least 1, got {batch_size}")
        self._batch_size = batch_size

        self._backup_dir: Path
        if backup_dir:
            self._backup_dir = Path(backup_dir)
        else:
            self._backup_dir = self._db_path.parent / self.DEFAULT_BACKUP_DIR_NAME

    @property
    def db_path(self) -> Path:
        """Get the store file path."""
        return self._db_path

    @property
    def db_path_str(self) -> str:
        """Get the store file path as a string."""
        return str(self._db_path)

    @property
    def batch_size(self) -> int:
        """Get the import batch size."""
        return self._batch_size

    @property
    def backup_dir(self) -> Path:
        """Get the directory store backups are written to."""
        return self._backup_dir

    def store_exists(self) -> bool:
        """Check whether the store file exists and is readable."""
        return self._db_path.exists() and os.access(self._db_path, os.R_OK)

    @staticmethod
    def validate_input(path: Path) -> bool:
        """
        Validate that an input log file exists and is readable.

        Args:
            path: Path to the exported log file.

        Returns:
            True if the file exists, is a regular file, and is readable.
        """
        return path.is_file() and os.access(path, os.R_OK)

    def ensure_store_dir(self) -> None:
        """
        Ensure the store's parent directory exists.

        Creates the directory if it doesn't exist.
        """
        self._db_path.parent.mkdir(parents=True, exist_ok=True)


# Global configuration instance
_config: Optional[Config] = None


def get_config(db_path: Optional[str] = None) -> Config:
    """
    Get or create the global configuration instance.

    Args:
        db_path: Optional path to the store.

    Returns:
        Config instance.
    """
    global _config
    if _config is None or db_path is not None:
        _config = Config(db_path)
    return _config


def set_config(config: Config) -> None:
    """
    Set the global configuration instance.

    Args:
        config: Config instance to use.
    """
    global _config
    _config = config
