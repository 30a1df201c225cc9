"""
Store connection module.

Provides connection management for the contact/message store, used by
the correction CLI.
"""

import sqlite3
from typing import Optional
import logging

from commlog.config import Config
from commlog.etl.schema import create_schema, open_store

logger = logging.getLogger(__name__)


class StoreConnection:
    """
    Connection manager for the commlog store.

    The schema is created on first connect, so a fresh path yields an empty
    but valid store.
    """

    def __init__(self, config: Config, *, create: bool = True):
        """
        Initialize store connection.

        Args:
            config: Configuration object with the store path.
            create: Create the store (and its schema) if it does not exist.
                    When False, a missing store raises FileNotFoundError.

        Raises:
            FileNotFoundError: If create is False and the store is missing.
        """
        if not create and not config.store_exists():
            raise FileNotFoundError(f"Store not found: {config.db_path_str}")

        self.config = config
        self.create = create
        self._connection: Optional[sqlite3.Connection] = None

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def connect(self) -> sqlite3.Connection:
        """
        Open the store, creating the schema when needed.

        Returns:
            SQLite connection object.

        Raises:
            sqlite3.Error: If connection fails.
        """
        if self._connection is not None:
            return self._connection

        try:
            if self.create:
                create_schema(self.config.db_path)
            self._connection = open_store(self.config.db_path)
            logger.info(f"Connected to store: {self.config.db_path_str}")
            return self._connection
        except sqlite3.Error as e:
            logger.error(f"Failed to connect to store: {e}")
            raise

    def close(self) -> None:
        """Close store connection."""
        if self._connection:
            self._connection.close()
            self._connection = None
            logger.info("Store connection closed")

    @property
    def connection(self) -> sqlite3.Connection:
        """
        Get store connection.

        Raises:
            RuntimeError: If connection not established.
        """
        if self._connection is None:
            raise RuntimeError("Store connection not established. Call connect() first.")
        return self._connection
