"""Migration from the JSON file store to SQLite.

Every stored entry is copied verbatim, so the migration is independent of the
shape of the data. It refuses to overwrite a database that already holds
entries unless forced.
"""

import logging
from pathlib import Path

from .data_store import JSONFileStore
from .sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)


class MigrationError(Exception):
    """Raised when migration encounters an error."""
    pass


class JSONToSQLiteMigrator:
    """Migrates entries from the JSON file store to a SQLite database."""

    def __init__(
        self,
        json_data_dir: Path | None = None,
        sqlite_db_path: Path | None = None,
    ):
        """Initialize migrator.

        Args:
            json_data_dir: Directory containing the JSON storage file.
                          Defaults to ./data
            sqlite_db_path: Path to SQLite database file.
                           Defaults to <json_data_dir>/mart.db
        """
        self.json_data_dir = json_data_dir or Path.cwd() / "data"
        self.sqlite_db_path = sqlite_db_path or (self.json_data_dir / "mart.db")

        self.json_store = JSONFileStore(data_dir=self.json_data_dir)
        self.sqlite_store = SQLiteStore(db_path=self.sqlite_db_path)

    def check_json_data_exists(self) -> bool:
        """Check if there is JSON data to migrate."""
        return bool(self.json_store.keys())

    def check_sqlite_has_data(self) -> bool:
        """Check if SQLite database already has data."""
        return bool(self.sqlite_store.keys())

    def verify_migration(self) -> bool:
        """Check that every JSON entry exists unchanged in SQLite."""
        for key in self.json_store.keys():
            if self.sqlite_store.get(key) != self.json_store.get(key):
                logger.error("Entry '%s' differs after migration", key)
                return False
        return True

    def run_migration(self, force: bool = False) -> dict[str, int]:
        """Run the migration.

        Args:
            force: If True, overwrite existing SQLite data

        Returns:
            Migration statistics

        Raises:
            MigrationError: If there is nothing to migrate, the target already
                has data and force is False, the target schema is newer than
                supported, or verification fails
        """
        if not self.check_json_data_exists():
            raise MigrationError(f"No JSON data found in {self.json_data_dir}")

        schema_version = self.sqlite_store.get_schema_version()
        if schema_version > SQLiteStore.SCHEMA_VERSION:
            raise MigrationError(
                f"SQLite database {self.sqlite_db_path} uses schema version "
                f"{schema_version}, newer than supported ({SQLiteStore.SCHEMA_VERSION})"
            )

        if self.check_sqlite_has_data():
            if not force:
                raise MigrationError(
                    f"SQLite database {self.sqlite_db_path} already has data. "
                    "Use force=True to overwrite."
                )
            logger.warning("Overwriting existing data in %s", self.sqlite_db_path)
            self.sqlite_store.clear()

        keys = self.json_store.keys()
        for key in keys:
            value = self.json_store.get(key)
            if value is not None:
                self.sqlite_store.set(key, value)

        if not self.verify_migration():
            raise MigrationError("Verification failed after migration")

        logger.info("Migrated %d entries to %s", len(keys), self.sqlite_db_path)
        return {"entries": len(keys), "schema_version": schema_version}


def migrate(
    data_dir: Path | None = None,
    db_path: Path | None = None,
    force: bool = False,
) -> dict[str, int]:
    """Convenience function to run migration.

    Args:
        data_dir: Directory containing the JSON storage file
        db_path: Path to SQLite database file
        force: If True, overwrite existing SQLite data

    Returns:
        Migration statistics
    """
    migrator = JSONToSQLiteMigrator(
        json_data_dir=data_dir,
        sqlite_db_path=db_path,
    )
    return migrator.run_migration(force=force)
