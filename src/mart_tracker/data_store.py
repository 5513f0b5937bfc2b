"""Data persistence for Mart Tracker.

State lives in a small key-value store with string values, the way a browser
keeps it in local storage. Two backends are provided: a JSON file (default)
and SQLite. Use create_key_value_store() to get the configured backend and
wrap it in DataStore for typed access to marts, inventory and settings.
"""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from .models import InventoryItem, Mart, Theme

logger = logging.getLogger(__name__)

THEME_KEY = "mm_theme"
MARTS_KEY = "mm_local_marts"
INVENTORY_KEY = "mm_local_inventory"
API_KEY_KEY = "mm_api_key"

DEFAULT_MART_ID = 1
DEFAULT_MART_NAME = "Naver Store"


class BackendType(str, Enum):
    """Data storage backend types."""

    JSON = "json"
    SQLITE = "sqlite"


class DataStoreError(Exception):
    """Raised when a stored entry cannot be decoded."""

    def __init__(self, key: str, reason: str):
        self.key = key
        super().__init__(f"Stored entry '{key}' is corrupt: {reason}")


class KeyValueStore(Protocol):
    """Protocol defining the key-value store interface."""

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def remove(self, key: str) -> None: ...
    def clear(self) -> None: ...
    def keys(self) -> list[str]: ...


class JSONFileStore:
    """Key-value store persisted as a single JSON object file."""

    FILENAME = "local_storage.json"

    def __init__(self, data_dir: Path | None = None):
        """Initialize JSON file store.

        Args:
            data_dir: Directory for the storage file. Defaults to ./data
        """
        self.data_dir = data_dir or Path.cwd() / "data"
        self._ensure_directories()

    def _ensure_directories(self) -> None:
        """Create the data directory if it doesn't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        """Path to the storage file."""
        return self.data_dir / self.FILENAME

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DataStoreError(str(self.path), str(e)) from e

        if not isinstance(data, dict):
            raise DataStoreError(str(self.path), "expected a JSON object")

        return {str(key): str(value) for key, value in data.items()}

    def _save(self, data: dict[str, str]) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)

    def clear(self) -> None:
        self._save({})

    def keys(self) -> list[str]:
        return list(self._load())


class DataStore:
    """Typed access to marts, inventory and settings in a key-value store."""

    def __init__(
        self,
        backend: KeyValueStore | None = None,
        default_mart_name: str = DEFAULT_MART_NAME,
    ):
        """Initialize data store.

        Args:
            backend: Key-value backend. Defaults to a JSONFileStore in ./data
            default_mart_name: Name of the mart created on first run and reset
        """
        self.backend = backend if backend is not None else JSONFileStore()
        self.default_mart_name = default_mart_name

    def default_marts(self) -> list[Mart]:
        """Marts present on first run and after a reset."""
        return [Mart(id=DEFAULT_MART_ID, name=self.default_mart_name)]

    def _load_json(self, key: str) -> list | None:
        raw = self.backend.get(key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise DataStoreError(key, str(e)) from e
        if not isinstance(data, list):
            raise DataStoreError(key, "expected a JSON array")
        return data

    # --- Mart Operations ---

    def load_marts(self) -> list[Mart]:
        """Load marts.

        Returns:
            List of Mart, the default mart if nothing is stored yet
        """
        data = self._load_json(MARTS_KEY)
        if data is None:
            return self.default_marts()

        try:
            return [Mart(**mart) for mart in data]
        except (TypeError, ValidationError) as e:
            raise DataStoreError(MARTS_KEY, str(e)) from e

    def save_marts(self, marts: list[Mart]) -> None:
        """Save marts.

        Args:
            marts: List of Mart to save
        """
        self.backend.set(
            MARTS_KEY,
            json.dumps([m.model_dump(mode="json") for m in marts], ensure_ascii=False),
        )
        logger.debug("Saved %d marts", len(marts))

    # --- Inventory Operations ---

    def load_inventory(self) -> list[InventoryItem]:
        """Load inventory items.

        Returns:
            List of InventoryItem
        """
        data = self._load_json(INVENTORY_KEY)
        if data is None:
            return []

        try:
            return [InventoryItem(**item) for item in data]
        except (TypeError, ValidationError) as e:
            raise DataStoreError(INVENTORY_KEY, str(e)) from e

    def save_inventory(self, items: list[InventoryItem]) -> None:
        """Save inventory items.

        Args:
            items: List of InventoryItem to save
        """
        self.backend.set(
            INVENTORY_KEY,
            json.dumps([i.model_dump(mode="json") for i in items], ensure_ascii=False),
        )
        logger.debug("Saved %d inventory items", len(items))

    # --- Settings Operations ---

    def load_theme(self) -> Theme:
        """Load theme preference, dark when unset or unrecognized."""
        raw = self.backend.get(THEME_KEY)
        if raw == Theme.LIGHT.value:
            return Theme.LIGHT
        return Theme.DARK

    def save_theme(self, theme: Theme) -> None:
        self.backend.set(THEME_KEY, theme.value)

    def load_api_key(self) -> str | None:
        return self.backend.get(API_KEY_KEY) or None

    def save_api_key(self, api_key: str) -> None:
        self.backend.set(API_KEY_KEY, api_key)

    def remove_api_key(self) -> None:
        self.backend.remove(API_KEY_KEY)

    def clear(self) -> None:
        """Remove every stored entry."""
        self.backend.clear()
        logger.info("Cleared all stored data")


def create_key_value_store(
    backend: BackendType = BackendType.JSON,
    data_dir: Path | None = None,
    db_path: Path | None = None,
) -> KeyValueStore:
    """Create a key-value store with the specified backend.

    Args:
        backend: Which backend to use (json or sqlite)
        data_dir: Directory for data files (used by JSON backend, also used
                  as base path for SQLite if db_path not specified)
        db_path: Path to SQLite database file (only used by SQLite backend)

    Returns:
        A JSONFileStore or SQLiteStore instance

    Example:
        # Use JSON backend (default)
        store = DataStore(create_key_value_store())

        # Use SQLite with custom path
        store = DataStore(
            create_key_value_store(BackendType.SQLITE, db_path=Path("./my_data/mart.db"))
        )
    """
    if backend == BackendType.SQLITE:
        from .sqlite_store import SQLiteStore

        if db_path is None and data_dir is not None:
            db_path = data_dir / "mart.db"

        return SQLiteStore(db_path=db_path)
    else:
        return JSONFileStore(data_dir=data_dir)
