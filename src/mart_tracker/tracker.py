"""Mart and price tracking operations.

MartTracker owns the marts and inventory for the lifetime of the process.
Every mutation is written back to the data store right after it is applied.
"""

import logging
import os
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date

from .aggregation import (
    UNKNOWN_MART_LABEL,
    filter_inventory,
    frequent_items,
    price_comparison,
    resolve_mart_name,
)
from .analysis_service import GeminiImageAnalyzer, ImageAnalyzer
from .data_store import DataStore
from .models import (
    MAX_PINNED_ITEMS,
    AnalysisResult,
    InventoryItem,
    Mart,
    PriceComparisonRecord,
    Theme,
)

logger = logging.getLogger(__name__)


class ItemNotFoundError(Exception):
    """Raised when an inventory item is not found."""

    def __init__(self, item_id: int):
        self.item_id = item_id
        super().__init__(f"Item with ID '{item_id}' not found")


class MartNotFoundError(Exception):
    """Raised when a mart is not found."""

    def __init__(self, mart_id: int | None):
        self.mart_id = mart_id
        if mart_id is None:
            super().__init__("No marts are registered")
        else:
            super().__init__(f"Mart with ID '{mart_id}' not found")


class PinLimitError(Exception):
    """Raised when pinning would exceed the favorites limit."""

    def __init__(self, limit: int = MAX_PINNED_ITEMS):
        self.limit = limit
        super().__init__(f"Only {limit} items can be pinned as favorites.")


class AnalysisFailedError(Exception):
    """Raised when image analysis fails for any reason."""

    MESSAGE = "Image analysis failed. Check that your API key is valid."

    def __init__(self):
        super().__init__(self.MESSAGE)


@dataclass
class AnalysisSession:
    """Proposals from one analysis request awaiting user review."""

    results: list[AnalysisResult] | None = None
    dismissed: bool = False

    @property
    def pending(self) -> list[AnalysisResult]:
        return list(self.results or [])

    def discard(self, result: AnalysisResult) -> None:
        """Drop a single proposal without adding it."""
        if self.results is not None:
            self.results = [r for r in self.results if r is not result]

    def dismiss(self) -> None:
        """Close the session; late results are discarded."""
        self.dismissed = True
        self.results = None


@dataclass
class IdGenerator:
    """Issues strictly increasing, time-seeded integer ids."""

    last_id: int = 0
    clock: Callable[[], int] = field(default=time.time_ns, repr=False)

    def __call__(self) -> int:
        now_ms = self.clock() // 1_000_000
        self.last_id = max(now_ms, self.last_id + 1)
        return self.last_id


class MartTracker:
    """Manages marts, price records, favorites and settings."""

    def __init__(
        self,
        data_store: DataStore | None = None,
        analyzer: ImageAnalyzer | None = None,
        unknown_mart_label: str = UNKNOWN_MART_LABEL,
        api_key_env: str = "GEMINI_API_KEY",
    ):
        """Initialize tracker and rehydrate state from the data store.

        Args:
            data_store: DataStore instance. Creates new one if not provided.
            analyzer: Image analyzer. Defaults to GeminiImageAnalyzer on first use.
            unknown_mart_label: Name shown for items whose mart is missing
            api_key_env: Environment variable consulted when no key is stored
        """
        self.data_store = data_store or DataStore()
        self.analyzer = analyzer
        self.unknown_mart_label = unknown_mart_label
        self.api_key_env = api_key_env

        self.marts: list[Mart] = self.data_store.load_marts()
        self.inventory: list[InventoryItem] = self.data_store.load_inventory()
        self.session: AnalysisSession | None = None

        known_ids = [m.id for m in self.marts] + [i.id for i in self.inventory]
        self._next_id = IdGenerator(last_id=max(known_ids, default=0))

    # --- Marts ---

    def add_mart(self, name: str) -> Mart | None:
        """Register a new mart.

        Args:
            name: Mart name; surrounding whitespace is trimmed

        Returns:
            The created Mart, or None if the name is blank
        """
        name = name.strip()
        if not name:
            logger.debug("Refusing to add a mart with a blank name")
            return None

        mart = Mart(id=self._next_id(), name=name)
        self.marts.append(mart)
        self.data_store.save_marts(self.marts)
        logger.info("Added mart %s (%d)", mart.name, mart.id)
        return mart

    def get_mart(self, mart_id: int) -> Mart | None:
        for mart in self.marts:
            if mart.id == mart_id:
                return mart
        return None

    def mart_name(self, mart_id: int) -> str:
        return resolve_mart_name(self.marts, mart_id, self.unknown_mart_label)

    # --- Inventory ---

    def add_inventory_item(
        self,
        mart_id: int,
        name: str,
        price: float,
        unit: str = "",
    ) -> InventoryItem | None:
        """Record a price for an item at a mart.

        Args:
            mart_id: Mart where the price was seen
            name: Item name; surrounding whitespace is trimmed
            price: Observed price
            unit: Free-text quantity unit

        Returns:
            The created InventoryItem, or None if the name is blank

        Raises:
            MartNotFoundError: If the mart does not exist
        """
        name = name.strip()
        if not name:
            logger.debug("Refusing to add an item with a blank name")
            return None

        if self.get_mart(mart_id) is None:
            raise MartNotFoundError(mart_id)

        item = InventoryItem(
            id=self._next_id(),
            mart_id=mart_id,
            name=name,
            price=price,
            unit=unit.strip(),
            is_pinned=False,
            date=date.today(),
        )

        self.inventory.insert(0, item)
        self.data_store.save_inventory(self.inventory)
        logger.info("Added %s at %s for %s", item.name, self.mart_name(mart_id), item.price)
        return item

    def accept_analysis_result(
        self,
        result: AnalysisResult,
        mart_id: int | None = None,
        session: AnalysisSession | None = None,
    ) -> InventoryItem | None:
        """Turn an analysis proposal into an inventory item.

        Args:
            result: Proposal to accept
            mart_id: Target mart; defaults to the first known mart
            session: Session the proposal came from, if any

        Returns:
            The created InventoryItem, or None if the proposal has a blank name

        Raises:
            MartNotFoundError: If the target mart does not exist
        """
        if mart_id is None:
            if not self.marts:
                raise MartNotFoundError(None)
            mart_id = self.marts[0].id

        item = self.add_inventory_item(mart_id, result.name, result.price, result.unit)
        if session is not None:
            session.discard(result)
        return item

    def accept_all_results(
        self, session: AnalysisSession, mart_id: int | None = None
    ) -> list[InventoryItem]:
        """Accept every pending proposal of a session, in order.

        Raises:
            MartNotFoundError: If the target mart does not exist
        """
        accepted = []
        for result in session.pending:
            item = self.accept_analysis_result(result, mart_id, session)
            if item is not None:
                accepted.append(item)
        logger.info("Accepted %d analysis results", len(accepted))
        return accepted

    def get_item(self, item_id: int) -> InventoryItem | None:
        for item in self.inventory:
            if item.id == item_id:
                return item
        return None

    def remove_inventory_item(self, item_id: int) -> InventoryItem | None:
        """Remove an item from inventory.

        Args:
            item_id: ID of item to remove

        Returns:
            The removed item, or None if it was not present
        """
        for i, item in enumerate(self.inventory):
            if item.id == item_id:
                removed = self.inventory.pop(i)
                self.data_store.save_inventory(self.inventory)
                logger.info("Removed %s (%d)", removed.name, removed.id)
                return removed
        return None

    @property
    def pinned_count(self) -> int:
        return sum(1 for item in self.inventory if item.is_pinned)

    def toggle_pin(self, item_id: int) -> InventoryItem:
        """Flip an item's favorite status.

        Args:
            item_id: ID of item to pin or unpin

        Returns:
            The updated item

        Raises:
            ItemNotFoundError: If item not found
            PinLimitError: If pinning would exceed the favorites limit
        """
        item = self.get_item(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)

        if not item.is_pinned and self.pinned_count >= MAX_PINNED_ITEMS:
            raise PinLimitError()

        item.is_pinned = not item.is_pinned
        self.data_store.save_inventory(self.inventory)
        return item

    # --- Derived views ---

    def frequent_items(self) -> list[InventoryItem]:
        return frequent_items(self.inventory)

    def price_comparison(self) -> list[PriceComparisonRecord]:
        return price_comparison(self.inventory, self.marts, self.unknown_mart_label)

    def search(self, mart_id: int | None = None, term: str = "") -> list[InventoryItem]:
        return filter_inventory(self.inventory, mart_id=mart_id, search=term)

    # --- Image analysis ---

    def resolve_credential(self, credential: str | None = None) -> str | None:
        """Pick the API key: explicit, then stored, then environment."""
        if credential and credential.strip():
            return credential.strip()
        return self.api_key or os.environ.get(self.api_key_env) or None

    def open_analysis_session(self) -> AnalysisSession:
        """Start a new analysis session, dismissing any previous one."""
        if self.session is not None:
            self.session.dismiss()
        self.session = AnalysisSession()
        return self.session

    async def request_image_analysis(
        self,
        image_bytes: bytes,
        credential: str | None = None,
        session: AnalysisSession | None = None,
    ) -> list[AnalysisResult]:
        """Ask the image analyzer for product proposals.

        The request is made once. If the session is dismissed while the request
        is in flight, the eventual result is dropped and an empty list returned.

        Args:
            image_bytes: Raw image contents
            credential: API key; falls back to the stored key and environment
            session: Session that should receive the results

        Returns:
            List of AnalysisResult

        Raises:
            AnalysisFailedError: If the analysis fails for any reason
        """
        key = self.resolve_credential(credential)
        if not key:
            logger.warning("Image analysis requested without an API key")
            raise AnalysisFailedError()
        if not image_bytes:
            logger.warning("Image analysis requested with an empty image")
            raise AnalysisFailedError()

        if self.analyzer is None:
            self.analyzer = GeminiImageAnalyzer()

        try:
            results = await self.analyzer.analyze(image_bytes, key)
        except Exception as e:
            logger.warning("Image analysis failed: %s", e)
            logger.debug("Image analysis failure details", exc_info=True)
            raise AnalysisFailedError() from e

        if session is not None:
            if session.dismissed:
                logger.debug("Discarding %d results for a dismissed session", len(results))
                return []
            session.results = list(results)

        return list(results)

    # --- Settings ---

    @property
    def theme(self) -> Theme:
        return self.data_store.load_theme()

    def set_theme(self, theme: Theme) -> Theme:
        self.data_store.save_theme(theme)
        return theme

    def toggle_theme(self) -> Theme:
        return self.set_theme(self.theme.toggled())

    @property
    def api_key(self) -> str | None:
        return self.data_store.load_api_key()

    def save_api_key(self, api_key: str) -> bool:
        """Store an API key.

        Args:
            api_key: Key to store; surrounding whitespace is trimmed

        Returns:
            True if stored, False if the key was blank
        """
        api_key = api_key.strip()
        if not api_key:
            return False
        self.data_store.save_api_key(api_key)
        logger.info("Stored API key")
        return True

    def clear_api_key(self) -> None:
        self.data_store.remove_api_key()
        logger.info("Removed stored API key")

    def reset_all_data(self) -> None:
        """Erase everything and restore the first-run state.

        Marts go back to the single default mart, inventory is emptied, and the
        stored API key and theme are removed.
        """
        if self.session is not None:
            self.session.dismiss()
            self.session = None

        self.data_store.clear()
        self.marts = self.data_store.default_marts()
        self.inventory = []
        self.data_store.save_marts(self.marts)
        self.data_store.save_inventory(self.inventory)
        logger.info("All data was reset")
