"""Derived views over marts and inventory.

Every function here is pure: it reads a snapshot of marts and inventory and
recomputes its result from scratch, so repeated calls on an unchanged
snapshot return identical output.
"""

from collections.abc import Sequence

from .item_normalizer import normalize_item_name
from .models import MAX_PINNED_ITEMS, InventoryItem, Mart, PriceComparisonRecord, PriceEntry

UNKNOWN_MART_LABEL = "Unknown"


def resolve_mart_name(
    marts: Sequence[Mart],
    mart_id: int,
    unknown_label: str = UNKNOWN_MART_LABEL,
) -> str:
    """Look up a mart's name by id.

    Args:
        marts: Known marts
        mart_id: Mart id to resolve
        unknown_label: Name used when the mart no longer exists

    Returns:
        The mart name or the unknown label
    """
    for mart in marts:
        if mart.id == mart_id:
            return mart.name
    return unknown_label


def frequent_items(inventory: Sequence[InventoryItem]) -> list[InventoryItem]:
    """Get pinned items in inventory order, capped at the pin limit."""
    return [item for item in inventory if item.is_pinned][:MAX_PINNED_ITEMS]


def price_comparison(
    inventory: Sequence[InventoryItem],
    marts: Sequence[Mart],
    unknown_label: str = UNKNOWN_MART_LABEL,
) -> list[PriceComparisonRecord]:
    """Compare prices of same-named items across marts.

    Items are grouped by their normalized name. Groups with a single item
    are dropped. Each record keeps the display name of the first item in its
    group and lists every price cheapest first. Records come out in the order
    their group was first seen in the inventory.

    Args:
        inventory: Inventory snapshot
        marts: Mart snapshot used to resolve mart names
        unknown_label: Name used for items whose mart no longer exists

    Returns:
        List of PriceComparisonRecord
    """
    groups: dict[str, list[InventoryItem]] = {}
    for item in inventory:
        groups.setdefault(normalize_item_name(item.name), []).append(item)

    records = []
    for items in groups.values():
        if len(items) < 2:
            continue

        prices = [
            PriceEntry(
                mart_name=resolve_mart_name(marts, item.mart_id, unknown_label),
                price=item.price,
                date=item.date,
            )
            for item in items
        ]
        records.append(
            PriceComparisonRecord(
                name=items[0].name,
                prices=sorted(prices, key=lambda p: p.price),
            )
        )

    return records


def filter_inventory(
    inventory: Sequence[InventoryItem],
    mart_id: int | None = None,
    search: str = "",
) -> list[InventoryItem]:
    """Filter inventory by mart and a case-insensitive name search.

    Args:
        inventory: Inventory snapshot
        mart_id: Only keep items of this mart; None keeps every mart
        search: Substring the item name must contain

    Returns:
        Matching items in inventory order
    """
    term = search.lower()
    return [
        item
        for item in inventory
        if (mart_id is None or item.mart_id == mart_id) and term in item.name.lower()
    ]
