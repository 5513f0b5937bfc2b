"""Integration tests for full workflows."""

import pytest

from mart_tracker.data_store import DataStore
from mart_tracker.models import MAX_PINNED_ITEMS, InventoryItem, Mart
from mart_tracker.tracker import MartTracker, PinLimitError


class TestPinWorkflow:
    """Record, pin and hit the favorites cap."""

    def test_rice_to_pin_limit(self, data_store):
        data_store.save_marts([Mart(id=1, name="StoreA")])
        tracker = MartTracker(data_store=data_store)

        rice = tracker.add_inventory_item(1, "Rice", 5000, "1kg")
        assert len(tracker.inventory) == 1
        assert rice.is_pinned is False

        tracker.toggle_pin(rice.id)
        assert tracker.pinned_count == 1

        for n in range(MAX_PINNED_ITEMS - 1):
            item = tracker.add_inventory_item(1, f"Item {n}", 1000 + n)
            tracker.toggle_pin(item.id)
        assert tracker.pinned_count == MAX_PINNED_ITEMS

        extra = tracker.add_inventory_item(1, "Extra", 999)
        with pytest.raises(PinLimitError):
            tracker.toggle_pin(extra.id)

        assert tracker.pinned_count == MAX_PINNED_ITEMS
        assert len(tracker.frequent_items()) == MAX_PINNED_ITEMS

        reloaded = MartTracker(data_store=data_store)
        assert reloaded.pinned_count == MAX_PINNED_ITEMS


class TestComparisonWorkflow:
    """Same product recorded at two marts."""

    def test_milk_cheapest_first(self, data_store):
        data_store.save_marts([Mart(id=1, name="A"), Mart(id=2, name="B")])
        data_store.save_inventory(
            [
                InventoryItem(id=10, mart_id=1, name="Milk", price=2000),
                InventoryItem(id=11, mart_id=2, name="milk", price=1800),
            ]
        )
        tracker = MartTracker(data_store=data_store)

        records = tracker.price_comparison()

        assert len(records) == 1
        assert records[0].name == "Milk"
        assert [(p.mart_name, p.price) for p in records[0].prices] == [("B", 1800), ("A", 2000)]
        assert records[0].savings == 200

    def test_deleted_mart_shows_unknown(self, data_store):
        data_store.save_marts([Mart(id=1, name="A")])
        data_store.save_inventory(
            [
                InventoryItem(id=10, mart_id=1, name="Milk", price=2000),
                InventoryItem(id=11, mart_id=7, name="Milk", price=1800),
            ]
        )
        tracker = MartTracker(data_store=data_store)
        assert tracker.price_comparison()[0].prices[0].mart_name == "Unknown"


class TestAnalysisWorkflow:
    """Analyze an image, accept some proposals, compare."""

    @pytest.mark.asyncio
    async def test_accept_and_compare(self, tracker):
        tracker.add_inventory_item(1, "Milk", 2700, "1L")
        costco = tracker.add_mart("Costco")

        session = tracker.open_analysis_session()
        await tracker.request_image_analysis(b"image", "secret", session)

        milk = next(r for r in session.pending if r.name == "Milk")
        tracker.accept_analysis_result(milk, mart_id=costco.id, session=session)
        eggs = session.pending[0]
        session.discard(eggs)

        assert session.pending == []
        record = tracker.price_comparison()[0]
        assert record.best_price.mart_name == "Costco"
        assert record.best_price.price == 2500


class TestResetWorkflow:
    """Reset restores the first-run state."""

    def test_reset(self, kv_store):
        tracker = MartTracker(data_store=DataStore(kv_store))
        mart = tracker.add_mart("Costco")
        tracker.add_inventory_item(mart.id, "Milk", 2500)
        tracker.save_api_key("secret")

        tracker.reset_all_data()

        assert [(m.id, m.name) for m in tracker.marts] == [(1, "Naver Store")]
        assert tracker.inventory == []
        assert tracker.api_key is None

        reloaded = MartTracker(data_store=DataStore(kv_store))
        assert [m.name for m in reloaded.marts] == ["Naver Store"]
        assert reloaded.inventory == []
        assert reloaded.api_key is None
