"""Tests for MartTracker."""

import logging

import pytest

from conftest import FakeAnalyzer
from mart_tracker.analysis_service import AnalysisError
from mart_tracker.data_store import DataStore
from mart_tracker.models import MAX_PINNED_ITEMS, AnalysisResult, Theme
from mart_tracker.tracker import (
    AnalysisFailedError,
    AnalysisSession,
    IdGenerator,
    ItemNotFoundError,
    MartNotFoundError,
    MartTracker,
    PinLimitError,
)


class TestStartup:
    """Tests for first run and rehydration."""

    def test_first_run_has_default_mart(self, tracker):
        assert [(m.id, m.name) for m in tracker.marts] == [(1, "Naver Store")]
        assert tracker.inventory == []

    def test_state_survives_restart(self, tracker, data_store):
        mart = tracker.add_mart("Costco")
        tracker.add_inventory_item(mart.id, "Milk", 2500, "1L")

        reloaded = MartTracker(data_store=data_store)
        assert [m.name for m in reloaded.marts] == ["Naver Store", "Costco"]
        assert reloaded.inventory[0].name == "Milk"
        assert reloaded.inventory[0].unit == "1L"

    def test_ids_continue_after_restart(self, tracker, data_store):
        item = tracker.add_inventory_item(1, "Milk", 2500)
        reloaded = MartTracker(data_store=data_store)
        assert reloaded.add_inventory_item(1, "Eggs", 6900).id > item.id


class TestMarts:
    """Tests for mart registration."""

    def test_add_mart(self, tracker):
        mart = tracker.add_mart("  E-Mart  ")
        assert mart.name == "E-Mart"
        assert tracker.marts[-1] == mart

    def test_blank_name_ignored(self, tracker):
        assert tracker.add_mart("   ") is None
        assert len(tracker.marts) == 1

    def test_mart_name_for_missing_mart(self, tracker):
        assert tracker.mart_name(12345) == "Unknown"

    def test_custom_unknown_label(self, data_store):
        manager = MartTracker(data_store=data_store, unknown_mart_label="알 수 없음")
        assert manager.mart_name(12345) == "알 수 없음"


class TestInventory:
    """Tests for price records."""

    def test_add_item(self, tracker):
        item = tracker.add_inventory_item(1, " Rice ", 5000, "1kg")
        assert item.name == "Rice"
        assert item.is_pinned is False
        assert tracker.inventory == [item]

    def test_new_items_first(self, tracker):
        first = tracker.add_inventory_item(1, "Milk", 2500)
        second = tracker.add_inventory_item(1, "Eggs", 6900)
        assert tracker.inventory == [second, first]

    def test_blank_name_ignored(self, tracker):
        assert tracker.add_inventory_item(1, "  ", 1000) is None
        assert tracker.inventory == []

    def test_unknown_mart_rejected(self, tracker):
        with pytest.raises(MartNotFoundError):
            tracker.add_inventory_item(999, "Milk", 2500)

    def test_negative_price_rejected(self, tracker):
        with pytest.raises(ValueError):
            tracker.add_inventory_item(1, "Milk", -5)

    def test_remove_item(self, tracker):
        item = tracker.add_inventory_item(1, "Milk", 2500)
        assert tracker.remove_inventory_item(item.id) == item
        assert tracker.inventory == []

    def test_remove_missing_item(self, tracker):
        assert tracker.remove_inventory_item(42) is None

    def test_ids_unique_in_tight_loop(self, memory_tracker):
        ids = [memory_tracker.add_inventory_item(1, f"Item {n}", n).id for n in range(1000)]
        assert len(set(ids)) == 1000

    def test_search(self, tracker):
        costco = tracker.add_mart("Costco")
        tracker.add_inventory_item(1, "Milk", 2500)
        tracker.add_inventory_item(costco.id, "Whole Milk", 2300)
        tracker.add_inventory_item(costco.id, "Eggs", 6900)

        assert [i.name for i in tracker.search(mart_id=costco.id, term="milk")] == ["Whole Milk"]
        assert len(tracker.search(term="MILK")) == 2


class TestPinning:
    """Tests for favorites and the pin cap."""

    def test_toggle_pin(self, tracker):
        item = tracker.add_inventory_item(1, "Rice", 5000)
        assert tracker.toggle_pin(item.id).is_pinned is True
        assert tracker.pinned_count == 1
        assert tracker.toggle_pin(item.id).is_pinned is False
        assert tracker.pinned_count == 0

    def test_toggle_missing_item(self, tracker):
        with pytest.raises(ItemNotFoundError):
            tracker.toggle_pin(42)

    def test_cap_leaves_pins_unchanged(self, tracker):
        items = [tracker.add_inventory_item(1, f"Item {n}", 100) for n in range(MAX_PINNED_ITEMS + 1)]
        for item in items[:MAX_PINNED_ITEMS]:
            tracker.toggle_pin(item.id)

        pinned_before = {i.id for i in tracker.inventory if i.is_pinned}
        with pytest.raises(PinLimitError, match="Only 20 items can be pinned"):
            tracker.toggle_pin(items[-1].id)

        assert {i.id for i in tracker.inventory if i.is_pinned} == pinned_before
        assert items[-1].is_pinned is False

    def test_unpin_allowed_at_cap(self, tracker):
        items = [tracker.add_inventory_item(1, f"Item {n}", 100) for n in range(MAX_PINNED_ITEMS)]
        for item in items:
            tracker.toggle_pin(item.id)
        assert tracker.toggle_pin(items[0].id).is_pinned is False

    def test_pin_persisted(self, tracker, data_store):
        item = tracker.add_inventory_item(1, "Rice", 5000)
        tracker.toggle_pin(item.id)
        assert data_store.load_inventory()[0].is_pinned is True

    def test_frequent_items(self, tracker):
        milk = tracker.add_inventory_item(1, "Milk", 2500)
        tracker.add_inventory_item(1, "Eggs", 6900)
        tracker.toggle_pin(milk.id)
        assert [i.name for i in tracker.frequent_items()] == ["Milk"]


class TestIdGenerator:
    """Tests for id issuing."""

    def test_uses_clock_when_ahead(self):
        generator = IdGenerator(last_id=5, clock=lambda: 10_000_000_000)
        assert generator() == 10_000

    def test_increments_within_same_tick(self):
        generator = IdGenerator(clock=lambda: 10_000_000_000)
        assert [generator() for _ in range(3)] == [10_000, 10_001, 10_002]

    def test_never_goes_backwards(self):
        generator = IdGenerator(last_id=50_000, clock=lambda: 10_000_000_000)
        assert generator() == 50_001


class TestAnalysisSession:
    """Tests for the proposal session."""

    def test_discard(self, analysis_results):
        session = AnalysisSession(results=list(analysis_results))
        session.discard(analysis_results[0])
        assert session.pending == [analysis_results[1]]

    def test_dismiss(self, analysis_results):
        session = AnalysisSession(results=list(analysis_results))
        session.dismiss()
        assert session.dismissed is True
        assert session.pending == []


class TestImageAnalysis:
    """Tests for the image analysis flow."""

    @pytest.mark.asyncio
    async def test_results_populate_session(self, tracker, fake_analyzer, analysis_results):
        session = tracker.open_analysis_session()
        results = await tracker.request_image_analysis(b"image", "secret", session)

        assert results == analysis_results
        assert session.pending == analysis_results
        assert fake_analyzer.calls == [(b"image", "secret")]

    @pytest.mark.asyncio
    async def test_stored_key_used(self, tracker, fake_analyzer):
        tracker.save_api_key("stored-key")
        await tracker.request_image_analysis(b"image")
        assert fake_analyzer.calls[0][1] == "stored-key"

    @pytest.mark.asyncio
    async def test_environment_key_used(self, tracker, fake_analyzer, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "env-key")
        await tracker.request_image_analysis(b"image")
        assert fake_analyzer.calls[0][1] == "env-key"

    @pytest.mark.asyncio
    async def test_missing_key_fails(self, tracker, fake_analyzer):
        with pytest.raises(AnalysisFailedError):
            await tracker.request_image_analysis(b"image")
        assert fake_analyzer.calls == []

    @pytest.mark.asyncio
    async def test_empty_image_fails(self, tracker):
        with pytest.raises(AnalysisFailedError):
            await tracker.request_image_analysis(b"", "secret")

    @pytest.mark.asyncio
    async def test_analyzer_error_surfaces_generic_failure(
        self, data_store, failing_analyzer, caplog
    ):
        manager = MartTracker(data_store=data_store, analyzer=failing_analyzer)

        with caplog.at_level(logging.WARNING, logger="mart_tracker"):
            with pytest.raises(AnalysisFailedError) as exc_info:
                await manager.request_image_analysis(b"image", "secret")

        assert str(exc_info.value) == AnalysisFailedError.MESSAGE
        assert isinstance(exc_info.value.__cause__, AnalysisError)
        assert "quota exceeded" in caplog.text

    @pytest.mark.asyncio
    async def test_unexpected_error_surfaces_generic_failure(self, data_store):
        manager = MartTracker(
            data_store=data_store, analyzer=FakeAnalyzer(error=RuntimeError("network down"))
        )
        with pytest.raises(AnalysisFailedError):
            await manager.request_image_analysis(b"image", "secret")

    @pytest.mark.asyncio
    async def test_late_result_for_dismissed_session_discarded(self, tracker):
        session = tracker.open_analysis_session()
        session.dismiss()

        results = await tracker.request_image_analysis(b"image", "secret", session)

        assert results == []
        assert session.pending == []

    def test_new_session_dismisses_previous(self, tracker):
        first = tracker.open_analysis_session()
        second = tracker.open_analysis_session()
        assert first.dismissed is True
        assert second.dismissed is False

    @pytest.mark.asyncio
    async def test_accept_results(self, tracker, analysis_results):
        session = tracker.open_analysis_session()
        await tracker.request_image_analysis(b"image", "secret", session)

        items = [tracker.accept_analysis_result(r, session=session) for r in session.pending]

        assert session.pending == []
        assert [i.name for i in tracker.inventory] == ["Eggs", "Milk"]
        assert all(i.mart_id == 1 for i in items)
        assert len({i.id for i in items}) == 2

    def test_accept_into_chosen_mart(self, tracker):
        costco = tracker.add_mart("Costco")
        item = tracker.accept_analysis_result(
            AnalysisResult(name="Tofu", price=1500, unit="300g"), mart_id=costco.id
        )
        assert item.mart_id == costco.id
        assert item.unit == "300g"

    def test_accept_without_marts(self, data_store):
        manager = MartTracker(data_store=data_store)
        manager.marts = []
        with pytest.raises(MartNotFoundError):
            manager.accept_analysis_result(AnalysisResult(name="Tofu", price=1500, unit="300g"))

    def test_accept_all_results(self, tracker, analysis_results):
        costco = tracker.add_mart("Costco")
        session = AnalysisSession(results=list(analysis_results))

        items = tracker.accept_all_results(session, mart_id=costco.id)

        assert [i.name for i in items] == ["Milk", "Eggs"]
        assert all(i.mart_id == costco.id for i in items)
        assert session.pending == []
        assert [i.name for i in tracker.inventory[:2]] == ["Eggs", "Milk"]

    def test_accept_all_unknown_mart(self, tracker, analysis_results):
        session = AnalysisSession(results=list(analysis_results))
        with pytest.raises(MartNotFoundError):
            tracker.accept_all_results(session, mart_id=424242)
        assert len(session.pending) == 2
        assert tracker.inventory == []


class TestSettings:
    """Tests for theme, API key and reset."""

    def test_theme_defaults_to_dark(self, tracker):
        assert tracker.theme is Theme.DARK

    def test_toggle_theme(self, tracker):
        assert tracker.toggle_theme() is Theme.LIGHT
        assert tracker.theme is Theme.LIGHT
        assert tracker.toggle_theme() is Theme.DARK

    def test_api_key(self, tracker):
        assert tracker.api_key is None
        assert tracker.save_api_key("  key-123 ") is True
        assert tracker.api_key == "key-123"
        tracker.clear_api_key()
        assert tracker.api_key is None

    def test_blank_api_key_not_saved(self, tracker):
        assert tracker.save_api_key("   ") is False
        assert tracker.api_key is None

    def test_resolve_credential_precedence(self, tracker, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "env-key")
        assert tracker.resolve_credential() == "env-key"
        tracker.save_api_key("stored-key")
        assert tracker.resolve_credential() == "stored-key"
        assert tracker.resolve_credential("explicit") == "explicit"

    def test_reset_all_data(self, tracker, data_store):
        costco = tracker.add_mart("Costco")
        item = tracker.add_inventory_item(costco.id, "Milk", 2500)
        tracker.toggle_pin(item.id)
        tracker.save_api_key("secret")
        tracker.set_theme(Theme.LIGHT)
        session = tracker.open_analysis_session()

        tracker.reset_all_data()

        assert [(m.id, m.name) for m in tracker.marts] == [(1, "Naver Store")]
        assert tracker.inventory == []
        assert tracker.api_key is None
        assert tracker.theme is Theme.DARK
        assert session.dismissed is True

        reloaded = MartTracker(data_store=data_store)
        assert [m.name for m in reloaded.marts] == ["Naver Store"]
        assert reloaded.inventory == []

    def test_reset_uses_configured_default_mart(self, kv_store):
        manager = MartTracker(data_store=DataStore(kv_store, default_mart_name="네이버스토어"))
        manager.add_mart("Costco")
        manager.reset_all_data()
        assert [m.name for m in manager.marts] == ["네이버스토어"]
