"""Terminal UI for Mart Tracker."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import (
    Button,
    DataTable,
    Footer,
    Header,
    Input,
    Label,
    Static,
    TabbedContent,
    TabPane,
)

from .config import ConfigManager
from .models import InventoryItem, Theme
from .tracker import (
    AnalysisFailedError,
    AnalysisSession,
    ItemNotFoundError,
    MartNotFoundError,
    MartTracker,
    PinLimitError,
)


class ConfirmScreen(ModalScreen[bool]):
    """Yes/no confirmation for destructive actions."""

    DEFAULT_CSS = """
    ConfirmScreen {
        align: center middle;
    }

    #confirm-dialog {
        width: 60;
        height: auto;
        padding: 1 2;
        border: round $error;
        background: $surface;
    }

    #confirm-actions {
        align-horizontal: right;
        height: auto;
        margin-top: 1;
    }
    """

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, message: str):
        super().__init__()
        self.message = message

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-dialog"):
            yield Label(self.message)
            with Horizontal(id="confirm-actions"):
                yield Button("Cancel", id="cancel")
                yield Button("Confirm", id="confirm", variant="error")

    def action_cancel(self) -> None:
        self.dismiss(False)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "confirm")


class MartFormScreen(ModalScreen[str | None]):
    """Modal dialog to register a mart."""

    DEFAULT_CSS = """
    MartFormScreen {
        align: center middle;
    }

    #mart-form-dialog {
        width: 60;
        height: auto;
        padding: 1 2;
        border: round $primary;
        background: $surface;
    }

    #mart-form-actions {
        align-horizontal: right;
        height: auto;
        margin-top: 1;
    }
    """

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def compose(self) -> ComposeResult:
        with Vertical(id="mart-form-dialog"):
            yield Label("Register Mart")
            yield Input(placeholder="e.g. E-Mart, Costco", id="name")
            with Horizontal(id="mart-form-actions"):
                yield Button("Cancel", id="cancel")
                yield Button("Add", id="submit", variant="primary")

    def action_cancel(self) -> None:
        self.dismiss(None)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._submit()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "cancel":
            self.dismiss(None)
        elif event.button.id == "submit":
            self._submit()

    def _submit(self) -> None:
        name = self.query_one("#name", Input).value.strip()
        if not name:
            return
        self.dismiss(name)


class ItemFormScreen(ModalScreen[dict[str, Any] | None]):
    """Modal dialog to record an item price."""

    DEFAULT_CSS = """
    ItemFormScreen {
        align: center middle;
    }

    #item-form-dialog {
        width: 70;
        height: auto;
        padding: 1 2;
        border: round $primary;
        background: $surface;
    }

    #item-form-actions {
        align-horizontal: right;
        height: auto;
        margin-top: 1;
    }

    .field-label {
        margin-top: 1;
    }

    #item-form-error {
        color: $error;
    }
    """

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, default_mart_id: int | None):
        super().__init__()
        self.default_mart_id = default_mart_id

    def compose(self) -> ComposeResult:
        mart_value = "" if self.default_mart_id is None else str(self.default_mart_id)
        with Vertical(id="item-form-dialog"):
            yield Label("Record Price")
            yield Label("Name", classes="field-label")
            yield Input(placeholder="Milk", id="name")
            yield Label("Price", classes="field-label")
            yield Input(placeholder="2500", id="price")
            yield Label("Unit (optional)", classes="field-label")
            yield Input(placeholder="1L", id="unit")
            yield Label("Mart ID", classes="field-label")
            yield Input(value=mart_value, id="mart")
            yield Static("", id="item-form-error")
            with Horizontal(id="item-form-actions"):
                yield Button("Cancel", id="cancel")
                yield Button("Add", id="submit", variant="primary")

    def action_cancel(self) -> None:
        self.dismiss(None)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "cancel":
            self.dismiss(None)
            return

        if event.button.id != "submit":
            return

        name = self.query_one("#name", Input).value.strip()
        price_raw = self.query_one("#price", Input).value.strip()
        unit = self.query_one("#unit", Input).value.strip()
        mart_raw = self.query_one("#mart", Input).value.strip()

        if not name:
            self._error("Name is required")
            return

        try:
            price = float(price_raw)
            mart_id = int(mart_raw)
        except ValueError:
            self._error("Price must be a number and Mart ID an integer")
            return

        self.dismiss({"name": name, "price": price, "unit": unit, "mart_id": mart_id})

    def _error(self, message: str) -> None:
        self.query_one("#item-form-error", Static).update(message)


class AnalysisScreen(ModalScreen[int]):
    """Recognize products in an image and review them one by one."""

    DEFAULT_CSS = """
    AnalysisScreen {
        align: center middle;
    }

    #analysis-dialog {
        width: 90;
        height: 80%;
        padding: 1 2;
        border: round $primary;
        background: $surface;
    }

    #analysis-results {
        height: 1fr;
    }

    #analysis-actions {
        align-horizontal: right;
        height: auto;
        margin-top: 1;
    }
    """

    BINDINGS = [Binding("escape", "close", "Close")]

    def __init__(self, tracker: MartTracker, mart_id: int | None, format_price):
        super().__init__()
        self.tracker = tracker
        self.mart_id = mart_id
        self.format_price = format_price
        self.session: AnalysisSession | None = None
        self.accepted = 0

    def compose(self) -> ComposeResult:
        with Vertical(id="analysis-dialog"):
            yield Label("AI Smart Recognition")
            yield Input(placeholder="Path to a photo or screenshot", id="path")
            yield Button("Analyze", id="analyze", variant="primary")
            yield DataTable(id="analysis-results")
            yield Static("", id="analysis-status")
            with Horizontal(id="analysis-actions"):
                yield Button("Discard", id="discard")
                yield Button("Add Selected", id="accept", variant="success")
                yield Button("Add All", id="accept-all", variant="success")
                yield Button("Close", id="close")

    def on_mount(self) -> None:
        table = self.query_one("#analysis-results", DataTable)
        table.cursor_type = "row"
        table.add_columns("Item", "Price", "Unit")

    def action_close(self) -> None:
        if self.session is not None:
            self.session.dismiss()
        self.dismiss(self.accepted)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "close":
            self.action_close()
        elif event.button.id == "analyze":
            self._start_analysis()
        elif event.button.id == "accept":
            self._accept_selected()
        elif event.button.id == "accept-all":
            self._accept_all()
        elif event.button.id == "discard":
            self._discard_selected()

    def _start_analysis(self) -> None:
        path = Path(self.query_one("#path", Input).value.strip()).expanduser()
        try:
            image_bytes = path.read_bytes()
        except OSError as exc:
            self._set_status(f"Cannot read image: {exc}")
            return

        self.session = self.tracker.open_analysis_session()
        self._set_status("Analyzing...")
        self.run_worker(self._analyze(image_bytes, self.session), exclusive=True)

    async def _analyze(self, image_bytes: bytes, session: AnalysisSession) -> None:
        try:
            results = await self.tracker.request_image_analysis(image_bytes, session=session)
        except AnalysisFailedError as exc:
            self._set_status(str(exc))
            return

        if session.dismissed:
            return
        self._refresh_results()
        self._set_status(f"Recognized {len(results)} products")

    def _selected(self):
        if self.session is None:
            return None
        pending = self.session.pending
        row = self.query_one("#analysis-results", DataTable).cursor_row
        if row is None or row < 0 or row >= len(pending):
            return None
        return pending[row]

    def _accept_selected(self) -> None:
        result = self._selected()
        if result is None:
            self._set_status("No product selected")
            return

        try:
            item = self.tracker.accept_analysis_result(result, self.mart_id, self.session)
        except MartNotFoundError as exc:
            self._set_status(str(exc))
            return

        if item is not None:
            self.accepted += 1
            self._set_status(f"Added {item.name}")
        self._refresh_results()

    def _accept_all(self) -> None:
        if self.session is None or not self.session.pending:
            self._set_status("No products to add")
            return

        try:
            items = self.tracker.accept_all_results(self.session, self.mart_id)
        except MartNotFoundError as exc:
            self._set_status(str(exc))
            return

        self.accepted += len(items)
        self._set_status(f"Added {len(items)} products")
        self._refresh_results()

    def _discard_selected(self) -> None:
        result = self._selected()
        if result is None or self.session is None:
            return
        self.session.discard(result)
        self._refresh_results()

    def _refresh_results(self) -> None:
        table = self.query_one("#analysis-results", DataTable)
        table.clear(columns=False)
        if self.session is None:
            return
        for result in self.session.pending:
            table.add_row(result.name, self.format_price(result.price), result.unit or "-")

    def _set_status(self, message: str) -> None:
        self.query_one("#analysis-status", Static).update(message)


class MartTrackerApp(App[None]):
    """Dashboard, price ledger and settings in the terminal."""

    TITLE = "Mart Tracker"

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("r", "refresh", "Refresh"),
        Binding("a", "add_item", "Add Price"),
        Binding("m", "add_mart", "Add Mart"),
        Binding("i", "analyze", "Analyze Image"),
        Binding("p", "toggle_pin", "Pin"),
        Binding("x", "remove_selected", "Remove"),
        Binding("f", "next_mart", "Mart Filter"),
        Binding("t", "toggle_theme", "Theme"),
    ]

    def __init__(self, tracker: MartTracker, config: ConfigManager | None = None):
        super().__init__()
        self.tracker = tracker
        self.config = config or ConfigManager()
        self.mart_filter: int | None = None
        self._inventory_ids: list[int] = []

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with TabbedContent(initial="dashboard"):
            with TabPane("Dashboard", id="dashboard"):
                yield Label("★ Favorites")
                yield DataTable(id="favorites-table")
                yield Label("Lowest Price Report")
                yield DataTable(id="comparison-table")
            with TabPane("Ledger", id="inventory"):
                yield Input(placeholder="Search items", id="search")
                yield Static("", id="mart-filter")
                yield DataTable(id="inventory-table")
            with TabPane("Settings", id="settings"):
                yield Static("", id="settings-summary")
                yield Input(placeholder="Google API key", password=True, id="api-key")
                with Horizontal():
                    yield Button("Save Key", id="save-key", variant="primary")
                    yield Button("Delete Key", id="clear-key")
                    yield Button("Toggle Theme", id="toggle-theme")
                    yield Button("Reset All Data", id="reset", variant="error")
        yield Static(
            "a:add price  m:add mart  i:analyze  p:pin  x:remove  f:mart filter  t:theme  q:quit",
            id="status",
        )
        yield Footer()

    def on_mount(self) -> None:
        favorites_table = self.query_one("#favorites-table", DataTable)
        favorites_table.add_columns("Item", "Price", "Mart")

        comparison_table = self.query_one("#comparison-table", DataTable)
        comparison_table.add_columns("Item", "Best Mart", "Best Price", "Savings", "Entries")

        inventory_table = self.query_one("#inventory-table", DataTable)
        inventory_table.cursor_type = "row"
        inventory_table.add_columns("★", "Item", "Price", "Unit", "Mart", "Date")

        self._apply_theme(self.tracker.theme)
        self.action_refresh()

    def format_price(self, price: float) -> str:
        return f"{price:,.0f} {self.config.display.currency}"

    # --- Actions ---

    def action_refresh(self) -> None:
        self._refresh_dashboard()
        self._refresh_inventory()
        self._refresh_settings()

    def action_add_item(self) -> None:
        default_mart = self.mart_filter
        if default_mart is None and self.tracker.marts:
            default_mart = self.tracker.marts[0].id
        self.push_screen(ItemFormScreen(default_mart), self._handle_add_item)

    def action_add_mart(self) -> None:
        self.push_screen(MartFormScreen(), self._handle_add_mart)

    def action_analyze(self) -> None:
        self.push_screen(
            AnalysisScreen(self.tracker, self.mart_filter, self.format_price),
            self._handle_analysis_closed,
        )

    def action_toggle_pin(self) -> None:
        item_id = self._selected_id()
        if item_id is None:
            self._set_status("No item selected")
            return

        try:
            item = self.tracker.toggle_pin(item_id)
        except (ItemNotFoundError, PinLimitError) as exc:
            self._set_status(str(exc))
            return

        self.action_refresh()
        self._set_status(f"{'Pinned' if item.is_pinned else 'Unpinned'} {item.name}")

    def action_remove_selected(self) -> None:
        item_id = self._selected_id()
        if item_id is None:
            self._set_status("No item selected")
            return

        removed = self.tracker.remove_inventory_item(item_id)
        self.action_refresh()
        if removed is not None:
            self._set_status(f"Removed {removed.name}")

    def action_next_mart(self) -> None:
        ids: list[int | None] = [None] + [m.id for m in self.tracker.marts]
        position = ids.index(self.mart_filter) if self.mart_filter in ids else 0
        self.mart_filter = ids[(position + 1) % len(ids)]
        self._refresh_inventory()

    def action_toggle_theme(self) -> None:
        self._apply_theme(self.tracker.toggle_theme())
        self._refresh_settings()

    # --- Events ---

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "search":
            self._refresh_inventory()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "save-key":
            key_input = self.query_one("#api-key", Input)
            if self.tracker.save_api_key(key_input.value):
                key_input.value = ""
                self._set_status("API key saved")
            self._refresh_settings()
        elif event.button.id == "clear-key":
            self.push_screen(
                ConfirmScreen("Delete the stored API key?"), self._handle_clear_key
            )
        elif event.button.id == "toggle-theme":
            self.action_toggle_theme()
        elif event.button.id == "reset":
            self.push_screen(ConfirmScreen("Really delete all data?"), self._handle_reset)

    # --- Callbacks ---

    def _handle_add_item(self, payload: dict[str, Any] | None) -> None:
        if payload is None:
            self._set_status("Add canceled")
            return

        try:
            item = self.tracker.add_inventory_item(
                payload["mart_id"], payload["name"], payload["price"], payload["unit"]
            )
        except MartNotFoundError as exc:
            self._set_status(str(exc))
            return
        except ValueError as exc:
            self._set_status(f"Add failed: {exc}")
            return

        self.action_refresh()
        if item is not None:
            self._set_status(f"Added {item.name} at {self.tracker.mart_name(item.mart_id)}")

    def _handle_add_mart(self, name: str | None) -> None:
        if name is None:
            return
        mart = self.tracker.add_mart(name)
        if mart is not None:
            self.mart_filter = mart.id
            self.action_refresh()
            self._set_status(f"Added mart {mart.name}")

    def _handle_analysis_closed(self, accepted: int | None) -> None:
        self.action_refresh()
        if accepted:
            self._set_status(f"Added {accepted} items from image analysis")

    def _handle_clear_key(self, confirmed: bool | None) -> None:
        if confirmed:
            self.tracker.clear_api_key()
            self._set_status("API key removed")
            self._refresh_settings()

    def _handle_reset(self, confirmed: bool | None) -> None:
        if not confirmed:
            return
        self.tracker.reset_all_data()
        self.mart_filter = None
        self._apply_theme(self.tracker.theme)
        self.action_refresh()
        self._set_status("All data was reset")

    # --- Rendering ---

    def _refresh_dashboard(self) -> None:
        favorites_table = self.query_one("#favorites-table", DataTable)
        favorites_table.clear(columns=False)
        for item in self.tracker.frequent_items():
            favorites_table.add_row(
                item.name, self.format_price(item.price), self.tracker.mart_name(item.mart_id)
            )

        comparison_table = self.query_one("#comparison-table", DataTable)
        comparison_table.clear(columns=False)
        limit = self.config.display.comparison_limit
        for record in self.tracker.price_comparison()[:limit]:
            best = record.best_price
            comparison_table.add_row(
                record.name,
                best.mart_name,
                self.format_price(best.price),
                self.format_price(record.savings),
                str(len(record.prices)),
            )

    def _refresh_inventory(self) -> None:
        table = self.query_one("#inventory-table", DataTable)
        table.clear(columns=False)
        term = self.query_one("#search", Input).value
        items: list[InventoryItem] = self.tracker.search(mart_id=self.mart_filter, term=term)
        self._inventory_ids = [item.id for item in items]

        for item in items:
            table.add_row(
                "★" if item.is_pinned else "",
                item.name,
                self.format_price(item.price),
                item.unit or "-",
                self.tracker.mart_name(item.mart_id),
                item.date.isoformat(),
                key=str(item.id),
            )

        label = "All marts" if self.mart_filter is None else self.tracker.mart_name(self.mart_filter)
        self.query_one("#mart-filter", Static).update(f"Showing: {label}")

    def _refresh_settings(self) -> None:
        key_state = "saved" if self.tracker.api_key else "not set"
        self.query_one("#settings-summary", Static).update(
            f"Theme: {self.tracker.theme.value}\nAPI key: {key_state}"
        )

    def _apply_theme(self, theme: Theme) -> None:
        self.theme = "textual-dark" if theme is Theme.DARK else "textual-light"

    def _selected_id(self) -> int | None:
        table = self.query_one("#inventory-table", DataTable)
        row = table.cursor_row
        if row is None or row < 0 or row >= len(self._inventory_ids):
            return None
        return self._inventory_ids[row]

    def _set_status(self, message: str) -> None:
        self.query_one("#status", Static).update(message)
