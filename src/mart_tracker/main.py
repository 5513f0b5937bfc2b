"""CLI entry point for Mart Tracker."""

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from .analysis_service import GeminiImageAnalyzer
from .config import ConfigManager
from .data_store import BackendType, DataStore, DataStoreError, create_key_value_store
from .logging_config import configure_logging
from .migrate_to_sqlite import MigrationError, migrate
from .models import InventoryItem, PriceComparisonRecord, Theme
from .output_formatter import OutputFormatter
from .tracker import (
    AnalysisFailedError,
    ItemNotFoundError,
    MartNotFoundError,
    MartTracker,
    PinLimitError,
)

app = typer.Typer(
    name="mart-tracker",
    help="Track grocery prices across the marts you shop at",
    no_args_is_help=True,
)

# Global state for formatter and config (set by callback)
formatter: OutputFormatter = OutputFormatter()
config: ConfigManager | None = None
data_dir_override: Path | None = None
tracker: MartTracker | None = None


def get_config() -> ConfigManager:
    """Get or create ConfigManager instance."""
    global config
    if config is None:
        config = ConfigManager()
    return config


def get_data_dir() -> Path:
    """Data directory from --data-dir, falling back to config."""
    return data_dir_override or get_config().data.storage_dir


def get_tracker() -> MartTracker:
    """Get or create MartTracker instance using config values."""
    global tracker
    if tracker is None:
        cfg = get_config()
        backend = create_key_value_store(
            backend=BackendType(cfg.data.backend), data_dir=get_data_dir()
        )
        tracker = MartTracker(
            data_store=DataStore(backend, default_mart_name=cfg.defaults.mart_name),
            analyzer=GeminiImageAnalyzer(
                model=cfg.analysis.model,
                base_url=cfg.analysis.base_url,
                timeout=cfg.analysis.timeout_seconds,
            ),
            unknown_mart_label=cfg.defaults.unknown_mart_label,
            api_key_env=cfg.analysis.api_key_env,
        )
    return tracker


def item_payload(item: InventoryItem) -> dict:
    """Serialize an item with its resolved mart name."""
    payload = item.model_dump(mode="json")
    payload["mart_name"] = get_tracker().mart_name(item.mart_id)
    return payload


def comparison_payload(record: PriceComparisonRecord) -> dict:
    """Serialize a comparison record with its cheapest entry and savings."""
    payload = record.model_dump(mode="json")
    best = record.best_price
    payload["best_price"] = best.model_dump(mode="json") if best else None
    payload["savings"] = record.savings
    return payload


@app.callback()
def main(
    json_output: Annotated[
        bool, typer.Option("--json", help="Output as JSON for programmatic use")
    ] = False,
    data_dir: Annotated[Path | None, typer.Option("--data-dir", help="Data directory path")] = None,
) -> None:
    """Mart Tracker CLI - Record prices, pin favorites, find the cheapest mart."""
    global formatter, config, data_dir_override, tracker

    config = ConfigManager()
    configure_logging(config.logging.level)
    formatter = OutputFormatter(json_mode=json_output, currency=config.display.currency)

    # CLI --data-dir overrides config, which overrides default
    data_dir_override = data_dir
    tracker = None


# Mart subcommand group
mart_app = typer.Typer(help="Purchase location commands")
app.add_typer(mart_app, name="mart")


@mart_app.command("add")
def mart_add(
    name: Annotated[str, typer.Argument(help="Mart name")],
) -> None:
    """Register a new mart."""
    try:
        mart = get_tracker().add_mart(name)
        if mart is None:
            formatter.error("Mart name must not be empty", error_code="VALIDATION_ERROR")
            raise typer.Exit(code=1)

        output_data = {
            "success": True,
            "message": f"Added mart {mart.name}",
            "data": {"mart": mart.model_dump(mode="json")},
        }
        formatter.output(output_data, output_data["message"])
    except typer.Exit:
        raise
    except DataStoreError as e:
        formatter.error(str(e), error_code="DATA_STORE_ERROR")
        raise typer.Exit(code=1)
    except Exception as e:
        formatter.error(str(e))
        raise typer.Exit(code=1)


@mart_app.command("list")
def mart_list() -> None:
    """List registered marts."""
    try:
        marts = get_tracker().marts
        output_data = {
            "success": True,
            "data": {"marts": [m.model_dump(mode="json") for m in marts]},
        }
        formatter.output(output_data)
    except DataStoreError as e:
        formatter.error(str(e), error_code="DATA_STORE_ERROR")
        raise typer.Exit(code=1)
    except Exception as e:
        formatter.error(str(e))
        raise typer.Exit(code=1)


# Item subcommand group
item_app = typer.Typer(help="Price record commands")
app.add_typer(item_app, name="item")


@item_app.command("add")
def item_add(
    name: Annotated[str, typer.Argument(help="Item name")],
    price: Annotated[float, typer.Option("--price", "-p", help="Price paid or listed")],
    unit: Annotated[str, typer.Option("--unit", "-u", help="Unit, e.g. 1kg or pack")] = "",
    mart_id: Annotated[
        int | None, typer.Option("--mart", "-m", help="Mart ID (defaults to the first mart)")
    ] = None,
) -> None:
    """Record an item's price at a mart."""
    try:
        manager = get_tracker()
        if mart_id is None:
            if not manager.marts:
                raise MartNotFoundError(None)
            mart_id = manager.marts[0].id

        item = manager.add_inventory_item(mart_id, name, price, unit)
        if item is None:
            formatter.error("Item name must not be empty", error_code="VALIDATION_ERROR")
            raise typer.Exit(code=1)

        output_data = {
            "success": True,
            "message": f"Added {item.name} at {manager.mart_name(item.mart_id)}",
            "data": {"item": item_payload(item)},
        }
        formatter.output(output_data, output_data["message"])
    except typer.Exit:
        raise
    except MartNotFoundError as e:
        formatter.error(str(e), error_code="MART_NOT_FOUND")
        raise typer.Exit(code=1)
    except DataStoreError as e:
        formatter.error(str(e), error_code="DATA_STORE_ERROR")
        raise typer.Exit(code=1)
    except Exception as e:
        formatter.error(str(e))
        raise typer.Exit(code=1)


@item_app.command("remove")
def item_remove(
    item_id: Annotated[int, typer.Argument(help="Item ID to remove")],
) -> None:
    """Remove a price record."""
    try:
        removed = get_tracker().remove_inventory_item(item_id)
        if removed is None:
            formatter.warning(f"No item with ID '{item_id}'")
            return

        formatter.success(
            f"Removed {removed.name}", {"item": removed.model_dump(mode="json")}
        )
    except DataStoreError as e:
        formatter.error(str(e), error_code="DATA_STORE_ERROR")
        raise typer.Exit(code=1)
    except Exception as e:
        formatter.error(str(e))
        raise typer.Exit(code=1)


@item_app.command("pin")
def item_pin(
    item_id: Annotated[int, typer.Argument(help="Item ID to pin or unpin")],
) -> None:
    """Toggle an item's favorite status."""
    try:
        item = get_tracker().toggle_pin(item_id)
        state = "Pinned" if item.is_pinned else "Unpinned"
        output_data = {
            "success": True,
            "message": f"{state} {item.name}",
            "data": {"item": item_payload(item)},
        }
        formatter.output(output_data, output_data["message"])
    except ItemNotFoundError as e:
        formatter.error(str(e), error_code="ITEM_NOT_FOUND")
        raise typer.Exit(code=1)
    except PinLimitError as e:
        formatter.error(str(e), error_code="PIN_LIMIT")
        raise typer.Exit(code=1)
    except DataStoreError as e:
        formatter.error(str(e), error_code="DATA_STORE_ERROR")
        raise typer.Exit(code=1)
    except Exception as e:
        formatter.error(str(e))
        raise typer.Exit(code=1)


@item_app.command("list")
def item_list(
    mart_id: Annotated[int | None, typer.Option("--mart", "-m", help="Filter by mart ID")] = None,
    search: Annotated[str, typer.Option("--search", "-s", help="Filter by name")] = "",
) -> None:
    """View recorded prices."""
    try:
        items = get_tracker().search(mart_id=mart_id, term=search)
        output_data = {
            "success": True,
            "data": {
                "inventory": [item_payload(i) for i in items],
                "total_items": len(items),
            },
        }
        formatter.output(output_data)
    except DataStoreError as e:
        formatter.error(str(e), error_code="DATA_STORE_ERROR")
        raise typer.Exit(code=1)
    except Exception as e:
        formatter.error(str(e))
        raise typer.Exit(code=1)


@app.command()
def favorites() -> None:
    """Show pinned favorite items."""
    try:
        items = get_tracker().frequent_items()
        output_data = {
            "success": True,
            "data": {"favorites": [item_payload(i) for i in items]},
        }
        formatter.output(output_data)
    except DataStoreError as e:
        formatter.error(str(e), error_code="DATA_STORE_ERROR")
        raise typer.Exit(code=1)
    except Exception as e:
        formatter.error(str(e))
        raise typer.Exit(code=1)


@app.command()
def compare(
    limit: Annotated[
        int | None, typer.Option("--limit", "-l", help="Max comparisons to show")
    ] = None,
) -> None:
    """Compare prices for items recorded at more than one mart or date."""
    try:
        records = get_tracker().price_comparison()
        if limit is not None:
            records = records[:limit]

        output_data = {
            "success": True,
            "data": {"comparisons": [comparison_payload(r) for r in records]},
        }
        formatter.output(output_data)
    except DataStoreError as e:
        formatter.error(str(e), error_code="DATA_STORE_ERROR")
        raise typer.Exit(code=1)
    except Exception as e:
        formatter.error(str(e))
        raise typer.Exit(code=1)


@app.command()
def dashboard() -> None:
    """Show favorites and the lowest price report."""
    try:
        manager = get_tracker()
        limit = get_config().display.comparison_limit
        output_data = {
            "success": True,
            "data": {
                "dashboard": {
                    "favorites": [item_payload(i) for i in manager.frequent_items()],
                    "comparisons": [
                        comparison_payload(r) for r in manager.price_comparison()[:limit]
                    ],
                }
            },
        }
        formatter.output(output_data)
    except DataStoreError as e:
        formatter.error(str(e), error_code="DATA_STORE_ERROR")
        raise typer.Exit(code=1)
    except Exception as e:
        formatter.error(str(e))
        raise typer.Exit(code=1)


@app.command()
def analyze(
    image: Annotated[
        Path, typer.Argument(help="Photo or screenshot of a shelf or receipt", exists=True)
    ],
    mart_id: Annotated[
        int | None, typer.Option("--mart", "-m", help="Mart ID for accepted items")
    ] = None,
    api_key: Annotated[
        str | None, typer.Option("--key", help="API key for this request only")
    ] = None,
    accept_all: Annotated[
        bool, typer.Option("--accept-all", "-y", help="Add every recognized product")
    ] = False,
) -> None:
    """Recognize products and prices in an image."""
    try:
        manager = get_tracker()
        if mart_id is not None and manager.get_mart(mart_id) is None:
            raise MartNotFoundError(mart_id)

        session = manager.open_analysis_session()
        results = asyncio.run(
            manager.request_image_analysis(image.read_bytes(), api_key, session)
        )

        accepted = []
        if accept_all:
            accepted = manager.accept_all_results(session, mart_id)
        for result in session.pending:
            if not formatter.json_mode and typer.confirm(
                f"Add {result.name} ({formatter.format_price(result.price)} {result.unit})?",
                default=True,
            ):
                item = manager.accept_analysis_result(result, mart_id, session)
                if item is not None:
                    accepted.append(item)
            else:
                session.discard(result)
        session.dismiss()

        output_data = {
            "success": True,
            "message": f"Recognized {len(results)} products",
            "data": {
                "analysis": {
                    "results": [r.model_dump(mode="json") for r in results],
                    "accepted": [item_payload(i) for i in accepted],
                }
            },
        }
        formatter.output(output_data, output_data["message"])
    except typer.Abort:
        raise
    except AnalysisFailedError as e:
        formatter.error(str(e), error_code="ANALYSIS_FAILED")
        raise typer.Exit(code=1)
    except MartNotFoundError as e:
        formatter.error(str(e), error_code="MART_NOT_FOUND")
        raise typer.Exit(code=1)
    except DataStoreError as e:
        formatter.error(str(e), error_code="DATA_STORE_ERROR")
        raise typer.Exit(code=1)
    except Exception as e:
        formatter.error(str(e))
        raise typer.Exit(code=1)


# Settings subcommand group
settings_app = typer.Typer(help="Theme, API key and data reset")
app.add_typer(settings_app, name="settings")


@settings_app.callback(invoke_without_command=True)
def settings_show(ctx: typer.Context) -> None:
    """View current settings."""
    if ctx.invoked_subcommand is not None:
        return
    try:
        manager = get_tracker()
        output_data = {
            "success": True,
            "data": {
                "settings": {
                    "theme": manager.theme.value,
                    "api_key_set": manager.api_key is not None,
                }
            },
        }
        formatter.output(output_data)
    except DataStoreError as e:
        formatter.error(str(e), error_code="DATA_STORE_ERROR")
        raise typer.Exit(code=1)
    except Exception as e:
        formatter.error(str(e))
        raise typer.Exit(code=1)


@settings_app.command("theme")
def settings_theme(
    choice: Annotated[
        str, typer.Argument(help="dark, light or toggle")
    ] = "toggle",
) -> None:
    """Set or toggle the display theme."""
    try:
        manager = get_tracker()
        if choice == "toggle":
            theme = manager.toggle_theme()
        else:
            try:
                theme = manager.set_theme(Theme(choice))
            except ValueError:
                formatter.error(
                    f"Unknown theme '{choice}'. Use dark, light or toggle",
                    error_code="VALIDATION_ERROR",
                )
                raise typer.Exit(code=1)

        formatter.success(f"Theme set to {theme.value}", {"theme": theme.value})
    except typer.Exit:
        raise
    except DataStoreError as e:
        formatter.error(str(e), error_code="DATA_STORE_ERROR")
        raise typer.Exit(code=1)
    except Exception as e:
        formatter.error(str(e))
        raise typer.Exit(code=1)


key_app = typer.Typer(help="Image analysis API key")
settings_app.add_typer(key_app, name="api-key")


@key_app.command("set")
def api_key_set(
    key: Annotated[str, typer.Argument(help="Google API key")],
) -> None:
    """Save the API key used for image analysis."""
    try:
        if not get_tracker().save_api_key(key):
            formatter.error("API key must not be empty", error_code="VALIDATION_ERROR")
            raise typer.Exit(code=1)
        formatter.success("API key saved")
    except typer.Exit:
        raise
    except DataStoreError as e:
        formatter.error(str(e), error_code="DATA_STORE_ERROR")
        raise typer.Exit(code=1)
    except Exception as e:
        formatter.error(str(e))
        raise typer.Exit(code=1)


@key_app.command("clear")
def api_key_clear(
    yes: Annotated[bool, typer.Option("--yes", help="Skip confirmation")] = False,
) -> None:
    """Delete the stored API key."""
    try:
        if not yes and not typer.confirm("Delete the stored API key?"):
            formatter.warning("Kept the stored API key")
            return
        get_tracker().clear_api_key()
        formatter.success("API key removed")
    except typer.Abort:
        raise
    except DataStoreError as e:
        formatter.error(str(e), error_code="DATA_STORE_ERROR")
        raise typer.Exit(code=1)
    except Exception as e:
        formatter.error(str(e))
        raise typer.Exit(code=1)


@settings_app.command("reset")
def settings_reset(
    yes: Annotated[bool, typer.Option("--yes", help="Skip confirmation")] = False,
) -> None:
    """Erase all marts, prices and settings."""
    try:
        if not yes and not typer.confirm("Really delete all data?"):
            formatter.warning("Reset canceled")
            return
        manager = get_tracker()
        manager.reset_all_data()
        formatter.success(
            "All data was reset",
            {"marts": [m.model_dump(mode="json") for m in manager.marts]},
        )
    except typer.Abort:
        raise
    except DataStoreError as e:
        formatter.error(str(e), error_code="DATA_STORE_ERROR")
        raise typer.Exit(code=1)
    except Exception as e:
        formatter.error(str(e))
        raise typer.Exit(code=1)


# Storage subcommand group
storage_app = typer.Typer(help="Storage backend maintenance")
app.add_typer(storage_app, name="storage")


@storage_app.command("migrate")
def storage_migrate(
    force: Annotated[
        bool, typer.Option("--force", help="Overwrite an existing SQLite database")
    ] = False,
) -> None:
    """Copy data from the JSON file store into SQLite."""
    try:
        data_dir = get_data_dir()
        stats = migrate(data_dir=data_dir, force=force)
        hint = 'Set backend = "sqlite" under [data] in config.toml to use it'
        formatter.success(
            f"Migrated {stats['entries']} entries to {data_dir / 'mart.db'}",
            {"stats": stats, "hint": hint},
        )
        if not formatter.json_mode:
            formatter.warning(hint)
    except MigrationError as e:
        formatter.error(str(e), error_code="MIGRATION_ERROR")
        raise typer.Exit(code=1)
    except DataStoreError as e:
        formatter.error(str(e), error_code="DATA_STORE_ERROR")
        raise typer.Exit(code=1)
    except Exception as e:
        formatter.error(str(e))
        raise typer.Exit(code=1)


@app.command()
def tui() -> None:
    """Launch the interactive terminal UI."""
    try:
        from .tui import MartTrackerApp

        MartTrackerApp(get_tracker(), get_config()).run()
    except DataStoreError as e:
        formatter.error(str(e), error_code="DATA_STORE_ERROR")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
