"""Output formatting for CLI and programmatic use."""

import json
from datetime import date, datetime
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table


class JSONEncoder(json.JSONEncoder):
    """Custom JSON encoder for output."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, date):
            return obj.isoformat()
        return super().default(obj)


class OutputFormatter:
    """Formats output for both Rich terminal and JSON modes."""

    def __init__(self, json_mode: bool = False, currency: str = "KRW"):
        """Initialize formatter.

        Args:
            json_mode: If True, output JSON instead of Rich formatting
            currency: Currency label appended to prices in Rich mode
        """
        self.json_mode = json_mode
        self.currency = currency
        self.console = Console()

    def output(self, data: dict[str, Any], message: str = "") -> None:
        """Output data in appropriate format.

        Args:
            data: Data to output
            message: Optional message for Rich mode
        """
        if self.json_mode:
            self._output_json(data)
        else:
            self._output_rich(data, message)

    def _output_json(self, data: dict[str, Any]) -> None:
        """Output as JSON to stdout."""
        print(json.dumps(data, cls=JSONEncoder, indent=2, ensure_ascii=False))

    def _output_rich(self, data: dict[str, Any], message: str) -> None:
        """Output with Rich formatting."""
        if message:
            self.console.print(f"[green]✓[/green] {message}")

        payload = data.get("data", {})
        if "dashboard" in payload:
            self._render_dashboard(payload["dashboard"])
        elif "comparisons" in payload:
            self._render_comparisons(payload["comparisons"])
        elif "favorites" in payload:
            self._render_favorites(payload["favorites"])
        elif "analysis" in payload:
            self._render_analysis(payload["analysis"])
        elif "inventory" in payload:
            self._render_inventory(payload["inventory"])
        elif "item" in payload and isinstance(payload["item"], dict):
            self._render_item(payload["item"])
        elif "marts" in payload:
            self._render_marts(payload["marts"])
        elif "settings" in payload:
            self._render_settings(payload["settings"])

    def format_price(self, price: float) -> str:
        """Format a whole-number price with thousands separators."""
        return f"{price:,.0f} {self.currency}"

    def _render_marts(self, marts: list[dict]) -> None:
        """Render registered marts."""
        table = Table(title="Marts", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="dim", justify="right")
        table.add_column("Name", style="cyan")

        for mart in marts:
            table.add_row(str(mart["id"]), mart["name"])

        self.console.print(table)

    def _render_inventory(self, items: list[dict]) -> None:
        """Render inventory items."""
        if not items:
            self.console.print("[dim]No items recorded[/dim]")
            return

        table = Table(title="Price Ledger", show_header=True, header_style="bold cyan")
        table.add_column("", justify="center")
        table.add_column("ID", style="dim", justify="right")
        table.add_column("Item", style="cyan", no_wrap=False)
        table.add_column("Price", style="magenta", justify="right")
        table.add_column("Unit", style="yellow")
        table.add_column("Mart", style="green")
        table.add_column("Date", style="blue")

        for item in items:
            table.add_row(
                "[yellow]★[/yellow]" if item.get("is_pinned") else "",
                str(item["id"]),
                item["name"],
                self.format_price(item["price"]),
                item.get("unit") or "-",
                item.get("mart_name") or "-",
                str(item.get("date", "")),
            )

        self.console.print(table)
        self.console.print(f"\nTotal items: {len(items)}")

    def _render_item(self, item: dict) -> None:
        """Render a single item with Rich."""
        panel_content = f"""[bold]{item["name"]}[/bold]

Price: {self.format_price(item["price"])} {item.get("unit") or ""}
Mart: {item.get("mart_name") or item.get("mart_id")}
Date: {item.get("date", "")}
Pinned: {"yes" if item.get("is_pinned") else "no"}
ID: {item["id"]}"""

        panel = Panel(panel_content, title="Item Details", border_style="green")
        self.console.print(panel)

    def _render_favorites(self, favorites: list[dict]) -> None:
        """Render pinned items."""
        if not favorites:
            self.console.print("[dim]No favorites pinned[/dim]")
            return

        self.console.print("\n[bold]★ Favorites[/bold]")
        for item in favorites:
            self.console.print(
                f"  {item['name']}: [magenta]{self.format_price(item['price'])}[/magenta]"
                f" [dim]({item.get('mart_name') or '-'})[/dim]"
            )

    def _render_comparisons(self, comparisons: list[dict]) -> None:
        """Render price comparison records."""
        if not comparisons:
            self.console.print("[dim]No items recorded at more than one price yet[/dim]")
            return

        table = Table(title="Lowest Price Report", show_header=True, header_style="bold cyan")
        table.add_column("Item", style="cyan")
        table.add_column("Best Mart", style="green")
        table.add_column("Best Price", style="bold green", justify="right")
        table.add_column("Savings", style="yellow", justify="right")
        table.add_column("Other Prices", style="dim")

        for record in comparisons:
            best = record["best_price"]
            others = record["prices"][1:]
            table.add_row(
                record["name"],
                best["mart_name"],
                self.format_price(best["price"]),
                self.format_price(record["savings"]),
                ", ".join(
                    f"{p['mart_name']} {self.format_price(p['price'])}" for p in others
                ),
            )

        self.console.print(table)

    def _render_dashboard(self, dashboard: dict) -> None:
        """Render favorites and the comparison summary."""
        self._render_favorites(dashboard.get("favorites", []))
        self.console.print()
        self._render_comparisons(dashboard.get("comparisons", []))

    def _render_analysis(self, analysis: dict) -> None:
        """Render analysis proposals and accepted items."""
        results = analysis.get("results", [])
        if results:
            table = Table(title="Recognized Products", show_header=True, header_style="bold cyan")
            table.add_column("#", style="dim", justify="right")
            table.add_column("Item", style="cyan")
            table.add_column("Price", style="magenta", justify="right")
            table.add_column("Unit", style="yellow")

            for index, result in enumerate(results, start=1):
                table.add_row(
                    str(index),
                    result["name"],
                    self.format_price(result["price"]),
                    result.get("unit") or "-",
                )
            self.console.print(table)

        accepted = analysis.get("accepted", [])
        if accepted:
            self.console.print(f"\n[green]Added {len(accepted)} items to the ledger[/green]")

    def _render_settings(self, settings: dict) -> None:
        """Render current settings."""
        self.console.print(f"Theme: {settings.get('theme')}")
        key_state = "[green]saved[/green]" if settings.get("api_key_set") else "[dim]not set[/dim]"
        self.console.print(f"API key: {key_state}")

    def error(self, message: str, error_code: str | None = None) -> None:
        """Output error message.

        Args:
            message: Error message
            error_code: Optional error code
        """
        if self.json_mode:
            output = {"success": False, "error": message}
            if error_code:
                output["error_code"] = error_code
            print(json.dumps(output, ensure_ascii=False))
        else:
            self.console.print(f"[red]✗ Error:[/red] {message}")

    def success(self, message: str, data: dict | None = None) -> None:
        """Output success message.

        Args:
            message: Success message
            data: Optional data to include
        """
        if self.json_mode:
            output: dict[str, Any] = {"success": True, "message": message}
            if data:
                output["data"] = data
            print(json.dumps(output, cls=JSONEncoder, ensure_ascii=False))
        else:
            self.console.print(f"[green]✓[/green] {message}")

    def warning(self, message: str) -> None:
        """Output warning message.

        Args:
            message: Warning message
        """
        if self.json_mode:
            print(json.dumps({"warning": message}, ensure_ascii=False))
        else:
            self.console.print(f"[yellow]⚠[/yellow] {message}")
