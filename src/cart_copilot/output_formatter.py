"""Output formatting for CLI and programmatic use."""

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .data_store import JSONEncoder
from .pricing import format_currency

NO_EMOJI = "⚪"


def _rate(rate: float) -> str:
    return f"{rate * 100:.2f}%"


class OutputFormatter:
    """Formats output for both Rich terminal and JSON modes."""

    def __init__(self, json_mode: bool = False):
        """Initialize formatter.

        Args:
            json_mode: If True, output JSON instead of Rich formatting
        """
        self.json_mode = json_mode
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
        print(json.dumps(data, cls=JSONEncoder, indent=2))

    def _output_rich(self, data: dict[str, Any], message: str) -> None:
        """Output with Rich formatting."""
        if message:
            self.console.print(f"[green]✓[/green] {message}")

        payload = data.get("data", {})
        if "stores" in payload:
            self._render_stores(data)
        elif "categories" in payload:
            self._render_categories(data)
        elif "by_category" in payload:
            self._render_items(data)
        elif "item" in payload and isinstance(payload["item"], dict):
            self._render_item(data)
        elif "price_history" in payload:
            self._render_price_history(data)
        elif "trips" in payload:
            self._render_trips(data)
        elif "trip_detail" in payload:
            self._render_trip_detail(data)
        elif "line" in payload:
            self._render_line(data)

    def _render_stores(self, data: dict) -> None:
        """Render store list with Rich."""
        stores = data["data"]["stores"]
        if not stores:
            self.console.print("[dim]No stores[/dim]")
            return

        table = Table(title="Stores", show_header=True, header_style="bold cyan")
        table.add_column("Name", style="cyan")
        table.add_column("Address", style="green")
        table.add_column("Default", justify="center")
        table.add_column("ID", style="dim")

        for store in stores:
            table.add_row(
                store["name"],
                store.get("address") or "-",
                "✓" if store.get("is_default") else "",
                store["id"],
            )

        self.console.print(table)

    def _render_categories(self, data: dict) -> None:
        """Render category list with Rich."""
        categories = data["data"]["categories"]
        if not categories:
            self.console.print("[dim]No categories[/dim]")
            return

        table = Table(title="Categories", show_header=True, header_style="bold cyan")
        table.add_column("Category", style="cyan")
        table.add_column("Tax Rate", style="magenta", justify="right")
        table.add_column("Items", justify="right")
        table.add_column("Default", justify="center")
        table.add_column("ID", style="dim")

        for category in categories:
            table.add_row(
                f"{category.get('emoji') or NO_EMOJI} {category['name']}",
                _rate(category["tax_rate"]),
                str(category.get("item_count", 0)),
                "✓" if category.get("is_default") else "",
                category["id"],
            )

        self.console.print(table)

    def _render_items(self, data: dict) -> None:
        """Render items grouped by category."""
        groups = data["data"]["by_category"]
        if not groups:
            self.console.print("[dim]No items[/dim]")
            return

        for group in groups:
            table = Table(
                title=f"{group.get('emoji') or NO_EMOJI} {group['category']}",
                show_header=True,
                header_style="bold cyan",
                title_justify="left",
            )
            table.add_column("Item", style="cyan")
            table.add_column("Price", style="magenta", justify="right")
            table.add_column("Tax", justify="right")
            table.add_column("Brand", style="green")
            table.add_column("ID", style="dim")

            for item in group["items"]:
                star = " [yellow]★[/yellow]" if item.get("is_favorite") else ""
                table.add_row(
                    f"{item.get('emoji') or ''} {item['name']}{star}".strip(),
                    format_currency(item["current_price"]),
                    format_currency(item["tax"]),
                    item.get("brand") or "-",
                    item["id"],
                )
            self.console.print(table)

        self.console.print(f"\nTotal items: {data['data']['total_items']}")

    def _render_item(self, data: dict) -> None:
        """Render a single item with Rich."""
        item = data["data"]["item"]

        panel_content = f"""[bold]{item.get("emoji") or ""} {item["name"]}[/bold]

Price: {format_currency(item["current_price"])}
Tax: {format_currency(item["tax"])} ({_rate(item["tax_rate"])})
Total: {format_currency(item["total"])}
Category: {item.get("category_emoji") or NO_EMOJI} {item["category"]}"""

        if item.get("brand"):
            panel_content += f"\nBrand: {item['brand']}"

        if item.get("unit"):
            panel_content += f"\nUnit: {item['unit']} {item.get('unit_type') or ''}".rstrip()
            panel_content += f"\nUnit Price: {format_currency(item['unit_price'])}"

        if item.get("upc"):
            panel_content += f"\nUPC: {item['upc']}"

        if item.get("preferred_store"):
            panel_content += f"\nPreferred Store: {item['preferred_store']}"

        if item.get("has_photo"):
            panel_content += "\nPhoto: attached"

        panel = Panel(panel_content, title="Item Details", border_style="green")
        self.console.print(panel)

        if data["data"].get("price_history"):
            self._render_price_history(data)

    def _render_price_history(self, data: dict) -> None:
        """Render price history."""
        history_data = data["data"]
        name = history_data.get("item_name") or history_data.get("item", {}).get("name", "")

        self.console.print(f"\n[bold]Price History: {name}[/bold]")
        if history_data.get("current_price") is not None:
            self.console.print(f"Current: {format_currency(history_data['current_price'])}")

        if not history_data["price_history"]:
            self.console.print("[dim]No earlier prices[/dim]")
            return

        self.console.print("\n[dim]Earlier prices:[/dim]")
        for entry in history_data["price_history"]:
            self.console.print(f"  {entry['changed_at'][:16]}: {format_currency(entry['price'])}")

    def _render_trips(self, data: dict) -> None:
        """Render trip list with Rich."""
        trips = data["data"]["trips"]
        if not trips:
            self.console.print("[dim]No Shopping Trips[/dim]")
            self.console.print("[dim]Add a new shopping trip to get started[/dim]")
            return

        table = Table(title="Shopping Trips", show_header=True, header_style="bold cyan")
        table.add_column("Date", style="green")
        table.add_column("Store", style="cyan")
        table.add_column("Items", justify="right")
        table.add_column("Total", style="magenta", justify="right")
        table.add_column("ID", style="dim")

        for trip in trips:
            table.add_row(
                trip["date"][:10],
                trip["store"],
                str(trip["item_count"]),
                format_currency(trip["total"]),
                trip["id"],
            )

        self.console.print(table)
        self.console.print(f"\nTotal spent: {format_currency(data['data']['total_spent'])}")

    def _render_trip_detail(self, data: dict) -> None:
        """Render one trip with its lines, totals and category breakdown."""
        trip = data["data"]["trip_detail"]

        table = Table(
            title=f"{trip['store']} - {trip['date'][:10]}",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Item", style="cyan")
        table.add_column("Qty", justify="right")
        table.add_column("Price", justify="right")
        table.add_column("Subtotal", justify="right")
        table.add_column("Tax", justify="right")
        table.add_column("Total", style="magenta", justify="right")
        table.add_column("Line ID", style="dim")

        for line in trip["items"]:
            table.add_row(
                f"{line.get('emoji') or ''} {line['name']}".strip(),
                str(line["quantity"]),
                format_currency(line["unit_price"]),
                format_currency(line["subtotal"]),
                format_currency(line["tax"]),
                format_currency(line["total"]),
                line["id"],
            )

        if trip["items"]:
            self.console.print(table)
        else:
            self.console.print(f"[bold]{trip['store']}[/bold] [dim]No items yet[/dim]")

        if trip["categories"]:
            breakdown = Table(title="By Category", show_header=True, header_style="bold yellow")
            breakdown.add_column("Category", style="yellow")
            breakdown.add_column("Items", justify="right")
            breakdown.add_column("Subtotal", justify="right")
            breakdown.add_column("Tax", justify="right")
            breakdown.add_column("Total", justify="right")
            for group in trip["categories"]:
                breakdown.add_row(
                    f"{group.get('emoji') or NO_EMOJI} {group['category']}",
                    str(group["item_count"]),
                    format_currency(group["subtotal"]),
                    format_currency(group["tax"]),
                    format_currency(group["total"]),
                )
            self.console.print(breakdown)

        self.console.print(
            Panel(
                f"Subtotal: {format_currency(trip['subtotal'])}\n"
                f"Tax: {format_currency(trip['tax'])}\n"
                f"[bold]Total: {format_currency(trip['total'])}[/bold]",
                title="Trip Total",
                border_style="green",
            )
        )

    def _render_line(self, data: dict) -> None:
        line = data["data"]["line"]
        self.console.print(
            f"  {line['quantity']} x {line['name']} @ {format_currency(line['unit_price'])}"
            f" = {format_currency(line['total'])} (incl. {format_currency(line['tax'])} tax)"
        )
        if data["data"].get("trip"):
            trip = data["data"]["trip"]
            self.console.print(f"  Trip total: {format_currency(trip['total'])}")

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
            print(json.dumps(output))
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
            print(json.dumps(output, cls=JSONEncoder))
        else:
            self.console.print(f"[green]✓[/green] {message}")

    def warning(self, message: str) -> None:
        """Output warning message.

        Args:
            message: Warning message
        """
        if self.json_mode:
            print(json.dumps({"warning": message}))
        else:
            self.console.print(f"[yellow]⚠[/yellow] {message}")
