"""Terminal UI for Cart Copilot."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
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

from .errors import CartCopilotError
from .pricing import format_currency
from .trip_manager import TripManager

# (key, label, placeholder)
FormField = tuple[str, str, str]

TRIP_FIELDS: list[FormField] = [("store", "Store", "Costco")]
LINE_FIELDS: list[FormField] = [
    ("item", "Item (name or ID)", "Milk"),
    ("quantity", "Quantity", "1"),
]
QUANTITY_FIELDS: list[FormField] = [("quantity", "Quantity", "1")]
ITEM_FIELDS: list[FormField] = [
    ("name", "Name", "Milk"),
    ("price", "Price", "3.49"),
    ("category", "Category", "Dairy, Eggs and Cheese"),
    ("brand", "Brand (optional)", "Store brand"),
    ("unit", "Units per package (optional)", "12"),
    ("unit_type", "Unit label (optional)", "oz"),
    ("emoji", "Emoji (optional)", ""),
]
STORE_FIELDS: list[FormField] = [
    ("name", "Name", "Corner Market"),
    ("address", "Address (optional)", "12 Main St"),
]
CATEGORY_FIELDS: list[FormField] = [
    ("name", "Name", "Snacks"),
    ("tax_rate", "Tax rate (fraction)", "0.0825"),
    ("emoji", "Emoji (optional)", ""),
]


def parse_form(raw: dict[str, str]) -> dict[str, Any]:
    """Convert numeric form fields, leaving blanks as None.

    Raises:
        ValueError: If a numeric field doesn't parse
    """
    values: dict[str, Any] = {}
    for key, text in raw.items():
        if not text:
            values[key] = None
        elif key == "price":
            try:
                price = Decimal(text)
            except InvalidOperation as e:
                raise ValueError(f"Invalid price: {text}") from e
            if not price.is_finite():
                raise ValueError(f"Invalid price: {text}")
            values[key] = price
        elif key in ("quantity", "unit"):
            values[key] = int(text)
        elif key == "tax_rate":
            values[key] = float(text)
        else:
            values[key] = text
    return values


class RecordFormScreen(ModalScreen[dict[str, Any] | None]):
    """Modal dialog to add or edit any record from a list of text fields."""

    DEFAULT_CSS = """
    RecordFormScreen {
        align: center middle;
    }

    #record-form-dialog {
        width: 70;
        height: auto;
        padding: 1 2;
        border: round $primary;
        background: $surface;
    }

    #record-form-actions {
        align-horizontal: right;
        height: auto;
        margin-top: 1;
    }

    .field-label {
        margin-top: 1;
    }
    """

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(
        self,
        title: str,
        fields: list[FormField],
        defaults: dict[str, Any] | None = None,
        submit: str = "Add",
    ):
        super().__init__()
        self.title_text = title
        self.fields = fields
        self.defaults = defaults or {}
        self.submit_text = submit

    def compose(self) -> ComposeResult:
        with Vertical(id="record-form-dialog"):
            yield Label(self.title_text, classes="field-label")
            for key, label, placeholder in self.fields:
                yield Label(label, classes="field-label")
                yield Input(value=self._value(key), placeholder=placeholder, id=key)
            with Horizontal(id="record-form-actions"):
                yield Button("Cancel", id="cancel")
                yield Button(self.submit_text, id="submit", variant="primary")

    def _value(self, key: str) -> str:
        value = self.defaults.get(key)
        return "" if value is None else str(value)

    def action_cancel(self) -> None:
        self.dismiss(None)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "cancel":
            self.dismiss(None)
            return

        if event.button.id != "submit":
            return

        raw = {key: self.query_one(f"#{key}", Input).value.strip() for key, _, _ in self.fields}
        try:
            values = parse_form(raw)
        except ValueError:
            self.app.bell()
            return

        self.dismiss(values)


class CartCopilotTUI(App[None]):
    """Interactive terminal UI for trips, items and settings."""

    TITLE = "Cart Copilot"
    SUB_TITLE = "Terminal Interface"

    DEFAULT_CSS = """
    #status {
        dock: bottom;
        height: 1;
        padding: 0 1;
        background: $boost;
        color: $text;
    }

    #trip-totals {
        height: auto;
        padding: 0 1;
        border: round $accent;
    }

    DataTable {
        height: 1fr;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("r", "refresh", "Refresh"),
        Binding("n", "new_record", "New"),
        Binding("a", "add_line", "Add to Trip"),
        Binding("e", "edit_selected", "Edit Selected"),
        Binding("f", "toggle_favorite", "Favorite"),
        Binding("x", "remove_selected", "Remove Selected"),
        Binding("1", "show_tab('trips')", "Trips"),
        Binding("2", "show_tab('items')", "Items"),
        Binding("3", "show_tab('settings')", "Settings"),
    ]

    def __init__(self, trip_manager: TripManager):
        super().__init__()
        self.trip_manager = trip_manager
        self.item_manager = trip_manager.items
        self.catalog_manager = trip_manager.catalog
        self._ids: dict[str, list[str]] = {
            "trips-table": [],
            "lines-table": [],
            "items-table": [],
            "stores-table": [],
            "categories-table": [],
        }
        self._current_trip: str | None = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with TabbedContent(initial="trips"):
            with TabPane("Trips", id="trips"):
                with Horizontal():
                    yield DataTable(id="trips-table")
                    with Vertical():
                        yield DataTable(id="lines-table")
                        yield Static("No trip selected", id="trip-totals")
            with TabPane("Items", id="items"):
                yield DataTable(id="items-table")
            with TabPane("Settings", id="settings"):
                with Horizontal():
                    yield DataTable(id="stores-table")
                    yield DataTable(id="categories-table")
        yield Static(
            "n:new  a:add to trip  e:edit  f:favorite  x:remove  r:refresh  q:quit",
            id="status",
        )
        yield Footer()

    def on_mount(self) -> None:
        columns = {
            "trips-table": ("Date", "Store", "Items", "Total"),
            "lines-table": ("Item", "Qty", "Price", "Tax", "Total"),
            "items-table": ("Item", "Category", "Price", "Tax", "Brand", "Fav"),
            "stores-table": ("Store", "Address"),
            "categories-table": ("Category", "Tax Rate", "Items"),
        }
        for table_id, names in columns.items():
            table = self.query_one(f"#{table_id}", DataTable)
            table.cursor_type = "row"
            table.add_columns(*names)

        self.action_refresh()

    # --- Actions ---

    def action_refresh(self) -> None:
        try:
            self._refresh_trips_table()
            self._refresh_trip_detail()
            self._refresh_items_table()
            self._refresh_settings_tables()
            self._set_status("Refreshed trips, items and settings")
        except CartCopilotError as exc:
            self._set_status(f"Refresh failed: {exc}")

    def action_show_tab(self, tab: str) -> None:
        self.query_one(TabbedContent).active = tab

    def action_new_record(self) -> None:
        tab = self._active_tab()
        if tab == "trips":
            self.push_screen(
                RecordFormScreen("New Shopping Trip", TRIP_FIELDS), self._handle_new_trip
            )
        elif tab == "items":
            self.push_screen(RecordFormScreen("Add Item", ITEM_FIELDS), self._handle_new_item)
        elif self._settings_table() == "stores-table":
            self.push_screen(RecordFormScreen("Add Store", STORE_FIELDS), self._handle_new_store)
        else:
            self.push_screen(
                RecordFormScreen("Add Category", CATEGORY_FIELDS), self._handle_new_category
            )

    def action_add_line(self) -> None:
        if self._current_trip is None:
            self._set_status("Select a trip first")
            return
        self.push_screen(
            RecordFormScreen("Add Item to Trip", LINE_FIELDS, {"quantity": 1}),
            self._handle_add_line,
        )

    def action_edit_selected(self) -> None:
        tab = self._active_tab()
        try:
            if tab == "trips":
                line_id = self._selected_id("lines-table")
                if line_id is None:
                    self._set_status("No trip item selected")
                    return
                line = self.trip_manager.find_line(line_id)
                self.push_screen(
                    RecordFormScreen(
                        "Change Quantity", QUANTITY_FIELDS, {"quantity": line.quantity}, "Save"
                    ),
                    lambda payload, selected=line_id: self._handle_edit_line(selected, payload),
                )
            elif tab == "items":
                item_id = self._selected_id("items-table")
                if item_id is None:
                    self._set_status("No item selected")
                    return
                view = self.item_manager.get_item(item_id)["data"]["item"]
                view["price"] = view["current_price"]
                self.push_screen(
                    RecordFormScreen("Edit Item", ITEM_FIELDS, view, "Save"),
                    lambda payload, selected=item_id: self._handle_edit_item(selected, payload),
                )
            else:
                self._edit_setting()
        except CartCopilotError as exc:
            self._set_status(str(exc))

    def action_toggle_favorite(self) -> None:
        item_id = self._selected_id("items-table")
        if self._active_tab() != "items" or item_id is None:
            self._set_status("Select an item on the Items tab")
            return
        self._run(lambda: self.item_manager.toggle_favorite(item_id))

    def action_remove_selected(self) -> None:
        tab = self._active_tab()
        if tab == "trips":
            line_id = self._selected_id("lines-table")
            trip_id = self._selected_id("trips-table")
            if self.focused is self.query_one("#lines-table", DataTable) and line_id:
                self._run(lambda: self.trip_manager.remove_line(line_id))
            elif trip_id:
                self._run(lambda: self.trip_manager.delete_trip(trip_id))
            else:
                self._set_status("No trip selected")
        elif tab == "items":
            item_id = self._selected_id("items-table")
            if item_id is None:
                self._set_status("No item selected")
                return
            self._run(lambda: self.item_manager.remove_item(item_id))
        else:
            table_id = self._settings_table()
            record_id = self._selected_id(table_id)
            if record_id is None:
                self._set_status("Nothing selected")
            elif table_id == "stores-table":
                self._run(lambda: self.catalog_manager.remove_store(record_id))
            else:
                self._run(lambda: self.catalog_manager.remove_category(record_id))

    # --- Events ---

    def on_data_table_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        if event.data_table.id != "trips-table":
            return
        self._current_trip = self._selected_id("trips-table")
        self._refresh_trip_detail()

    def on_tabbed_content_tab_activated(self, event: TabbedContent.TabActivated) -> None:
        self.trip_manager.telemetry.track_tab_selected(event.pane.id or "")

    # --- Table refresh ---

    def _refresh_trips_table(self) -> None:
        table = self._reset_table("trips-table")
        for trip in self.trip_manager.list_trips()["data"]["trips"]:
            self._ids["trips-table"].append(trip["id"])
            table.add_row(
                trip["date"][:10],
                trip["store"],
                str(trip["item_count"]),
                format_currency(trip["total"]),
                key=trip["id"],
            )

        if self._current_trip not in self._ids["trips-table"]:
            self._current_trip = self._ids["trips-table"][0] if self._ids["trips-table"] else None

    def _refresh_trip_detail(self) -> None:
        table = self._reset_table("lines-table")
        totals = self.query_one("#trip-totals", Static)
        if self._current_trip is None:
            totals.update("No Shopping Trips. Press n to start one.")
            return

        detail = self.trip_manager.get_trip(self._current_trip)["data"]["trip_detail"]
        for line in detail["items"]:
            self._ids["lines-table"].append(line["id"])
            table.add_row(
                line["name"],
                str(line["quantity"]),
                format_currency(line["unit_price"]),
                format_currency(line["tax"]),
                format_currency(line["total"]),
                key=line["id"],
            )

        breakdown = "\n".join(
            f"  {group['category']}: {format_currency(group['total'])}"
            for group in detail["categories"]
        )
        totals.update(
            f"[bold]{detail['store']}[/bold] {detail['date'][:10]}\n"
            f"Subtotal: {format_currency(detail['subtotal'])}  "
            f"Tax: {format_currency(detail['tax'])}  "
            f"[bold]Total: {format_currency(detail['total'])}[/bold]"
            + (f"\n{breakdown}" if breakdown else "")
        )

    def _refresh_items_table(self) -> None:
        table = self._reset_table("items-table")
        for item in self.item_manager.list_items()["data"]["items"]:
            self._ids["items-table"].append(item["id"])
            table.add_row(
                f"{item.get('emoji') or ''} {item['name']}".strip(),
                item["category"],
                format_currency(item["current_price"]),
                format_currency(item["tax"]),
                item.get("brand") or "-",
                "★" if item["is_favorite"] else "",
                key=item["id"],
            )

    def _refresh_settings_tables(self) -> None:
        stores = self._reset_table("stores-table")
        for store in self.catalog_manager.list_stores()["data"]["stores"]:
            self._ids["stores-table"].append(store["id"])
            stores.add_row(store["name"], store.get("address") or "-", key=store["id"])

        categories = self._reset_table("categories-table")
        for category in self.catalog_manager.list_categories()["data"]["categories"]:
            self._ids["categories-table"].append(category["id"])
            categories.add_row(
                f"{category.get('emoji') or ''} {category['name']}".strip(),
                f"{category['tax_rate'] * 100:.2f}%",
                str(category["item_count"]),
                key=category["id"],
            )

    # --- Form handlers ---

    def _handle_new_trip(self, payload: dict[str, Any] | None) -> None:
        if payload is None:
            self._set_status("New trip canceled")
            return
        if not payload["store"]:
            self._set_status("A trip needs a store")
            return

        result = self._run(lambda: self.trip_manager.create_trip(payload["store"]))
        if result:
            self._current_trip = result["data"]["trip"]["id"]
            self._refresh_trip_detail()

    def _handle_add_line(self, payload: dict[str, Any] | None) -> None:
        if payload is None or self._current_trip is None:
            self._set_status("Add to trip canceled")
            return

        trip_id = self._current_trip
        self._run(
            lambda: self.trip_manager.add_item_to_trip(
                trip_id, payload["item"] or "", quantity=payload["quantity"] or 1
            )
        )

    def _handle_edit_line(self, line_id: str, payload: dict[str, Any] | None) -> None:
        if payload is None:
            self._set_status("Edit canceled")
            return
        self._run(lambda: self.trip_manager.update_quantity(line_id, payload["quantity"] or 0))

    def _handle_new_item(self, payload: dict[str, Any] | None) -> None:
        if payload is None:
            self._set_status("Add item canceled")
            return

        self._run(
            lambda: self.item_manager.add_item(
                name=payload["name"] or "",
                price=payload["price"] or Decimal("0"),
                category=payload["category"],
                brand=payload["brand"],
                emoji=payload["emoji"],
                unit=payload["unit"],
                unit_type=payload["unit_type"],
            )
        )

    def _handle_edit_item(self, item_id: str, payload: dict[str, Any] | None) -> None:
        if payload is None:
            self._set_status("Edit canceled")
            return

        self._run(
            lambda: self.item_manager.update_item(
                item_id,
                name=payload["name"],
                price=payload["price"],
                category=payload["category"],
                brand=payload["brand"],
                emoji=payload["emoji"],
                unit=payload["unit"],
                unit_type=payload["unit_type"],
            )
        )

    def _handle_new_store(self, payload: dict[str, Any] | None) -> None:
        if payload is None:
            self._set_status("Add store canceled")
            return
        self._run(
            lambda: self.catalog_manager.add_store(
                payload["name"] or "", address=payload["address"] or ""
            )
        )

    def _handle_new_category(self, payload: dict[str, Any] | None) -> None:
        if payload is None:
            self._set_status("Add category canceled")
            return
        self._run(
            lambda: self.catalog_manager.add_category(
                payload["name"] or "",
                tax_rate=payload["tax_rate"] or 0.0,
                emoji=payload["emoji"],
            )
        )

    def _edit_setting(self) -> None:
        table_id = self._settings_table()
        record_id = self._selected_id(table_id)
        if record_id is None:
            self._set_status("Nothing selected")
            return

        if table_id == "stores-table":
            store = self.catalog_manager.find_store(record_id)
            self.push_screen(
                RecordFormScreen("Edit Store", STORE_FIELDS, store.model_dump(), "Save"),
                lambda payload, selected=record_id: self._handle_edit_store(selected, payload),
            )
            return

        category = self.catalog_manager.find_category(record_id)
        self.push_screen(
            RecordFormScreen("Edit Category", CATEGORY_FIELDS, category.model_dump(), "Save"),
            lambda payload, selected=record_id: self._handle_edit_category(selected, payload),
        )

    def _handle_edit_store(self, store_id: str, payload: dict[str, Any] | None) -> None:
        if payload is None:
            self._set_status("Edit canceled")
            return
        self._run(
            lambda: self.catalog_manager.update_store(
                store_id, name=payload["name"], address=payload["address"]
            )
        )

    def _handle_edit_category(self, category_id: str, payload: dict[str, Any] | None) -> None:
        if payload is None:
            self._set_status("Edit canceled")
            return
        self._run(
            lambda: self.catalog_manager.update_category(
                category_id,
                name=payload["name"],
                tax_rate=payload["tax_rate"],
                emoji=payload["emoji"],
            )
        )

    # --- Helpers ---

    def _run(self, operation) -> dict[str, Any] | None:
        """Run a manager call, refresh, and show its message in the status bar."""
        try:
            result = operation()
        except CartCopilotError as exc:
            self._set_status(str(exc))
            return None

        self.action_refresh()
        self._set_status(result["message"])
        return result

    def _reset_table(self, table_id: str) -> DataTable:
        table = self.query_one(f"#{table_id}", DataTable)
        table.clear(columns=False)
        self._ids[table_id] = []
        return table

    def _selected_id(self, table_id: str) -> str | None:
        table = self.query_one(f"#{table_id}", DataTable)
        ids = self._ids[table_id]
        row = table.cursor_row
        if row is None or row < 0 or row >= len(ids):
            return None
        return ids[row]

    def _settings_table(self) -> str:
        if self.focused is self.query_one("#stores-table", DataTable):
            return "stores-table"
        return "categories-table"

    def _active_tab(self) -> str:
        tabbed_content = self.query_one(TabbedContent)
        return tabbed_content.active or "trips"

    def _set_status(self, message: str) -> None:
        self.query_one("#status", Static).update(message)
