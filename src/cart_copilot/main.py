"""CLI entry point for Cart Copilot."""

import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Annotated, NoReturn

import typer

from .bootstrap import bootstrap_data_if_needed
from .capture import FilePhotoPicker, StaticScanner
from .catalog_manager import CatalogManager
from .config import ConfigManager
from .data_store import BackendType, DataStoreProtocol, create_data_store
from .errors import (
    CartCopilotError,
    InvalidPriceError,
    InvalidQuantityError,
    InvalidUnitError,
    PersistenceError,
    RecordNotFoundError,
    ValidationError,
)
from .item_manager import ItemManager
from .models import Category, Store
from .output_formatter import OutputFormatter
from .telemetry import TelemetryManager
from .trip_manager import TripManager
from .tui import CartCopilotTUI

app = typer.Typer(
    name="cart",
    help="Track grocery trips, prices and sales tax",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

# Global state for formatter and config (set by callback)
formatter: OutputFormatter = OutputFormatter()
config: ConfigManager | None = None
data_store: DataStoreProtocol | None = None
catalog_manager: CatalogManager | None = None
item_manager: ItemManager | None = None
trip_manager: TripManager | None = None

ERROR_CODES: list[tuple[type[CartCopilotError], str]] = [
    (InvalidPriceError, "INVALID_PRICE"),
    (InvalidUnitError, "INVALID_UNIT"),
    (InvalidQuantityError, "INVALID_QUANTITY"),
    (RecordNotFoundError, "NOT_FOUND"),
    (ValidationError, "VALIDATION_ERROR"),
    (PersistenceError, "PERSISTENCE_ERROR"),
]


def error_code_for(error: CartCopilotError) -> str | None:
    for error_type, code in ERROR_CODES:
        if isinstance(error, error_type):
            return code
    return None


def fail(error: CartCopilotError) -> NoReturn:
    """Report a domain error and exit with status 1."""
    formatter.error(str(error), error_code=error_code_for(error))
    raise typer.Exit(code=1)


def get_config() -> ConfigManager:
    """Get or create ConfigManager instance."""
    global config
    if config is None:
        config = ConfigManager()
    return config


def get_data_store() -> DataStoreProtocol:
    """Get or create the data store using config values."""
    global data_store
    if data_store is None:
        cfg = get_config()
        backend = BackendType(cfg.data.backend)
        data_store = create_data_store(backend=backend, data_dir=cfg.data.storage_dir)
    return data_store


def get_catalog_manager() -> CatalogManager:
    """Get or create CatalogManager instance."""
    global catalog_manager
    if catalog_manager is None:
        catalog_manager = CatalogManager(get_data_store())
    return catalog_manager


def get_item_manager() -> ItemManager:
    """Get or create ItemManager instance."""
    global item_manager
    if item_manager is None:
        item_manager = ItemManager(get_data_store())
    return item_manager


def get_trip_manager() -> TripManager:
    """Get or create TripManager instance."""
    global trip_manager
    if trip_manager is None:
        trip_manager = TripManager(get_data_store())
    return trip_manager


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
        force=True,
    )


@app.callback()
def main(
    ctx: typer.Context,
    json_output: Annotated[
        bool, typer.Option("--json", help="Output as JSON for programmatic use")
    ] = False,
    data_dir: Annotated[Path | None, typer.Option("--data-dir", help="Data directory path")] = None,
) -> None:
    """Cart Copilot CLI - Track what you buy and what it really costs."""
    global formatter, config, data_store, catalog_manager, item_manager, trip_manager

    formatter = OutputFormatter(json_mode=json_output)

    # Load config early
    config = ConfigManager()
    setup_logging(config.logging.level)
    TelemetryManager.configure(enabled=config.telemetry.enabled)

    # CLI --data-dir overrides config, which overrides default
    effective_data_dir = data_dir if data_dir else config.data.storage_dir
    try:
        backend = BackendType(config.data.backend)
    except ValueError:
        formatter.error(
            f"Unknown storage backend '{config.data.backend}'", error_code="VALIDATION_ERROR"
        )
        raise typer.Exit(code=1)

    try:
        data_store = create_data_store(backend=backend, data_dir=effective_data_dir)
        catalog_manager = CatalogManager(data_store)
        item_manager = ItemManager(data_store)
        trip_manager = TripManager(data_store)

        # The explicit command reports its own result
        if ctx.invoked_subcommand != "bootstrap":
            bootstrap_data_if_needed(data_store)
    except CartCopilotError as e:
        logger.error("Startup failed: %s", e)
        formatter.error(f"Could not open data store: {e}", error_code="PERSISTENCE_ERROR")
        raise typer.Exit(code=1)


@app.command()
def bootstrap() -> None:
    """Seed the default stores and categories if none exist."""
    try:
        ds = get_data_store()
        seeded = bootstrap_data_if_needed(ds)
        message = "Added default stores and categories" if seeded else "Defaults already present"
        output_data = {
            "success": True,
            "message": message,
            "data": {
                "bootstrapped": seeded,
                "store_count": len(ds.fetch_all(Store)),
                "category_count": len(ds.fetch_all(Category)),
            },
        }
        formatter.output(output_data, message)
    except CartCopilotError as e:
        fail(e)


@app.command()
def tui() -> None:
    """Open the interactive terminal UI."""
    CartCopilotTUI(get_trip_manager()).run()


# Store subcommand group
store_app = typer.Typer(help="Store commands")
app.add_typer(store_app, name="store")


@store_app.command("add")
def add_store(
    name: Annotated[str, typer.Argument(help="Store name")],
    address: Annotated[str, typer.Option("--address", "-a", help="Street address")] = "",
) -> None:
    """Add a store."""
    try:
        result = get_catalog_manager().add_store(name, address=address)
        formatter.output(result, result["message"])
    except CartCopilotError as e:
        fail(e)


@store_app.command("list")
def list_stores() -> None:
    """List all stores."""
    try:
        result = get_catalog_manager().list_stores()
        formatter.output(result)
    except CartCopilotError as e:
        fail(e)


@store_app.command("update")
def update_store(
    store: Annotated[str, typer.Argument(help="Store ID or name")],
    name: Annotated[str | None, typer.Option("--name", "-n", help="New name")] = None,
    address: Annotated[str | None, typer.Option("--address", "-a", help="New address")] = None,
) -> None:
    """Rename a store or change its address."""
    try:
        result = get_catalog_manager().update_store(store, name=name, address=address)
        formatter.output(result, result["message"])
    except CartCopilotError as e:
        fail(e)


@store_app.command("remove")
def remove_store(
    store: Annotated[str, typer.Argument(help="Store ID or name")],
) -> None:
    """Remove a store that no item or trip uses."""
    try:
        result = get_catalog_manager().remove_store(store)
        formatter.output(result, result["message"])
    except CartCopilotError as e:
        fail(e)


# Category subcommand group
category_app = typer.Typer(help="Category and tax rate commands")
app.add_typer(category_app, name="category")


@category_app.command("add")
def add_category(
    name: Annotated[str, typer.Argument(help="Category name")],
    tax_rate: Annotated[
        float, typer.Option("--tax-rate", "-t", help="Tax rate as a fraction, e.g. 0.0825")
    ] = 0.0,
    emoji: Annotated[str | None, typer.Option("--emoji", "-e", help="Display emoji")] = None,
) -> None:
    """Add a category."""
    try:
        result = get_catalog_manager().add_category(name, tax_rate=tax_rate, emoji=emoji)
        formatter.output(result, result["message"])
    except CartCopilotError as e:
        fail(e)


@category_app.command("list")
def list_categories() -> None:
    """List categories with their tax rates."""
    try:
        result = get_catalog_manager().list_categories()
        formatter.output(result)
    except CartCopilotError as e:
        fail(e)


@category_app.command("update")
def update_category(
    category: Annotated[str, typer.Argument(help="Category ID or name")],
    name: Annotated[str | None, typer.Option("--name", "-n", help="New name")] = None,
    tax_rate: Annotated[
        float | None, typer.Option("--tax-rate", "-t", help="New tax rate as a fraction")
    ] = None,
    emoji: Annotated[str | None, typer.Option("--emoji", "-e", help="New emoji")] = None,
) -> None:
    """Change a category. Trip totals pick up a new tax rate immediately."""
    try:
        result = get_catalog_manager().update_category(
            category, name=name, tax_rate=tax_rate, emoji=emoji
        )
        formatter.output(result, result["message"])
    except CartCopilotError as e:
        fail(e)


@category_app.command("remove")
def remove_category(
    category: Annotated[str, typer.Argument(help="Category ID or name")],
) -> None:
    """Remove a category that no item uses."""
    try:
        result = get_catalog_manager().remove_category(category)
        formatter.output(result, result["message"])
    except CartCopilotError as e:
        fail(e)


# Item subcommand group
item_app = typer.Typer(help="Item catalog commands")
app.add_typer(item_app, name="item")


@item_app.command("add")
def add_item(
    name: Annotated[str, typer.Argument(help="Item name")],
    price: Annotated[float, typer.Option("--price", "-p", help="Current price")] = 0.0,
    category: Annotated[
        str | None, typer.Option("--category", "-c", help="Category ID or name")
    ] = None,
    brand: Annotated[str | None, typer.Option("--brand", "-b", help="Brand")] = None,
    upc: Annotated[str | None, typer.Option("--upc", help="Barcode")] = None,
    emoji: Annotated[str | None, typer.Option("--emoji", "-e", help="Display emoji")] = None,
    unit: Annotated[int | None, typer.Option("--unit", "-u", help="Units per package")] = None,
    unit_type: Annotated[
        str | None, typer.Option("--unit-type", help="Unit label, e.g. oz")
    ] = None,
    store: Annotated[str | None, typer.Option("--store", "-s", help="Preferred store")] = None,
    favorite: Annotated[bool, typer.Option("--favorite", "-f", help="Mark as favorite")] = False,
) -> None:
    """Add an item to the catalog."""
    try:
        cfg = get_config()
        result = get_item_manager().add_item(
            name=name,
            price=price,
            category=category or cfg.defaults.category,
            brand=brand,
            upc=upc,
            emoji=emoji,
            unit=unit,
            unit_type=unit_type,
            preferred_store=store,
            is_favorite=favorite,
        )
        formatter.output(result, result["message"])
    except CartCopilotError as e:
        fail(e)


@item_app.command("list")
def list_items(
    search: Annotated[str | None, typer.Option("--search", help="Filter by name")] = None,
    favorites: Annotated[bool, typer.Option("--favorites", help="Only favorites")] = False,
) -> None:
    """List catalog items grouped by category."""
    try:
        result = get_item_manager().list_items(search=search, favorites_only=favorites)
        formatter.output(result)
    except CartCopilotError as e:
        fail(e)


@item_app.command("show")
def show_item(
    item: Annotated[str, typer.Argument(help="Item ID or name")],
) -> None:
    """Show an item with its tax and price history."""
    try:
        result = get_item_manager().get_item(item)
        formatter.output(result)
    except CartCopilotError as e:
        fail(e)


@item_app.command("update")
def update_item(
    item: Annotated[str, typer.Argument(help="Item ID or name")],
    name: Annotated[str | None, typer.Option("--name", "-n", help="New name")] = None,
    category: Annotated[
        str | None, typer.Option("--category", "-c", help="Category ID or name")
    ] = None,
    brand: Annotated[str | None, typer.Option("--brand", "-b", help="Brand")] = None,
    emoji: Annotated[str | None, typer.Option("--emoji", "-e", help="Display emoji")] = None,
    unit_type: Annotated[
        str | None, typer.Option("--unit-type", help="Unit label, e.g. oz")
    ] = None,
    store: Annotated[str | None, typer.Option("--store", "-s", help="Preferred store")] = None,
) -> None:
    """Change an item's details. Use `price` and `unit` for those fields."""
    try:
        result = get_item_manager().update_item(
            item,
            name=name,
            category=category,
            brand=brand,
            emoji=emoji,
            unit_type=unit_type,
            preferred_store=store,
        )
        formatter.output(result, result["message"])
    except CartCopilotError as e:
        fail(e)


@item_app.command("price")
def update_price(
    item: Annotated[str, typer.Argument(help="Item ID or name")],
    price: Annotated[float, typer.Argument(help="New price")],
) -> None:
    """Change an item's price. The old price goes into its history."""
    try:
        result = get_item_manager().update_price(item, price)
        formatter.output(result, result["message"])
    except CartCopilotError as e:
        fail(e)


@item_app.command("unit")
def update_unit(
    item: Annotated[str, typer.Argument(help="Item ID or name")],
    unit: Annotated[int, typer.Argument(help="Units per package")],
) -> None:
    """Change how many units an item's package holds."""
    try:
        result = get_item_manager().update_unit(item, unit)
        formatter.output(result, result["message"])
    except CartCopilotError as e:
        fail(e)


@item_app.command("favorite")
def toggle_favorite(
    item: Annotated[str, typer.Argument(help="Item ID or name")],
) -> None:
    """Toggle an item's favorite flag."""
    try:
        result = get_item_manager().toggle_favorite(item)
        formatter.output(result, result["message"])
    except CartCopilotError as e:
        fail(e)


@item_app.command("remove")
def remove_item(
    item: Annotated[str, typer.Argument(help="Item ID or name")],
) -> None:
    """Remove an item that no trip contains."""
    try:
        result = get_item_manager().remove_item(item)
        formatter.output(result, result["message"])
    except CartCopilotError as e:
        fail(e)


@item_app.command("history")
def price_history(
    item: Annotated[str, typer.Argument(help="Item ID or name")],
) -> None:
    """Show an item's earlier prices."""
    try:
        result = get_item_manager().price_history(item)
        formatter.output(result)
    except CartCopilotError as e:
        fail(e)


@item_app.command("scan")
def scan_barcode(
    item: Annotated[str, typer.Argument(help="Item ID or name")],
    upc: Annotated[str | None, typer.Option("--upc", help="Barcode payload")] = None,
) -> None:
    """Record an item's barcode."""
    try:
        result = asyncio.run(get_item_manager().scan_barcode(item, StaticScanner(upc)))
        if not result["success"]:
            formatter.warning(result["message"])
            return
        formatter.output(result, result["message"])
    except CartCopilotError as e:
        fail(e)


@item_app.command("photo")
def attach_photo(
    item: Annotated[str, typer.Argument(help="Item ID or name")],
    path: Annotated[
        Path, typer.Argument(help="Image file", exists=True, dir_okay=False, readable=True)
    ],
) -> None:
    """Attach a photo to an item."""
    try:
        result = asyncio.run(get_item_manager().attach_photo(item, FilePhotoPicker(path)))
        if not result["success"]:
            formatter.warning(result["message"])
            return
        formatter.output(result, result["message"])
    except CartCopilotError as e:
        fail(e)
    except OSError as e:
        formatter.error(f"Could not read {path}: {e}")
        raise typer.Exit(code=1)


# Trip subcommand group
trip_app = typer.Typer(help="Shopping trip commands")
app.add_typer(trip_app, name="trip")


@trip_app.command("new")
def new_trip(
    store: Annotated[str | None, typer.Argument(help="Store ID or name")] = None,
    date: Annotated[
        datetime | None,
        typer.Option("--date", "-d", help="Trip date", formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M"]),
    ] = None,
) -> None:
    """Start a shopping trip."""
    try:
        cfg = get_config()
        result = get_trip_manager().create_trip(store or cfg.defaults.store, date=date)
        formatter.output(result, result["message"])
    except CartCopilotError as e:
        fail(e)


@trip_app.command("list")
def list_trips(
    store: Annotated[str | None, typer.Option("--store", "-s", help="Only this store")] = None,
) -> None:
    """List trips, newest first."""
    try:
        result = get_trip_manager().list_trips(store=store)
        formatter.output(result)
    except CartCopilotError as e:
        fail(e)


@trip_app.command("show")
def show_trip(
    trip_id: Annotated[str, typer.Argument(help="Trip ID")],
) -> None:
    """Show a trip's items, tax and totals."""
    try:
        result = get_trip_manager().get_trip(trip_id)
        formatter.output(result)
    except CartCopilotError as e:
        fail(e)


@trip_app.command("add")
def add_to_trip(
    trip_id: Annotated[str, typer.Argument(help="Trip ID")],
    item: Annotated[str, typer.Argument(help="Item ID or name")],
    quantity: Annotated[int, typer.Option("--quantity", "-q", help="How many")] = 1,
    store: Annotated[
        str | None, typer.Option("--store", "-s", help="Store, if not the trip's")
    ] = None,
) -> None:
    """Add a catalog item to a trip."""
    try:
        result = get_trip_manager().add_item_to_trip(trip_id, item, quantity=quantity, store=store)
        formatter.output(result, result["message"])
    except CartCopilotError as e:
        fail(e)


@trip_app.command("quick-add")
def quick_add(
    trip_id: Annotated[str, typer.Argument(help="Trip ID")],
    name: Annotated[str, typer.Argument(help="New item name")],
    price: Annotated[float, typer.Option("--price", "-p", help="Current price")] = 0.0,
    category: Annotated[
        str | None, typer.Option("--category", "-c", help="Category ID or name")
    ] = None,
    quantity: Annotated[int, typer.Option("--quantity", "-q", help="How many")] = 1,
    store: Annotated[
        str | None, typer.Option("--store", "-s", help="Store, if not the trip's")
    ] = None,
) -> None:
    """Create a catalog item and add it to a trip."""
    try:
        cfg = get_config()
        result = get_trip_manager().add_new_item_to_trip(
            trip_id,
            name=name,
            price=price,
            category=category or cfg.defaults.category,
            quantity=quantity,
            store=store,
        )
        formatter.output(result, result["message"])
    except CartCopilotError as e:
        fail(e)


@trip_app.command("qty")
def update_quantity(
    line_id: Annotated[str, typer.Argument(help="Line ID")],
    quantity: Annotated[int, typer.Argument(help="New quantity")],
) -> None:
    """Change a line's quantity."""
    try:
        result = get_trip_manager().update_quantity(line_id, quantity)
        formatter.output(result, result["message"])
    except CartCopilotError as e:
        fail(e)


@trip_app.command("remove-item")
def remove_line(
    line_id: Annotated[str, typer.Argument(help="Line ID")],
) -> None:
    """Remove a line from its trip."""
    try:
        result = get_trip_manager().remove_line(line_id)
        formatter.output(result, result["message"])
    except CartCopilotError as e:
        fail(e)


@trip_app.command("delete")
def delete_trip(
    trip_id: Annotated[str, typer.Argument(help="Trip ID")],
) -> None:
    """Delete a trip and its lines."""
    try:
        result = get_trip_manager().delete_trip(trip_id)
        formatter.output(result, result["message"])
    except CartCopilotError as e:
        fail(e)


if __name__ == "__main__":
    app()
