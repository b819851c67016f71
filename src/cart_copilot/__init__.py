"""Cart Copilot - Grocery trip tracking with live prices and sales tax."""

from .bootstrap import bootstrap_data_if_needed
from .catalog_manager import CatalogManager
from .config import ConfigManager
from .data_store import BackendType, create_data_store, DataStore
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
from .models import Category, Item, ShoppingItem, ShoppingTrip, Store
from .output_formatter import OutputFormatter
from .pricing import CategoryTotals, PriceCalculator, TripSummary, format_currency
from .sqlite_store import SQLiteStore
from .telemetry import TelemetryManager
from .trip_manager import TripManager

__version__ = "0.1.0"

__all__ = [
    "BackendType",
    "bootstrap_data_if_needed",
    "CartCopilotError",
    "CatalogManager",
    "Category",
    "CategoryTotals",
    "ConfigManager",
    "create_data_store",
    "DataStore",
    "format_currency",
    "InvalidPriceError",
    "InvalidQuantityError",
    "InvalidUnitError",
    "Item",
    "ItemManager",
    "OutputFormatter",
    "PersistenceError",
    "PriceCalculator",
    "RecordNotFoundError",
    "ShoppingItem",
    "ShoppingTrip",
    "SQLiteStore",
    "Store",
    "TelemetryManager",
    "TripManager",
    "TripSummary",
    "ValidationError",
]
