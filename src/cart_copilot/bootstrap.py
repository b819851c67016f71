"""Seeding of the default store and category catalog."""

import logging

from .data_store import DataStoreProtocol
from .models import Category, Store

logger = logging.getLogger(__name__)

GROCERY_TAX_RATE = 0.0175
GENERAL_TAX_RATE = 0.0825

DEFAULT_STORES: list[str] = [
    "Aldi",
    "Amazon",
    "Costco",
    "Instacart",
    "Meijer",
    "Target",
    "Trader Joe's",
    "Walmart",
    "Whole Foods",
    "Other",
]

# (name, tax rate, emoji)
DEFAULT_CATEGORIES: list[tuple[str, float, str]] = [
    # Main categories
    ("Groceries", GROCERY_TAX_RATE, "🛒"),
    ("Prepared Food", GENERAL_TAX_RATE, "🍱"),
    ("Household", GENERAL_TAX_RATE, "🏠"),
    ("Clothing", GENERAL_TAX_RATE, "👕"),
    ("Electronics", GENERAL_TAX_RATE, "🔌"),
    # Grocery
    ("Bakery", GROCERY_TAX_RATE, "🥐"),
    ("Baking Items", GROCERY_TAX_RATE, "🧁"),
    ("Beverages", GROCERY_TAX_RATE, "🥤"),
    ("Breads and Cereals", GROCERY_TAX_RATE, "🍞"),
    ("Canned Foods & Soups", GROCERY_TAX_RATE, "🥫"),
    ("Coffee and Tea", GROCERY_TAX_RATE, "☕"),
    ("Dairy, Eggs and Cheese", GROCERY_TAX_RATE, "🧀"),
    ("Deli", GROCERY_TAX_RATE, "🥪"),
    ("Frozen Foods", GROCERY_TAX_RATE, "🧊"),
    ("Meat", GROCERY_TAX_RATE, "🥩"),
    ("Pantry", GROCERY_TAX_RATE, "🫙"),
    ("Pasta, Rice & Beans", GROCERY_TAX_RATE, "🍝"),
    ("Pet Care", GROCERY_TAX_RATE, "🐾"),
    ("Produce", GROCERY_TAX_RATE, "🥦"),
    ("Sauces & Condiments", GROCERY_TAX_RATE, "🥫"),
    ("Seafood", GROCERY_TAX_RATE, "🐟"),
    ("Snacks & Candy", GROCERY_TAX_RATE, "🍬"),
    ("Spices & Seasonings", GROCERY_TAX_RATE, "🧂"),
    ("Wine, Beer & Spirits", GENERAL_TAX_RATE, "🍷"),
    # Home
    ("Baby Care", GENERAL_TAX_RATE, "🍼"),
    ("Childcare", GENERAL_TAX_RATE, "🧸"),
    ("Cleaning Supplies", GENERAL_TAX_RATE, "🧽"),
    ("Laundry", GENERAL_TAX_RATE, "🧺"),
    ("Paper Products", GENERAL_TAX_RATE, "🧻"),
    ("Personal Care", GENERAL_TAX_RATE, "🧴"),
    ("Other", GENERAL_TAX_RATE, "📦"),
]


def default_stores() -> list[Store]:
    return [Store(name=name, address="", is_default=True) for name in DEFAULT_STORES]


def default_categories() -> list[Category]:
    return [
        Category(name=name, tax_rate=rate, emoji=emoji, is_default=True)
        for name, rate, emoji in DEFAULT_CATEGORIES
    ]


def bootstrap_data_if_needed(data_store: DataStoreProtocol) -> bool:
    """Seed default stores and categories when none exist yet.

    Any existing store or category, even a lone one, counts as already
    bootstrapped, so this is safe to call on every start.

    Args:
        data_store: Store to seed

    Returns:
        True if defaults were inserted, False if nothing was written

    Raises:
        PersistenceError: If the save fails. No defaults are left behind.
    """
    if data_store.fetch_all(Store) or data_store.fetch_all(Category):
        logger.debug("Catalog already present, skipping bootstrap")
        return False

    with data_store.transaction():
        for store in default_stores():
            data_store.insert(store)
        for category in default_categories():
            data_store.insert(category)

    logger.info(
        "Bootstrapped %d default stores and %d default categories",
        len(DEFAULT_STORES),
        len(DEFAULT_CATEGORIES),
    )
    return True
