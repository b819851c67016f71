"""Shared test fixtures for Cart Copilot."""

from decimal import Decimal

import pytest

from cart_copilot.catalog_manager import CatalogManager
from cart_copilot.data_store import DataStore
from cart_copilot.item_manager import ItemManager
from cart_copilot.models import Category, Item, ShoppingItem, ShoppingTrip, Store
from cart_copilot.sqlite_store import SQLiteStore
from cart_copilot.telemetry import TelemetryManager
from cart_copilot.trip_manager import TripManager


@pytest.fixture(autouse=True)
def reset_shared_telemetry(monkeypatch):
    """Keep the process-wide telemetry instance from leaking between tests."""
    monkeypatch.setattr(TelemetryManager, "_shared", None)


@pytest.fixture
def temp_data_dir(tmp_path):
    """Create a temporary data directory."""
    data_dir = tmp_path / "test_data"
    data_dir.mkdir()
    return data_dir


@pytest.fixture
def data_store(temp_data_dir):
    """Create a DataStore with temporary directory."""
    return DataStore(data_dir=temp_data_dir)


@pytest.fixture
def sqlite_store(tmp_path):
    """Create a SQLite store with a temporary database."""
    return SQLiteStore(db_path=tmp_path / "test.db")


@pytest.fixture
def signals():
    """Signals received by the recording telemetry sink."""
    return []


@pytest.fixture
def telemetry(signals):
    """Telemetry that records signals instead of logging them."""
    return TelemetryManager(sink=lambda event, props: signals.append((event, props)))


@pytest.fixture
def catalog_manager(data_store, telemetry):
    return CatalogManager(data_store=data_store, telemetry=telemetry)


@pytest.fixture
def item_manager(data_store, telemetry):
    return ItemManager(data_store=data_store, telemetry=telemetry)


@pytest.fixture
def trip_manager(data_store, telemetry):
    return TripManager(data_store=data_store, telemetry=telemetry)


@pytest.fixture
def costco(data_store):
    """A saved store."""
    store = Store(name="Costco", address="1 Warehouse Way")
    with data_store.transaction():
        data_store.insert(store)
    return store


@pytest.fixture
def grocery(data_store):
    """A saved category with the reduced grocery rate."""
    category = Category(name="Produce", tax_rate=0.0175, emoji="🍎")
    with data_store.transaction():
        data_store.insert(category)
    return category


@pytest.fixture
def general(data_store):
    """A saved category with the general 8.25% rate."""
    category = Category(name="Household", tax_rate=0.0825, emoji="🏠")
    with data_store.transaction():
        data_store.insert(category)
    return category


@pytest.fixture
def paper_towels(data_store, general):
    """A $10.00 item in the 8.25% category."""
    item = Item(name="Paper Towels", current_price=Decimal("10.00"), category_id=general.id)
    with data_store.transaction():
        data_store.insert(item)
    return item


@pytest.fixture
def bananas(data_store, grocery):
    """A $2.00 item in the 1.75% category."""
    item = Item(name="Bananas", current_price=Decimal("2.00"), category_id=grocery.id)
    with data_store.transaction():
        data_store.insert(item)
    return item


@pytest.fixture
def trip(data_store, costco):
    """A saved, empty trip to Costco."""
    shopping_trip = ShoppingTrip(store_id=costco.id)
    with data_store.transaction():
        data_store.insert(shopping_trip)
    return shopping_trip


@pytest.fixture
def add_line(data_store, costco):
    """Factory that puts an item on a trip."""

    def _add(shopping_trip, item, quantity=1):
        line = ShoppingItem(
            item_id=item.id, quantity=quantity, store_id=costco.id, trip_id=shopping_trip.id
        )
        with data_store.transaction():
            data_store.insert(line)
        return line

    return _add
