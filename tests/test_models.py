"""Tests for data models."""

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from cart_copilot.errors import (
    InvalidPriceError,
    InvalidQuantityError,
    InvalidUnitError,
    ValidationError,
)
from cart_copilot.models import Category, Item, ShoppingItem, ShoppingTrip, Store


@pytest.fixture
def item():
    return Item(name="Milk", current_price=Decimal("3.49"), category_id=uuid4())


class TestNames:
    """Tests for name handling."""

    def test_blank_name_becomes_untitled(self):
        """Empty and whitespace names are stored as 'Untitled'."""
        assert Store(name="").name == "Untitled"
        assert Category(name="   ").name == "Untitled"
        assert Item(name="", category_id=uuid4()).name == "Untitled"

    def test_rename_to_blank(self):
        """Assigning a blank name is coerced too."""
        store = Store(name="Costco")
        store.name = ""
        assert store.name == "Untitled"

    def test_name_is_trimmed(self):
        assert Store(name="  Kroger ").name == "Kroger"


class TestCategory:
    """Tests for Category model."""

    def test_defaults(self):
        category = Category(name="Snacks")
        assert category.tax_rate == 0.0
        assert category.is_default is False
        assert category.emoji is None

    def test_rejects_rate_above_one(self):
        """A tax rate is a fraction, so 8.25 is a mistake for 0.0825."""
        with pytest.raises(ValidationError):
            Category(name="Snacks", tax_rate=8.25)

    def test_rejects_negative_rate(self):
        category = Category(name="Snacks", tax_rate=0.05)
        with pytest.raises(ValidationError):
            category.tax_rate = -0.01
        assert category.tax_rate == 0.05


class TestItemPrice:
    """Tests for item prices and price history."""

    def test_float_price_is_exact(self):
        """Floats go through str so 0.1 stays 0.1."""
        item = Item(name="Gum", current_price=0.1, category_id=uuid4())
        assert item.current_price == Decimal("0.1")

    def test_negative_price_rejected_on_create(self):
        with pytest.raises(InvalidPriceError):
            Item(name="Gum", current_price=Decimal("-1"), category_id=uuid4())

    def test_update_price_records_old_price(self, item):
        """The superseded price is logged under the change time."""
        changed_at = datetime(2024, 3, 1, 9, 0)
        item.update_price(Decimal("3.99"), changed_at=changed_at)

        assert item.current_price == Decimal("3.99")
        assert item.price_history == {changed_at: Decimal("3.49")}

    def test_update_price_accepts_strings(self, item):
        item.update_price("4.25")
        assert item.current_price == Decimal("4.25")
        assert list(item.price_history.values()) == [Decimal("3.49")]

    def test_invalid_price_leaves_item_unchanged(self, item):
        """A rejected price neither changes the price nor touches the history."""
        with pytest.raises(InvalidPriceError):
            item.update_price(Decimal("-0.01"))

        assert item.current_price == Decimal("3.49")
        assert item.price_history == {}

    @pytest.mark.parametrize("bad_price", [float("inf"), float("nan"), "-Infinity", "NaN", "abc"])
    def test_non_finite_price_leaves_item_unchanged(self, item, bad_price):
        with pytest.raises(InvalidPriceError):
            item.update_price(bad_price)

        assert item.current_price == Decimal("3.49")
        assert item.price_history == {}

    @pytest.mark.parametrize("bad_price", [float("inf"), Decimal("NaN"), "Infinity"])
    def test_non_finite_price_rejected_on_create(self, bad_price):
        with pytest.raises(InvalidPriceError):
            Item(name="Gum", current_price=bad_price, category_id=uuid4())

    def test_same_timestamp_keeps_both_entries(self, item):
        """Two changes logged at the same moment are both kept."""
        changed_at = datetime(2024, 3, 1, 9, 0)
        item.update_price("3.99", changed_at=changed_at)
        item.update_price("4.49", changed_at=changed_at)

        assert item.current_price == Decimal("4.49")
        assert sorted(item.price_history.values()) == [Decimal("3.49"), Decimal("3.99")]
        assert item.price_history[changed_at] == Decimal("3.49")

    def test_zero_price_allowed(self, item):
        item.update_price(0)
        assert item.current_price == Decimal("0")


class TestItemUnit:
    """Tests for item units."""

    def test_update_unit(self, item):
        item.update_unit(12)
        assert item.unit == 12

    @pytest.mark.parametrize("bad_unit", [0, -3])
    def test_invalid_unit_leaves_item_unchanged(self, item, bad_unit):
        item.update_unit(6)
        with pytest.raises(InvalidUnitError):
            item.update_unit(bad_unit)
        assert item.unit == 6

    def test_unit_price(self, item):
        """Price per unit is the price divided by the unit count."""
        item.update_unit(2)
        assert item.unit_price == Decimal("1.745")

    def test_unit_price_without_unit(self, item):
        assert item.unit_price == Decimal("0")


class TestItemPhoto:
    """Tests for photo data."""

    def test_photo_survives_json(self, item):
        """Photo bytes are base64 text in JSON and bytes again on load."""
        item.update_photo(b"\x89PNG\r\n\x1a\n")

        dumped = item.model_dump(mode="json")
        assert isinstance(dumped["photo"], str)

        restored = Item.model_validate(dumped)
        assert restored.photo == b"\x89PNG\r\n\x1a\n"

    def test_clear_photo(self, item):
        item.update_photo(b"data")
        item.update_photo(None)
        assert item.photo is None


class TestShoppingItem:
    """Tests for ShoppingItem model."""

    def test_default_quantity(self):
        line = ShoppingItem(item_id=uuid4(), store_id=uuid4())
        assert line.quantity == 1
        assert line.trip_id is None

    @pytest.mark.parametrize("bad_quantity", [0, -1])
    def test_rejects_non_positive_quantity(self, bad_quantity):
        with pytest.raises(InvalidQuantityError):
            ShoppingItem(item_id=uuid4(), store_id=uuid4(), quantity=bad_quantity)

    def test_invalid_update_leaves_quantity_unchanged(self):
        line = ShoppingItem(item_id=uuid4(), store_id=uuid4(), quantity=3)
        with pytest.raises(InvalidQuantityError):
            line.update_quantity(0)
        assert line.quantity == 3


class TestShoppingTrip:
    """Tests for ShoppingTrip model."""

    def test_new_trip_is_empty(self):
        trip = ShoppingTrip(store_id=uuid4())
        assert trip.item_ids == []
        assert isinstance(trip.date, datetime)
