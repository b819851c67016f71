"""Core data models for Cart Copilot.

Records reference each other by id rather than embedding copies, so a change
to a shared Category, Store or Item is visible everywhere it is referenced.
"""

import base64
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from .errors import InvalidPriceError, InvalidQuantityError, InvalidUnitError, ValidationError

UNTITLED = "Untitled"


def to_decimal(value: Decimal | float | int | str) -> Decimal:
    """Convert to Decimal, going through str so 0.1 stays exactly 0.1."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def check_price(price: Decimal) -> Decimal:
    """Return the price unchanged, or raise InvalidPriceError if negative or not finite."""
    if not price.is_finite() or price < 0:
        raise InvalidPriceError(price)
    return price


def to_price(value: Decimal | float | int | str) -> Decimal:
    """Convert and check a price.

    Raises:
        InvalidPriceError: If value isn't a number, or is negative or not finite
    """
    try:
        price = to_decimal(value)
    except InvalidOperation as e:
        raise InvalidPriceError(value) from e
    return check_price(price)


def check_unit(unit: int | None) -> int | None:
    """Return the unit unchanged, or raise InvalidUnitError if not positive."""
    if unit is not None and unit <= 0:
        raise InvalidUnitError(unit)
    return unit


def check_quantity(quantity: int) -> int:
    """Return the quantity unchanged, or raise InvalidQuantityError if not positive."""
    if quantity <= 0:
        raise InvalidQuantityError(quantity)
    return quantity


def coerce_name(value: Any) -> Any:
    """Blank names become 'Untitled' rather than being rejected."""
    if value is None:
        return UNTITLED
    if isinstance(value, str):
        value = value.strip()
        return value or UNTITLED
    return value


class Record(BaseModel):
    """Base for persisted records."""

    model_config = ConfigDict(validate_assignment=True)

    id: UUID = Field(default_factory=uuid4)


class NamedRecord(Record):
    """A record with a display name."""

    name: str

    @field_validator("name", mode="before")
    @classmethod
    def coerce_blank_name(cls, value: Any) -> Any:
        return coerce_name(value)


class Store(NamedRecord):
    """A place where shopping happens."""

    address: str = ""
    is_default: bool = False


class Category(NamedRecord):
    """A product category carrying the sales-tax rate for its items."""

    tax_rate: float = 0.0
    is_default: bool = False
    emoji: str | None = None

    @field_validator("tax_rate")
    @classmethod
    def validate_tax_rate(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValidationError(f"Tax rate must be a fraction between 0 and 1 (got {value})")
        return value


class Item(NamedRecord):
    """A catalog item with its current price and price history."""

    current_price: Decimal = Decimal("0")
    category_id: UUID
    brand: str | None = None
    upc: str | None = None
    emoji: str | None = None
    is_favorite: bool = False
    unit: int | None = None
    unit_type: str | None = None
    preferred_store_id: UUID | None = None
    price_history: dict[datetime, Decimal] = Field(default_factory=dict)
    photo: bytes | None = None
    date_added: datetime = Field(default_factory=datetime.now)

    @field_validator("current_price", mode="before")
    @classmethod
    def convert_price(cls, value: Any) -> Any:
        if isinstance(value, (Decimal, float, int, str)):
            return to_price(value)
        return value

    @field_validator("current_price")
    @classmethod
    def validate_price(cls, value: Decimal) -> Decimal:
        return check_price(value)

    @field_validator("unit")
    @classmethod
    def validate_unit(cls, value: int | None) -> int | None:
        return check_unit(value)

    @field_validator("photo", mode="before")
    @classmethod
    def decode_photo(cls, value: Any) -> Any:
        if isinstance(value, str):
            return base64.b64decode(value)
        return value

    @field_serializer("photo", when_used="json")
    def serialize_photo(self, value: bytes | None) -> str | None:
        if value is None:
            return None
        return base64.b64encode(value).decode("ascii")

    @property
    def unit_price(self) -> Decimal:
        """Price per unit, or zero when no unit count is set."""
        if not self.unit:
            return Decimal("0")
        return self.current_price / Decimal(self.unit)

    def update_price(
        self, new_price: Decimal | float | str, changed_at: datetime | None = None
    ) -> None:
        """Set a new price, logging the superseded one in the price history.

        Raises:
            InvalidPriceError: If new_price is negative or not finite. Nothing is changed.
        """
        new_price = to_price(new_price)
        changed_at = changed_at or datetime.now()
        # Entries are never overwritten; a colliding timestamp moves forward
        while changed_at in self.price_history:
            changed_at += timedelta(microseconds=1)
        self.price_history[changed_at] = self.current_price
        self.current_price = new_price

    def update_unit(self, new_unit: int) -> None:
        """Set the unit count.

        Raises:
            InvalidUnitError: If new_unit is not positive. Nothing is changed.
        """
        self.unit = check_unit(new_unit)

    def update_photo(self, data: bytes | None) -> None:
        self.photo = data


class ShoppingItem(Record):
    """A line item: a quantity of an Item bought on a trip at a store."""

    item_id: UUID
    quantity: int = 1
    store_id: UUID
    date_added: datetime = Field(default_factory=datetime.now)
    trip_id: UUID | None = None

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, value: int) -> int:
        return check_quantity(value)

    def update_quantity(self, new_quantity: int) -> None:
        """Set the quantity.

        Raises:
            InvalidQuantityError: If new_quantity is not positive. Nothing is changed.
        """
        self.quantity = check_quantity(new_quantity)


class ShoppingTrip(Record):
    """A single visit to one store. Owns its line items."""

    store_id: UUID
    date: datetime = Field(default_factory=datetime.now)
    item_ids: list[UUID] = Field(default_factory=list)
