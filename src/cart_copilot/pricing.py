"""Price, tax and total calculations for items and shopping trips.

All amounts are Decimal and nothing is rounded along the way, so for every
line and trip ``subtotal + tax == total`` holds exactly. Prices and tax rates
are read live from the referenced Item and Category each time, so editing a
category's rate changes the totals of every trip that contains it.
"""

from collections.abc import Callable
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Protocol, TypeVar
from uuid import UUID

from pydantic import BaseModel, computed_field

from .models import Category, Item, Record, ShoppingItem, ShoppingTrip, Store, to_decimal

R = TypeVar("R", bound=Record)

ZERO = Decimal("0")
CENT = Decimal("0.01")


class RecordLookup(Protocol):
    """Anything that can resolve a record by id (both data stores qualify)."""

    def require(self, model_cls: type[R], record_id: UUID | str) -> R: ...


class CategoryTotals(BaseModel):
    """Subtotal and tax for the lines of one category within a trip."""

    category: Category
    subtotal: Decimal = ZERO
    tax: Decimal = ZERO
    item_count: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> Decimal:
        return self.subtotal + self.tax


class TripSummary(BaseModel):
    """Aggregated amounts for a trip."""

    trip_id: UUID
    store: Store
    item_count: int
    subtotal: Decimal
    tax: Decimal
    categories: list[CategoryTotals]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> Decimal:
        return self.subtotal + self.tax


def tax_rate_of(category: Category) -> Decimal:
    """Category tax rate as an exact Decimal fraction."""
    return to_decimal(category.tax_rate)


def format_currency(amount: Decimal | str | float) -> str:
    """Round half-up to cents for display only."""
    value = to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
    return f"${value:,.2f}"


class PriceCalculator:
    """Computes line, trip and category totals from stored records."""

    def __init__(self, lookup: RecordLookup):
        self.lookup = lookup

    # --- Single item ---

    def category_of(self, item: Item) -> Category:
        return self.lookup.require(Category, item.category_id)

    def item_total_tax(self, item: Item) -> Decimal:
        """Tax on one unquantified item."""
        return item.current_price * tax_rate_of(self.category_of(item))

    def item_total(self, item: Item) -> Decimal:
        return item.current_price + self.item_total_tax(item)

    # --- Line items ---

    def item_of(self, shopping_item: ShoppingItem) -> Item:
        return self.lookup.require(Item, shopping_item.item_id)

    def unit_price(self, shopping_item: ShoppingItem) -> Decimal:
        """The referenced item's current price (not a snapshot)."""
        return self.item_of(shopping_item).current_price

    def line_subtotal(self, shopping_item: ShoppingItem) -> Decimal:
        return self.unit_price(shopping_item) * shopping_item.quantity

    def line_tax(self, shopping_item: ShoppingItem) -> Decimal:
        category = self.category_of(self.item_of(shopping_item))
        return self.line_subtotal(shopping_item) * tax_rate_of(category)

    def line_total(self, shopping_item: ShoppingItem) -> Decimal:
        return self.line_subtotal(shopping_item) + self.line_tax(shopping_item)

    # --- Trips ---

    def trip_items(self, trip: ShoppingTrip) -> list[ShoppingItem]:
        """The trip's line items, in trip order."""
        return [self.lookup.require(ShoppingItem, line_id) for line_id in trip.item_ids]

    def _sum(self, trip: ShoppingTrip, amount: Callable[[ShoppingItem], Decimal]) -> Decimal:
        return sum((amount(line) for line in self.trip_items(trip)), ZERO)

    def trip_subtotal(self, trip: ShoppingTrip) -> Decimal:
        return self._sum(trip, self.line_subtotal)

    def trip_tax(self, trip: ShoppingTrip) -> Decimal:
        return self._sum(trip, self.line_tax)

    def trip_total(self, trip: ShoppingTrip) -> Decimal:
        return self.trip_subtotal(trip) + self.trip_tax(trip)

    def category_breakdown(self, trip: ShoppingTrip) -> list[CategoryTotals]:
        """Group the trip's lines by category, sorted by category name.

        Categories are grouped by identity, so two categories sharing a name
        stay separate.
        """
        groups: dict[UUID, CategoryTotals] = {}
        for line in self.trip_items(trip):
            category = self.category_of(self.item_of(line))
            group = groups.setdefault(category.id, CategoryTotals(category=category))
            group.subtotal += self.line_subtotal(line)
            group.tax += self.line_tax(line)
            group.item_count += 1

        return sorted(groups.values(), key=lambda g: g.category.name)

    def trip_summary(self, trip: ShoppingTrip) -> TripSummary:
        breakdown = self.category_breakdown(trip)
        return TripSummary(
            trip_id=trip.id,
            store=self.lookup.require(Store, trip.store_id),
            item_count=len(trip.item_ids),
            subtotal=sum((g.subtotal for g in breakdown), ZERO),
            tax=sum((g.tax for g in breakdown), ZERO),
            categories=breakdown,
        )

    def line_summary(self, shopping_item: ShoppingItem) -> dict[str, Any]:
        """JSON-ready view of a line item with its amounts."""
        item = self.item_of(shopping_item)
        category = self.category_of(item)
        subtotal = self.line_subtotal(shopping_item)
        tax = self.line_tax(shopping_item)
        return {
            "id": str(shopping_item.id),
            "item_id": str(item.id),
            "name": item.name,
            "emoji": item.emoji,
            "category": category.name,
            "store_id": str(shopping_item.store_id),
            "quantity": shopping_item.quantity,
            "unit_price": str(item.current_price),
            "subtotal": str(subtotal),
            "tax": str(tax),
            "total": str(subtotal + tax),
        }
