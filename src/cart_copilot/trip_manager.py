"""Shopping trip operations."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from .catalog_manager import CatalogManager
from .data_store import DataStore, DataStoreProtocol
from .item_manager import ItemManager
from .models import ShoppingItem, ShoppingTrip, Store, check_quantity
from .pricing import PriceCalculator
from .telemetry import TelemetryManager


class TripManager:
    """Manages shopping trips and their line items."""

    def __init__(
        self,
        data_store: DataStoreProtocol | None = None,
        telemetry: TelemetryManager | None = None,
    ):
        """Initialize trip manager.

        Args:
            data_store: Data store instance. Creates a JSON DataStore if not provided.
            telemetry: Signal dispatcher. Defaults to the shared instance.
        """
        self.data_store = data_store or DataStore()
        self.telemetry = telemetry or TelemetryManager.shared()
        self.catalog = CatalogManager(self.data_store, self.telemetry)
        self.items = ItemManager(self.data_store, self.telemetry)
        self.pricing = PriceCalculator(self.data_store)

    def find_trip(self, trip_id: UUID | str) -> ShoppingTrip:
        """Raises RecordNotFoundError if the trip doesn't exist."""
        return self.data_store.require(ShoppingTrip, trip_id)

    def find_line(self, line_id: UUID | str) -> ShoppingItem:
        """Raises RecordNotFoundError if the line item doesn't exist."""
        return self.data_store.require(ShoppingItem, line_id)

    def trip_view(self, trip: ShoppingTrip) -> dict:
        """JSON-ready trip header with totals."""
        summary = self.pricing.trip_summary(trip)
        return {
            "id": str(trip.id),
            "store_id": str(trip.store_id),
            "store": summary.store.name,
            "date": trip.date.isoformat(),
            "item_count": summary.item_count,
            "subtotal": str(summary.subtotal),
            "tax": str(summary.tax),
            "total": str(summary.total),
        }

    def trip_detail(self, trip: ShoppingTrip) -> dict:
        """Trip header plus its lines and category breakdown."""
        view = self.trip_view(trip)
        view["items"] = [
            self.pricing.line_summary(line) for line in self.pricing.trip_items(trip)
        ]
        view["categories"] = [
            {
                "category": group.category.name,
                "emoji": group.category.emoji,
                "item_count": group.item_count,
                "subtotal": str(group.subtotal),
                "tax": str(group.tax),
                "total": str(group.total),
            }
            for group in self.pricing.category_breakdown(trip)
        ]
        return view

    def create_trip(self, store: UUID | str, date: datetime | None = None) -> dict:
        """Start a trip at a store.

        Args:
            store: Store ID or name
            date: Trip date. Defaults to now.

        Raises:
            RecordNotFoundError: If the store doesn't exist
        """
        resolved: Store = self.catalog.find_store(store)
        trip = ShoppingTrip(store_id=resolved.id, date=date or datetime.now())
        with self.data_store.transaction():
            self.data_store.insert(trip)

        self.telemetry.track_shopping_trip_created(resolved.name, item_count=0)
        return {
            "success": True,
            "message": f"Started trip to {resolved.name}",
            "data": {"trip": self.trip_view(trip)},
        }

    def list_trips(self, store: UUID | str | None = None) -> dict:
        """List trips newest first, optionally for one store."""
        store_id = self.catalog.find_store(store).id if store else None
        trips = self.data_store.fetch_all(
            ShoppingTrip,
            (lambda t: t.store_id == store_id) if store_id else None,
            sort=lambda t: t.date,
            reverse=True,
        )
        views = [self.trip_view(t) for t in trips]
        return {
            "success": True,
            "data": {
                "trips": views,
                "total_trips": len(views),
                "total_spent": str(sum((Decimal(v["total"]) for v in views), Decimal("0"))),
            },
        }

    def get_trip(self, trip_id: UUID | str) -> dict:
        trip = self.find_trip(trip_id)
        return {"success": True, "data": {"trip_detail": self.trip_detail(trip)}}

    def add_item_to_trip(
        self,
        trip_id: UUID | str,
        item: UUID | str,
        quantity: int = 1,
        store: UUID | str | None = None,
    ) -> dict:
        """Add an existing catalog item to a trip.

        Args:
            trip_id: Trip ID
            item: Item ID or name
            quantity: How many
            store: Store the line was priced at. Defaults to the trip's store.

        Raises:
            InvalidQuantityError: If quantity is not positive
            RecordNotFoundError: If the trip, item or store doesn't exist
        """
        check_quantity(quantity)
        with self.data_store.transaction():
            trip = self.find_trip(trip_id)
            catalog_item = self.items.find_item(item)
            store_id = self.catalog.find_store(store).id if store else trip.store_id
            line = ShoppingItem(
                item_id=catalog_item.id,
                quantity=quantity,
                store_id=store_id,
                trip_id=trip.id,
            )
            self.data_store.insert(line)

        self.telemetry.track_shopping_item_added(catalog_item.current_price, from_existing=True)
        return {
            "success": True,
            "message": f"Added {quantity} x {catalog_item.name} to trip",
            "data": {"line": self.pricing.line_summary(line), "trip": self.trip_view(trip)},
        }

    def add_new_item_to_trip(
        self,
        trip_id: UUID | str,
        name: str,
        price: Decimal | float | str,
        category: UUID | str | None,
        quantity: int = 1,
        store: UUID | str | None = None,
        **item_fields,
    ) -> dict:
        """Create a catalog item and add it to a trip in one step.

        The item's preferred store is the line's store.

        Raises:
            ValidationError: If no category is given
            InvalidPriceError: If price is negative
            InvalidQuantityError: If quantity is not positive
        """
        check_quantity(quantity)
        with self.data_store.transaction():
            trip = self.find_trip(trip_id)
            store_id = self.catalog.find_store(store).id if store else trip.store_id
            catalog_item = self.items.build_item(
                name=name,
                price=price,
                category=category,
                preferred_store=store_id,
                **item_fields,
            )
            self.data_store.insert(catalog_item)
            line = ShoppingItem(
                item_id=catalog_item.id,
                quantity=quantity,
                store_id=store_id,
                trip_id=trip.id,
            )
            self.data_store.insert(line)

        self.telemetry.track_item_created(catalog_item.current_price, category=str(category))
        self.telemetry.track_shopping_item_added(catalog_item.current_price, from_existing=False)
        return {
            "success": True,
            "message": f"Added {quantity} x {catalog_item.name} to trip",
            "data": {"line": self.pricing.line_summary(line), "trip": self.trip_view(trip)},
        }

    def update_line(
        self,
        line_id: UUID | str,
        quantity: int | None = None,
        store: UUID | str | None = None,
    ) -> dict:
        """Change a line's quantity or store.

        Raises:
            InvalidQuantityError: If quantity is not positive. Nothing is changed.
        """
        if quantity is not None:
            check_quantity(quantity)
        with self.data_store.transaction():
            line = self.find_line(line_id)
            new_store = self.catalog.find_store(store) if store else None
            if quantity is not None:
                line.update_quantity(quantity)
            if new_store is not None:
                line.store_id = new_store.id

        self.telemetry.track_shopping_item_edited()
        summary = self.pricing.line_summary(line)
        return {
            "success": True,
            "message": f"Updated {summary['name']} (quantity: {line.quantity})",
            "data": {"line": summary},
        }

    def update_quantity(self, line_id: UUID | str, quantity: int) -> dict:
        return self.update_line(line_id, quantity=quantity)

    def remove_line(self, line_id: UUID | str) -> dict:
        """Remove a line from its trip. The catalog item is kept."""
        with self.data_store.transaction():
            line = self.find_line(line_id)
            summary = self.pricing.line_summary(line)
            self.data_store.delete(line)

        self.telemetry.track_shopping_item_deleted()
        return {
            "success": True,
            "message": f"Removed {summary['name']} from trip",
            "data": {"line": summary},
        }

    def delete_trip(self, trip_id: UUID | str) -> dict:
        """Delete a trip and all of its line items."""
        with self.data_store.transaction():
            trip = self.find_trip(trip_id)
            view = self.trip_view(trip)
            self.data_store.delete(trip)

        self.telemetry.track_shopping_trip_completed(
            view["store"], view["item_count"], Decimal(view["total"])
        )
        return {
            "success": True,
            "message": f"Deleted trip to {view['store']} ({view['item_count']} items)",
            "data": {"trip": view},
        }
