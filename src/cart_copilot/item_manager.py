"""Item catalog operations."""

from decimal import Decimal
from uuid import UUID

from .capture import BarcodeScanner, PhotoPicker
from .catalog_manager import CatalogManager, find_by_ref
from .data_store import DataStore, DataStoreProtocol
from .errors import ValidationError
from .models import Category, Item, Store, check_unit, to_price
from .pricing import PriceCalculator
from .telemetry import TelemetryManager


class ItemManager:
    """Manages catalog items, their prices and captured data."""

    def __init__(
        self,
        data_store: DataStoreProtocol | None = None,
        telemetry: TelemetryManager | None = None,
    ):
        """Initialize item manager.

        Args:
            data_store: Data store instance. Creates a JSON DataStore if not provided.
            telemetry: Signal dispatcher. Defaults to the shared instance.
        """
        self.data_store = data_store or DataStore()
        self.telemetry = telemetry or TelemetryManager.shared()
        self.catalog = CatalogManager(self.data_store, self.telemetry)
        self.pricing = PriceCalculator(self.data_store)

    def find_item(self, ref: UUID | str) -> Item:
        """Find an item by ID or name.

        Raises:
            RecordNotFoundError: If no item matches
        """
        return find_by_ref(self.data_store, Item, ref)

    def item_view(self, item: Item) -> dict:
        """JSON-ready item with its category and computed amounts."""
        category = self.pricing.category_of(item)
        store = (
            self.data_store.get(Store, item.preferred_store_id)
            if item.preferred_store_id
            else None
        )
        tax = self.pricing.item_total_tax(item)
        view = item.model_dump(mode="json", exclude={"photo", "price_history"})
        view.update(
            {
                "category": category.name,
                "category_emoji": category.emoji,
                "tax_rate": category.tax_rate,
                "tax": str(tax),
                "total": str(item.current_price + tax),
                "unit_price": str(item.unit_price),
                "preferred_store": store.name if store else None,
                "has_photo": item.photo is not None,
                "price_changes": len(item.price_history),
            }
        )
        return view

    def add_item(
        self,
        name: str,
        price: Decimal | float | str = Decimal("0"),
        category: UUID | str | None = None,
        brand: str | None = None,
        upc: str | None = None,
        emoji: str | None = None,
        unit: int | None = None,
        unit_type: str | None = None,
        preferred_store: UUID | str | None = None,
        is_favorite: bool = False,
        photo: bytes | None = None,
    ) -> dict:
        """Add an item to the catalog.

        Args:
            name: Item name. Blank names become 'Untitled'.
            price: Current price
            category: Category ID or name (required)
            brand: Optional brand
            upc: Optional barcode payload
            emoji: Optional display emoji
            unit: Optional count of units in the package
            unit_type: Optional unit label, e.g. "oz"
            preferred_store: Optional store ID or name
            is_favorite: Mark as favourite
            photo: Optional image data

        Returns:
            Dict with success status and item data

        Raises:
            ValidationError: If no category is given
            InvalidPriceError: If price is negative or not a finite number
            InvalidUnitError: If unit is not positive
        """
        item = self.build_item(
            name=name,
            price=price,
            category=category,
            brand=brand,
            upc=upc,
            emoji=emoji,
            unit=unit,
            unit_type=unit_type,
            preferred_store=preferred_store,
            is_favorite=is_favorite,
            photo=photo,
        )
        with self.data_store.transaction():
            self.data_store.insert(item)

        view = self.item_view(item)
        self.telemetry.track_item_created(item.current_price, view["category"])
        return {
            "success": True,
            "message": f"Added {item.name} to items",
            "data": {"item": view},
        }

    def build_item(
        self,
        name: str,
        price: Decimal | float | str,
        category: UUID | str | None,
        preferred_store: UUID | str | None = None,
        **fields,
    ) -> Item:
        """Validate inputs and build an unsaved Item."""
        if category is None or (isinstance(category, str) and not category.strip()):
            raise ValidationError("An item needs a category")
        resolved_category: Category = self.catalog.find_category(category)
        store = self.catalog.find_store(preferred_store) if preferred_store else None

        return Item(
            name=name,
            current_price=to_price(price),
            category_id=resolved_category.id,
            preferred_store_id=store.id if store else None,
            **fields,
        )

    def get_item(self, ref: UUID | str) -> dict:
        """Get an item with its price history."""
        item = self.find_item(ref)
        return {
            "success": True,
            "data": {"item": self.item_view(item), "price_history": self._history(item)},
        }

    def update_item(
        self,
        ref: UUID | str,
        name: str | None = None,
        price: Decimal | float | str | None = None,
        category: UUID | str | None = None,
        brand: str | None = None,
        upc: str | None = None,
        emoji: str | None = None,
        unit: int | None = None,
        unit_type: str | None = None,
        preferred_store: UUID | str | None = None,
    ) -> dict:
        """Update an item. Only provided fields change.

        Everything is validated before anything is changed.

        Raises:
            RecordNotFoundError: If the item, category or store doesn't exist
            InvalidPriceError: If price is negative or not a finite number
            InvalidUnitError: If unit is not positive
        """
        with self.data_store.transaction():
            item = self.find_item(ref)
            new_price = to_price(price) if price is not None else None
            check_unit(unit)
            new_category = self.catalog.find_category(category) if category else None
            new_store = self.catalog.find_store(preferred_store) if preferred_store else None

            if new_price is not None and new_price != item.current_price:
                item.update_price(new_price)
            if unit is not None:
                item.update_unit(unit)
            if new_category is not None:
                item.category_id = new_category.id
            if new_store is not None:
                item.preferred_store_id = new_store.id
            if name is not None:
                item.name = name
            if brand is not None:
                item.brand = brand
            if upc is not None:
                item.upc = upc
            if emoji is not None:
                item.emoji = emoji
            if unit_type is not None:
                item.unit_type = unit_type

        self.telemetry.track_item_edited()
        return {
            "success": True,
            "message": f"Updated {item.name}",
            "data": {"item": self.item_view(item)},
        }

    def update_price(self, ref: UUID | str, new_price: Decimal | float | str) -> dict:
        """Change an item's price, keeping the old one in its history.

        Raises:
            InvalidPriceError: If new_price is negative or not a finite number
        """
        with self.data_store.transaction():
            item = self.find_item(ref)
            old_price = item.current_price
            item.update_price(new_price)

        self.telemetry.track_item_edited()
        return {
            "success": True,
            "message": f"Updated {item.name} price from {old_price} to {item.current_price}",
            "data": {"item": self.item_view(item), "price_history": self._history(item)},
        }

    def update_unit(self, ref: UUID | str, new_unit: int) -> dict:
        """Change an item's unit count.

        Raises:
            InvalidUnitError: If new_unit is not positive
        """
        with self.data_store.transaction():
            item = self.find_item(ref)
            item.update_unit(new_unit)

        self.telemetry.track_item_edited()
        return {
            "success": True,
            "message": f"Updated {item.name} unit to {item.unit}",
            "data": {"item": self.item_view(item)},
        }

    def toggle_favorite(self, ref: UUID | str) -> dict:
        with self.data_store.transaction():
            item = self.find_item(ref)
            item.is_favorite = not item.is_favorite

        state = "Favorited" if item.is_favorite else "Unfavorited"
        return {
            "success": True,
            "message": f"{state} {item.name}",
            "data": {"item": self.item_view(item)},
        }

    def remove_item(self, ref: UUID | str) -> dict:
        """Delete an item from the catalog.

        Raises:
            ValidationError: If a trip still contains the item
        """
        with self.data_store.transaction():
            item = self.find_item(ref)
            self.data_store.delete(item)

        self.telemetry.track_item_deleted()
        return {
            "success": True,
            "message": f"Removed {item.name} from items",
            "data": {"item": item.model_dump(mode="json", exclude={"photo"})},
        }

    def list_items(self, search: str | None = None, favorites_only: bool = False) -> dict:
        """List items grouped by category.

        Args:
            search: Case-insensitive substring filter on the item name
            favorites_only: Only include favourites

        Returns:
            Dict with the flat item list and the category groups, both sorted by name
        """
        needle = search.lower() if search else None

        def matches(item: Item) -> bool:
            if favorites_only and not item.is_favorite:
                return False
            return needle is None or needle in item.name.lower()

        items = self.data_store.fetch_all(Item, matches, sort=lambda i: i.name.lower())

        groups: dict[UUID, list[dict]] = {}
        for item in items:
            groups.setdefault(item.category_id, []).append(self.item_view(item))

        categories = sorted(
            (self.data_store.require(Category, cid) for cid in groups),
            key=lambda c: c.name,
        )
        by_category = [
            {
                "category": c.name,
                "emoji": c.emoji,
                "items": groups[c.id],
            }
            for c in categories
        ]

        return {
            "success": True,
            "data": {
                "items": [view for group in by_category for view in group["items"]],
                "by_category": by_category,
                "total_items": len(items),
            },
        }

    def price_history(self, ref: UUID | str) -> dict:
        item = self.find_item(ref)
        return {
            "success": True,
            "data": {
                "item_name": item.name,
                "current_price": str(item.current_price),
                "price_history": self._history(item),
            },
        }

    def _history(self, item: Item) -> list[dict]:
        return [
            {"changed_at": changed_at.isoformat(), "price": str(price)}
            for changed_at, price in sorted(item.price_history.items())
        ]

    # --- Capture ---

    async def scan_barcode(self, ref: UUID | str, scanner: BarcodeScanner) -> dict:
        """Scan a barcode and store it as the item's UPC. Cancelling changes nothing."""
        item = self.find_item(ref)
        payload = await scanner.scan()
        if payload is None:
            return {"success": False, "message": "Scan cancelled", "data": {}}

        with self.data_store.transaction():
            item = self.find_item(item.id)
            item.upc = payload.strip()

        self.telemetry.track_item_edited()
        return {
            "success": True,
            "message": f"Set {item.name} UPC to {item.upc}",
            "data": {"item": self.item_view(item)},
        }

    async def attach_photo(self, ref: UUID | str, picker: PhotoPicker) -> dict:
        """Pick a photo and attach it to the item. Cancelling changes nothing."""
        item = self.find_item(ref)
        data = await picker.pick()
        if data is None:
            return {"success": False, "message": "Photo selection cancelled", "data": {}}

        with self.data_store.transaction():
            item = self.find_item(item.id)
            item.update_photo(data)

        self.telemetry.track_item_edited()
        return {
            "success": True,
            "message": f"Attached photo to {item.name} ({len(data)} bytes)",
            "data": {"item": self.item_view(item)},
        }
