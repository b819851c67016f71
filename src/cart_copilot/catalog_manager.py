"""Store and category management operations."""

from uuid import UUID

from .data_store import DataStore, DataStoreProtocol
from .errors import RecordNotFoundError
from .models import Category, Item, Store
from .telemetry import TelemetryManager


def find_by_ref(data_store: DataStoreProtocol, model_cls, ref: UUID | str):
    """Resolve a record by UUID or, failing that, by case-insensitive name."""
    if isinstance(ref, UUID):
        return data_store.require(model_cls, ref)

    record = data_store.get(model_cls, ref)
    if record is not None:
        return record

    wanted = ref.strip().lower()
    for candidate in data_store.fetch_all(model_cls):
        if candidate.name.lower() == wanted:
            return candidate
    raise RecordNotFoundError(model_cls.__name__, ref)


class CatalogManager:
    """Manages the shared store and category reference data."""

    def __init__(
        self,
        data_store: DataStoreProtocol | None = None,
        telemetry: TelemetryManager | None = None,
    ):
        """Initialize catalog manager.

        Args:
            data_store: Data store instance. Creates a JSON DataStore if not provided.
            telemetry: Signal dispatcher. Defaults to the shared instance.
        """
        self.data_store = data_store or DataStore()
        self.telemetry = telemetry or TelemetryManager.shared()

    # --- Stores ---

    def find_store(self, ref: UUID | str) -> Store:
        """Find a store by ID or name.

        Raises:
            RecordNotFoundError: If no store matches
        """
        return find_by_ref(self.data_store, Store, ref)

    def add_store(self, name: str, address: str = "") -> dict:
        """Add a custom store.

        Args:
            name: Store name. Blank names become 'Untitled'.
            address: Optional address

        Returns:
            Dict with success status and store data
        """
        store = Store(name=name, address=address)
        with self.data_store.transaction():
            self.data_store.insert(store)
        self.telemetry.track_store_created()

        return {
            "success": True,
            "message": f"Added store {store.name}",
            "data": {"store": store.model_dump(mode="json")},
        }

    def update_store(
        self, ref: UUID | str, name: str | None = None, address: str | None = None
    ) -> dict:
        """Rename a store or change its address."""
        with self.data_store.transaction():
            store = self.find_store(ref)
            if name is not None:
                store.name = name
            if address is not None:
                store.address = address
        self.telemetry.track_store_edited()

        return {
            "success": True,
            "message": f"Updated store {store.name}",
            "data": {"store": store.model_dump(mode="json")},
        }

    def remove_store(self, ref: UUID | str) -> dict:
        """Delete a store.

        Raises:
            RecordNotFoundError: If no store matches
            ValidationError: If items or trips still use the store
        """
        with self.data_store.transaction():
            store = self.find_store(ref)
            self.data_store.delete(store)
        self.telemetry.track_store_deleted()

        return {
            "success": True,
            "message": f"Removed store {store.name}",
            "data": {"store": store.model_dump(mode="json")},
        }

    def list_stores(self) -> dict:
        """All stores sorted by name."""
        stores = self.data_store.fetch_all(Store, sort=lambda s: s.name.lower())
        return {
            "success": True,
            "data": {"stores": [s.model_dump(mode="json") for s in stores]},
        }

    # --- Categories ---

    def find_category(self, ref: UUID | str) -> Category:
        """Find a category by ID or name.

        Raises:
            RecordNotFoundError: If no category matches
        """
        return find_by_ref(self.data_store, Category, ref)

    def add_category(self, name: str, tax_rate: float = 0.0, emoji: str | None = None) -> dict:
        """Add a custom category.

        Args:
            name: Category name. Blank names become 'Untitled'.
            tax_rate: Sales tax as a fraction, e.g. 0.0825 for 8.25%
            emoji: Optional display emoji

        Raises:
            ValidationError: If tax_rate is outside 0..1
        """
        category = Category(name=name, tax_rate=tax_rate, emoji=emoji)
        with self.data_store.transaction():
            self.data_store.insert(category)
        self.telemetry.track_category_created()

        return {
            "success": True,
            "message": f"Added category {category.name}",
            "data": {"category": category.model_dump(mode="json")},
        }

    def update_category(
        self,
        ref: UUID | str,
        name: str | None = None,
        tax_rate: float | None = None,
        emoji: str | None = None,
    ) -> dict:
        """Change a category. A new tax rate applies to every trip on next read."""
        with self.data_store.transaction():
            category = self.find_category(ref)
            if tax_rate is not None:
                category.tax_rate = tax_rate
            if name is not None:
                category.name = name
            if emoji is not None:
                category.emoji = emoji
        self.telemetry.track_category_edited()

        return {
            "success": True,
            "message": f"Updated category {category.name}",
            "data": {"category": category.model_dump(mode="json")},
        }

    def remove_category(self, ref: UUID | str) -> dict:
        """Delete a category.

        Raises:
            RecordNotFoundError: If no category matches
            ValidationError: If items still use the category
        """
        with self.data_store.transaction():
            category = self.find_category(ref)
            self.data_store.delete(category)
        self.telemetry.track_category_deleted()

        return {
            "success": True,
            "message": f"Removed category {category.name}",
            "data": {"category": category.model_dump(mode="json")},
        }

    def list_categories(self) -> dict:
        """All categories sorted by name, with how many items use each."""
        categories = self.data_store.fetch_all(Category, sort=lambda c: c.name.lower())
        usage: dict[UUID, int] = {}
        for item in self.data_store.fetch_all(Item):
            usage[item.category_id] = usage.get(item.category_id, 0) + 1

        return {
            "success": True,
            "data": {
                "categories": [
                    {**c.model_dump(mode="json"), "item_count": usage.get(c.id, 0)}
                    for c in categories
                ]
            },
        }
