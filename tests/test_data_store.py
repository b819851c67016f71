"""Tests for the object store and its JSON backend."""

import json
from datetime import datetime
from decimal import Decimal

import pytest

from cart_copilot.data_store import BackendType, DataStore, ObjectStore, create_data_store
from cart_copilot.errors import PersistenceError, RecordNotFoundError, ValidationError
from cart_copilot.models import Category, Item, ShoppingItem, ShoppingTrip, Store
from cart_copilot.sqlite_store import SQLiteStore


class TestQueries:
    """Tests for fetch_all, get and require."""

    def test_fetch_all_with_predicate_and_sort(self, data_store):
        with data_store.transaction():
            for name in ["Walmart", "Aldi", "Kroger"]:
                data_store.insert(Store(name=name))

        names = [s.name for s in data_store.fetch_all(Store, sort=lambda s: s.name)]
        assert names == ["Aldi", "Kroger", "Walmart"]

        filtered = data_store.fetch_all(Store, lambda s: s.name.startswith("K"))
        assert [s.name for s in filtered] == ["Kroger"]

    def test_fetch_all_reverse(self, data_store):
        with data_store.transaction():
            data_store.insert(Store(name="A"))
            data_store.insert(Store(name="B"))

        names = [s.name for s in data_store.fetch_all(Store, sort=lambda s: s.name, reverse=True)]
        assert names == ["B", "A"]

    def test_get_by_string_id(self, data_store, costco):
        assert data_store.get(Store, str(costco.id)) is costco

    def test_get_invalid_id_returns_none(self, data_store):
        assert data_store.get(Store, "not-a-uuid") is None

    def test_require_missing(self, data_store):
        with pytest.raises(RecordNotFoundError, match="Store with ID 'nope' not found"):
            data_store.require(Store, "nope")

    def test_count(self, data_store, costco):
        assert data_store.count(Store) == 1
        assert data_store.count(Category) == 0


class TestInsert:
    """Tests for inserting records."""

    def test_item_requires_category(self, data_store):
        """An item whose category doesn't exist can't be inserted."""
        with pytest.raises(ValidationError, match="category"):
            data_store.insert(Item(name="Milk", category_id=Category(name="Ghost").id))

    def test_line_requires_store(self, data_store, paper_towels):
        with pytest.raises(ValidationError, match="store"):
            data_store.insert(
                ShoppingItem(item_id=paper_towels.id, store_id=Store(name="Ghost").id)
            )

    def test_line_is_added_to_trip(self, data_store, trip, paper_towels, add_line):
        line = add_line(trip, paper_towels)
        assert trip.item_ids == [line.id]

    def test_lines_keep_trip_order(self, data_store, trip, paper_towels, bananas, add_line):
        first = add_line(trip, bananas)
        second = add_line(trip, paper_towels)
        assert trip.item_ids == [first.id, second.id]


class TestDelete:
    """Tests for delete rules."""

    def test_delete_trip_cascades_to_lines(self, data_store, trip, paper_towels, add_line):
        """A trip owns its lines."""
        add_line(trip, paper_towels)
        add_line(trip, paper_towels, quantity=2)

        with data_store.transaction():
            data_store.delete(trip)

        assert data_store.fetch_all(ShoppingTrip) == []
        assert data_store.fetch_all(ShoppingItem) == []
        assert data_store.get(Item, paper_towels.id) is paper_towels

    def test_delete_line_detaches_from_trip(self, data_store, trip, paper_towels, add_line):
        line = add_line(trip, paper_towels)

        with data_store.transaction():
            data_store.delete(line)

        assert trip.item_ids == []
        assert data_store.get(ShoppingItem, line.id) is None

    def test_delete_used_category_is_refused(self, data_store, general, paper_towels):
        with pytest.raises(ValidationError, match="still used"):
            data_store.delete(general)
        assert data_store.get(Category, general.id) is general

    def test_delete_used_store_is_refused(self, data_store, costco, trip):
        with pytest.raises(ValidationError):
            data_store.delete(costco)

    def test_delete_item_on_trip_is_refused(self, data_store, trip, paper_towels, add_line):
        add_line(trip, paper_towels)
        with pytest.raises(ValidationError):
            data_store.delete(paper_towels)

    def test_delete_unused_category(self, data_store, grocery):
        with data_store.transaction():
            data_store.delete(grocery)
        assert data_store.count(Category) == 0


class TestTransactions:
    """Tests for save, rollback and transaction()."""

    def test_pending_changes_are_not_saved(self, temp_data_dir, data_store):
        """Inserts without save() are not visible to a second store."""
        data_store.insert(Store(name="Pending"))

        other = DataStore(data_dir=temp_data_dir)
        assert other.count(Store) == 0

    def test_rollback_discards_pending(self, data_store, costco):
        data_store.insert(Store(name="Pending"))
        data_store.rollback()

        assert [s.name for s in data_store.fetch_all(Store)] == ["Costco"]

    def test_transaction_rolls_back_on_error(self, data_store, costco):
        """A failing block leaves nothing behind and re-raises."""
        with pytest.raises(RuntimeError):
            with data_store.transaction():
                data_store.insert(Store(name="Half Done"))
                raise RuntimeError("boom")

        assert data_store.count(Store) == 1

    def test_failed_save_keeps_committed_data(self, temp_data_dir, data_store, costco, monkeypatch):
        """A write failure raises PersistenceError and leaves the file intact."""

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("cart_copilot.data_store.os.replace", broken_replace)
        with pytest.raises(PersistenceError, match="disk full"):
            with data_store.transaction():
                data_store.insert(Store(name="Never Saved"))

        monkeypatch.undo()
        reloaded = DataStore(data_dir=temp_data_dir)
        assert [s.name for s in reloaded.fetch_all(Store)] == ["Costco"]
        assert list(temp_data_dir.glob("*.tmp")) == []


class TestJSONPersistence:
    """Tests for the JSON file format."""

    def test_round_trip(self, temp_data_dir, data_store, trip, paper_towels, add_line):
        """Everything saved comes back with the same values."""
        paper_towels.update_price(Decimal("11.50"), changed_at=datetime(2024, 5, 1, 12, 0))
        paper_towels.update_photo(b"\x00\x01")
        line = add_line(trip, paper_towels, quantity=3)

        reloaded = DataStore(data_dir=temp_data_dir)
        item = reloaded.require(Item, paper_towels.id)
        assert item.current_price == Decimal("11.50")
        assert item.price_history == {datetime(2024, 5, 1, 12, 0): Decimal("10.00")}
        assert item.photo == b"\x00\x01"

        loaded_trip = reloaded.require(ShoppingTrip, trip.id)
        assert loaded_trip.item_ids == [line.id]
        assert reloaded.require(ShoppingItem, line.id).quantity == 3

    def test_file_layout(self, temp_data_dir, data_store, costco):
        with open(temp_data_dir / "cart_copilot.json") as f:
            document = json.load(f)

        assert document["version"] == "1.0"
        assert document["stores"][0]["name"] == "Costco"
        for key in ["categories", "items", "shopping_trips", "shopping_items"]:
            assert document[key] == []

    @pytest.mark.parametrize(
        "content", ["{not json", "null", "[]", '"stores"', '{"stores": {"id": 1}}']
    )
    def test_corrupt_file_raises(self, temp_data_dir, content):
        (temp_data_dir / "cart_copilot.json").write_text(content)
        with pytest.raises(PersistenceError):
            DataStore(data_dir=temp_data_dir)

    def test_corrupt_price_raises(self, temp_data_dir, data_store, paper_towels):
        path = temp_data_dir / "cart_copilot.json"
        document = json.loads(path.read_text())
        document["items"][0]["current_price"] = "-1"
        path.write_text(json.dumps(document))

        with pytest.raises(PersistenceError):
            DataStore(data_dir=temp_data_dir)

    def test_missing_file_is_empty(self, data_store):
        for model_cls in [Store, Category, Item, ShoppingTrip, ShoppingItem]:
            assert data_store.count(model_cls) == 0


class TestCreateDataStore:
    """Tests for backend selection."""

    def test_json_backend(self, temp_data_dir):
        store = create_data_store(BackendType.JSON, data_dir=temp_data_dir)
        assert isinstance(store, DataStore)

    def test_sqlite_backend_uses_data_dir(self, temp_data_dir):
        store = create_data_store(BackendType.SQLITE, data_dir=temp_data_dir)
        assert isinstance(store, SQLiteStore)
        assert store.db_path == temp_data_dir / "cart_copilot.db"


class TestObjectStore:
    """Tests for the backend base class."""

    def test_backend_must_implement_storage_hooks(self):
        class ReadOnlyStore(ObjectStore):
            def _read_snapshot(self):
                return {}

        with pytest.raises(TypeError):
            ReadOnlyStore()
