"""Data persistence for Cart Copilot.

This module provides a unit-of-work object store with support for JSON (default)
or SQLite backends. Use create_data_store() to get the appropriate backend based
on configuration.

Records are held in an in-memory identity map. insert()/delete() and in-place
edits to fetched records are pending until save() commits them all at once.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Protocol, TypeVar
from uuid import UUID

from .errors import CartCopilotError, PersistenceError, RecordNotFoundError, ValidationError
from .models import Category, Item, Record, ShoppingItem, ShoppingTrip, Store

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)

# Parents before children; deletes run in reverse.
MODEL_TYPES: tuple[type[Record], ...] = (Store, Category, Item, ShoppingTrip, ShoppingItem)

COLLECTION_NAMES: dict[type[Record], str] = {
    Store: "stores",
    Category: "categories",
    Item: "items",
    ShoppingTrip: "shopping_trips",
    ShoppingItem: "shopping_items",
}


class BackendType(str, Enum):
    """Data storage backend types."""

    JSON = "json"
    SQLITE = "sqlite"


class DataStoreProtocol(Protocol):
    """Protocol defining the data store interface."""

    def fetch_all(
        self,
        model_cls: type[R],
        predicate: Callable[[R], bool] | None = None,
        sort: Callable[[R], Any] | None = None,
        reverse: bool = False,
    ) -> list[R]: ...
    def get(self, model_cls: type[R], record_id: UUID | str) -> R | None: ...
    def require(self, model_cls: type[R], record_id: UUID | str) -> R: ...
    def insert(self, record: Record) -> None: ...
    def delete(self, record: Record) -> None: ...
    def save(self) -> None: ...
    def rollback(self) -> None: ...
    def transaction(self) -> Any: ...


class JSONEncoder(json.JSONEncoder):
    """Custom JSON encoder for our data types."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, date):
            return obj.isoformat()
        if isinstance(obj, time):
            return obj.isoformat()
        if isinstance(obj, Decimal):
            return str(obj)
        return super().default(obj)


Snapshot = dict[type[Record], dict[UUID, Record]]


def empty_snapshot() -> Snapshot:
    return {model_cls: {} for model_cls in MODEL_TYPES}


class ObjectStore(ABC):
    """Identity map and delete rules shared by the storage backends.

    Subclasses implement _read_snapshot() and _write_snapshot().
    """

    def __init__(self) -> None:
        self._records: Snapshot = self._read_snapshot()

    @abstractmethod
    def _read_snapshot(self) -> Snapshot:
        """Load every committed record."""

    @abstractmethod
    def _write_snapshot(self, records: Snapshot) -> None:
        """Replace the committed records with these."""

    # --- Queries ---

    def fetch_all(
        self,
        model_cls: type[R],
        predicate: Callable[[R], bool] | None = None,
        sort: Callable[[R], Any] | None = None,
        reverse: bool = False,
    ) -> list[R]:
        """Fetch all records of a type.

        Args:
            model_cls: Record type to fetch
            predicate: Optional filter
            sort: Optional sort key. Without one, insertion order is kept.
            reverse: Reverse the sort order

        Returns:
            List of matching records
        """
        records: list[R] = list(self._table(model_cls).values())  # type: ignore[arg-type]
        if predicate is not None:
            records = [r for r in records if predicate(r)]
        if sort is not None:
            records.sort(key=sort, reverse=reverse)
        elif reverse:
            records.reverse()
        return records

    def get(self, model_cls: type[R], record_id: UUID | str) -> R | None:
        """Get a record by ID, or None if it doesn't exist."""
        if isinstance(record_id, str):
            try:
                record_id = UUID(record_id)
            except ValueError:
                return None
        return self._table(model_cls).get(record_id)  # type: ignore[return-value]

    def require(self, model_cls: type[R], record_id: UUID | str) -> R:
        """Get a record by ID.

        Raises:
            RecordNotFoundError: If no such record exists
        """
        record = self.get(model_cls, record_id)
        if record is None:
            raise RecordNotFoundError(model_cls.__name__, record_id)
        return record

    def count(self, model_cls: type[Record]) -> int:
        return len(self._table(model_cls))

    # --- Changes ---

    def insert(self, record: Record) -> None:
        """Add a record to the pending changes.

        Raises:
            ValidationError: If a required reference doesn't resolve
        """
        self._check_references(record)
        self._table(type(record))[record.id] = record

        if isinstance(record, ShoppingItem) and record.trip_id is not None:
            trip = self._table(ShoppingTrip)[record.trip_id]
            if record.id not in trip.item_ids:  # type: ignore[attr-defined]
                trip.item_ids.append(record.id)  # type: ignore[attr-defined]

    def delete(self, record: Record) -> None:
        """Remove a record.

        Deleting a trip deletes its line items. Stores, categories and items
        that are still referenced cannot be deleted.

        Raises:
            ValidationError: If the record is still referenced
        """
        if isinstance(record, ShoppingTrip):
            owned = set(record.item_ids)
            owned.update(
                si.id
                for si in self.fetch_all(ShoppingItem, lambda si: si.trip_id == record.id)
            )
            for line_id in owned:
                self._table(ShoppingItem).pop(line_id, None)
            record.item_ids.clear()
        elif isinstance(record, ShoppingItem):
            if record.trip_id is not None:
                trip = self.get(ShoppingTrip, record.trip_id)
                if trip is not None and record.id in trip.item_ids:
                    trip.item_ids.remove(record.id)
        else:
            users = self._referrers(record)
            if users:
                raise ValidationError(
                    f"{type(record).__name__} '{getattr(record, 'name', record.id)}' "
                    f"is still used by {users} record(s)"
                )

        self._table(type(record)).pop(record.id, None)

    def save(self) -> None:
        """Commit all pending changes.

        Raises:
            PersistenceError: If the backend write fails. Previously committed
                data is left untouched.
        """
        self._write_snapshot(self._records)
        logger.debug(
            "Saved %s",
            ", ".join(f"{len(self._records[m])} {COLLECTION_NAMES[m]}" for m in MODEL_TYPES),
        )

    def rollback(self) -> None:
        """Discard pending changes by reloading committed data.

        Records fetched before the rollback are stale afterwards.
        """
        self._records = self._read_snapshot()
        logger.debug("Rolled back pending changes")

    @contextmanager
    def transaction(self) -> Iterator["ObjectStore"]:
        """Save on success, roll back and re-raise on any error."""
        try:
            yield self
            self.save()
        except Exception:
            self.rollback()
            raise

    # --- Helpers ---

    def _table(self, model_cls: type[Record]) -> dict[UUID, Record]:
        try:
            return self._records[model_cls]
        except KeyError:
            raise ValidationError(f"Unsupported record type: {model_cls.__name__}") from None

    def _check_references(self, record: Record) -> None:
        def need(model_cls: type[Record], ref: UUID | None, label: str) -> None:
            if ref is None or ref not in self._table(model_cls):
                raise ValidationError(f"{type(record).__name__} requires an existing {label}")

        if isinstance(record, Item):
            need(Category, record.category_id, "category")
            if record.preferred_store_id is not None:
                need(Store, record.preferred_store_id, "preferred store")
        elif isinstance(record, ShoppingItem):
            need(Item, record.item_id, "item")
            need(Store, record.store_id, "store")
            if record.trip_id is not None:
                need(ShoppingTrip, record.trip_id, "trip")
        elif isinstance(record, ShoppingTrip):
            need(Store, record.store_id, "store")
        else:
            self._table(type(record))

    def _referrers(self, record: Record) -> int:
        """Count records holding a non-owning reference to this one."""
        if isinstance(record, Category):
            return len(self.fetch_all(Item, lambda i: i.category_id == record.id))
        if isinstance(record, Item):
            return len(self.fetch_all(ShoppingItem, lambda si: si.item_id == record.id))
        if isinstance(record, Store):
            return (
                len(self.fetch_all(Item, lambda i: i.preferred_store_id == record.id))
                + len(self.fetch_all(ShoppingItem, lambda si: si.store_id == record.id))
                + len(self.fetch_all(ShoppingTrip, lambda t: t.store_id == record.id))
            )
        return 0


class DataStore(ObjectStore):
    """Manages JSON file persistence for Cart Copilot data."""

    FILE_NAME = "cart_copilot.json"
    VERSION = "1.0"

    def __init__(self, data_dir: Path | None = None):
        """Initialize data store.

        Args:
            data_dir: Directory for data files. Defaults to ./data
        """
        self.data_dir = data_dir or Path.cwd() / "data"
        self._ensure_directories()
        super().__init__()

    def _ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _data_path(self) -> Path:
        """Path to the data file."""
        return self.data_dir / self.FILE_NAME

    def _read_snapshot(self) -> Snapshot:
        records = empty_snapshot()
        path = self._data_path()
        if not path.exists():
            return records

        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Could not read {path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"Corrupt data file {path}: expected an object")

        for model_cls in MODEL_TYPES:
            collection = COLLECTION_NAMES[model_cls]
            raws = data.get(collection, [])
            if not isinstance(raws, list):
                raise PersistenceError(f"Corrupt data file {path}: '{collection}' is not a list")
            for raw in raws:
                try:
                    record = model_cls.model_validate(raw)
                except (ValueError, CartCopilotError) as e:
                    raise PersistenceError(f"Corrupt {model_cls.__name__} in {path}: {e}") from e
                records[model_cls][record.id] = record
        return records

    def _write_snapshot(self, records: Snapshot) -> None:
        path = self._data_path()
        document: dict[str, Any] = {
            "version": self.VERSION,
            "last_updated": datetime.now(),
        }
        for model_cls in MODEL_TYPES:
            document[COLLECTION_NAMES[model_cls]] = [
                r.model_dump(mode="json") for r in records[model_cls].values()
            ]

        # Write beside the target and swap in, so a failure never truncates it
        fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=".cart_copilot-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(document, f, cls=JSONEncoder, indent=2)
            os.replace(tmp_name, path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            logger.error("Save failed for %s: %s", path, e)
            raise PersistenceError(f"Could not write {path}: {e}") from e


def create_data_store(
    backend: BackendType = BackendType.JSON,
    data_dir: Path | None = None,
    db_path: Path | None = None,
) -> ObjectStore:
    """Create a data store with the specified backend.

    Args:
        backend: Which backend to use (json or sqlite)
        data_dir: Directory for data files (used by JSON backend, also used
                  as base path for SQLite if db_path not specified)
        db_path: Path to SQLite database file (only used by SQLite backend)

    Returns:
        A DataStore or SQLiteStore instance

    Example:
        # Use JSON backend (default)
        store = create_data_store()

        # Use SQLite with custom path
        store = create_data_store(
            BackendType.SQLITE,
            db_path=Path("./my_data/cart_copilot.db")
        )
    """
    if backend == BackendType.SQLITE:
        from .sqlite_store import SQLiteStore

        if db_path is None and data_dir is not None:
            db_path = data_dir / "cart_copilot.db"

        return SQLiteStore(db_path=db_path)
    else:
        return DataStore(data_dir=data_dir)
