"""SQLite-based data persistence for Cart Copilot.

This module provides SQLite database storage as an alternative to the JSON file.
It implements the same interface as DataStore for seamless switching.
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any
from uuid import UUID

from .data_store import COLLECTION_NAMES, MODEL_TYPES, ObjectStore, Snapshot, empty_snapshot
from .errors import PersistenceError
from .models import Item, Record, ShoppingItem, ShoppingTrip

logger = logging.getLogger(__name__)


def adapt_uuid(uuid_val: UUID) -> str:
    """Adapt UUID to string for SQLite."""
    return str(uuid_val)


def adapt_datetime(dt: datetime) -> str:
    """Adapt datetime to ISO string for SQLite."""
    return dt.isoformat()


def adapt_decimal(value: Decimal) -> str:
    """Adapt Decimal to string for SQLite so no precision is lost."""
    return str(value)


# Register adapters
sqlite3.register_adapter(UUID, adapt_uuid)
sqlite3.register_adapter(datetime, adapt_datetime)
sqlite3.register_adapter(Decimal, adapt_decimal)


class SQLiteStore(ObjectStore):
    """Manages SQLite database persistence for Cart Copilot data."""

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path | None = None):
        """Initialize SQLite store.

        Args:
            db_path: Path to the SQLite database file. Defaults to ./data/cart_copilot.db
        """
        if db_path is None:
            db_path = Path.cwd() / "data" / "cart_copilot.db"
        self.db_path = db_path
        self._ensure_directories()
        try:
            self._init_database()
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not open {self.db_path}: {e}") from e
        super().__init__()

    def _ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _get_connection(self):
        """Get a database connection with proper cleanup."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_database(self) -> None:
        """Initialize database schema if not exists."""
        with self._get_connection() as conn:
            conn.executescript("""
                -- Schema version tracking
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                );

                CREATE TABLE IF NOT EXISTS stores (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    address TEXT NOT NULL DEFAULT '',
                    is_default INTEGER NOT NULL DEFAULT 0
                );

                CREATE TABLE IF NOT EXISTS categories (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    tax_rate REAL NOT NULL DEFAULT 0.0,
                    is_default INTEGER NOT NULL DEFAULT 0,
                    emoji TEXT
                );

                CREATE TABLE IF NOT EXISTS items (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    current_price TEXT NOT NULL,
                    category_id TEXT NOT NULL REFERENCES categories(id),
                    brand TEXT,
                    upc TEXT,
                    emoji TEXT,
                    is_favorite INTEGER NOT NULL DEFAULT 0,
                    unit INTEGER CHECK (unit IS NULL OR unit > 0),
                    unit_type TEXT,
                    preferred_store_id TEXT REFERENCES stores(id),
                    photo BLOB,
                    date_added TEXT NOT NULL
                );

                -- Superseded prices, keyed by change time
                CREATE TABLE IF NOT EXISTS price_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    item_id TEXT NOT NULL REFERENCES items(id) ON DELETE CASCADE,
                    changed_at TEXT NOT NULL,
                    price TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_price_history_item
                    ON price_history(item_id);

                CREATE TABLE IF NOT EXISTS shopping_trips (
                    id TEXT PRIMARY KEY,
                    store_id TEXT NOT NULL REFERENCES stores(id),
                    date TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS shopping_items (
                    id TEXT PRIMARY KEY,
                    item_id TEXT NOT NULL REFERENCES items(id),
                    quantity INTEGER NOT NULL CHECK (quantity > 0),
                    store_id TEXT NOT NULL REFERENCES stores(id),
                    date_added TEXT NOT NULL,
                    trip_id TEXT REFERENCES shopping_trips(id) ON DELETE CASCADE,
                    position INTEGER NOT NULL DEFAULT 0
                );

                CREATE INDEX IF NOT EXISTS idx_shopping_items_trip
                    ON shopping_items(trip_id, position);

                -- Record schema version
                INSERT OR IGNORE INTO schema_version (version) VALUES (1);
            """)

    # --- Snapshot I/O ---

    def _read_snapshot(self) -> Snapshot:
        records = empty_snapshot()
        try:
            with self._get_connection() as conn:
                history: dict[str, dict[str, str]] = {}
                for row in conn.execute(
                    "SELECT item_id, changed_at, price FROM price_history ORDER BY id"
                ):
                    history.setdefault(row["item_id"], {})[row["changed_at"]] = row["price"]

                trip_lines: dict[str, list[str]] = {}
                for row in conn.execute(
                    "SELECT id, trip_id FROM shopping_items "
                    "WHERE trip_id IS NOT NULL ORDER BY position, rowid"
                ):
                    trip_lines.setdefault(row["trip_id"], []).append(row["id"])

                for model_cls in MODEL_TYPES:
                    table = COLLECTION_NAMES[model_cls]
                    for row in conn.execute(f"SELECT * FROM {table} ORDER BY rowid"):
                        data = dict(row)
                        if model_cls is Item:
                            data["price_history"] = history.get(data["id"], {})
                        elif model_cls is ShoppingTrip:
                            data["item_ids"] = trip_lines.get(data["id"], [])
                        elif model_cls is ShoppingItem:
                            data.pop("position", None)
                        record = model_cls.model_validate(data)
                        records[model_cls][record.id] = record
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not read {self.db_path}: {e}") from e
        except ValueError as e:
            raise PersistenceError(f"Corrupt record in {self.db_path}: {e}") from e
        return records

    def _write_snapshot(self, records: Snapshot) -> None:
        positions: dict[UUID, int] = {}
        for trip in records[ShoppingTrip].values():
            for index, line_id in enumerate(trip.item_ids):  # type: ignore[attr-defined]
                positions[line_id] = index

        try:
            with self._get_connection() as conn:
                # Children first, so references never dangle mid-transaction
                for model_cls in reversed(MODEL_TYPES):
                    table = COLLECTION_NAMES[model_cls]
                    existing = {row["id"] for row in conn.execute(f"SELECT id FROM {table}")}
                    removed = existing - {str(rid) for rid in records[model_cls]}
                    if removed:
                        placeholders = ",".join("?" * len(removed))
                        conn.execute(
                            f"DELETE FROM {table} WHERE id IN ({placeholders})",
                            list(removed),
                        )

                for model_cls in MODEL_TYPES:
                    table = COLLECTION_NAMES[model_cls]
                    for record in records[model_cls].values():
                        row = self._row(record)
                        if isinstance(record, ShoppingItem):
                            row["position"] = positions.get(record.id, 0)
                        self._upsert(conn, table, row)
                        if isinstance(record, Item):
                            self._write_price_history(conn, record)
        except sqlite3.Error as e:
            logger.error("Save failed for %s: %s", self.db_path, e)
            raise PersistenceError(f"Could not write {self.db_path}: {e}") from e

    def _row(self, record: Record) -> dict[str, Any]:
        """Column values for a record."""
        exclude = {"price_history"} if isinstance(record, Item) else set()
        if isinstance(record, ShoppingTrip):
            exclude = {"item_ids"}
        return record.model_dump(exclude=exclude)

    def _upsert(self, conn: sqlite3.Connection, table: str, row: dict[str, Any]) -> None:
        columns = list(row)
        updates = ", ".join(f"{c} = excluded.{c}" for c in columns if c != "id")
        conn.execute(
            f"INSERT INTO {table} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' * len(columns))}) "
            f"ON CONFLICT(id) DO UPDATE SET {updates}",
            [row[c] for c in columns],
        )

    def _write_price_history(self, conn: sqlite3.Connection, item: Item) -> None:
        conn.execute("DELETE FROM price_history WHERE item_id = ?", (str(item.id),))
        conn.executemany(
            "INSERT INTO price_history (item_id, changed_at, price) VALUES (?, ?, ?)",
            [(str(item.id), changed_at, price) for changed_at, price in item.price_history.items()],
        )
