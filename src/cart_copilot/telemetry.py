"""Best-effort usage signals.

Signals carry coarse properties only (price ranges, yes/no flags, counts),
never names or raw amounts. Delivery problems are logged and dropped; a
signal never raises into the caller.
"""

import logging
from collections.abc import Callable
from decimal import Decimal

logger = logging.getLogger(__name__)

TelemetrySink = Callable[[str, dict[str, str]], None]

PRICE_RANGES: list[tuple[Decimal, str]] = [
    (Decimal("1"), "under_1"),
    (Decimal("5"), "1_to_5"),
    (Decimal("10"), "5_to_10"),
    (Decimal("20"), "10_to_20"),
    (Decimal("50"), "20_to_50"),
    (Decimal("100"), "50_to_100"),
]


def price_range(price: Decimal | float) -> str:
    """Bucket a price for analytics."""
    value = Decimal(str(price))
    for upper, label in PRICE_RANGES:
        if value < upper:
            return label
    return "over_100"


def log_sink(event: str, properties: dict[str, str]) -> None:
    """Default sink: write the signal to the debug log."""
    logger.debug("signal %s %s", event, properties)


def _yes_no(value: str | None) -> str:
    return "yes" if value else "no"


class TelemetryManager:
    """Process-wide signal dispatcher."""

    _shared: "TelemetryManager | None" = None

    def __init__(self, sink: TelemetrySink | None = None, enabled: bool = True):
        self.sink = sink or log_sink
        self.enabled = enabled

    @classmethod
    def shared(cls) -> "TelemetryManager":
        """Get or create the process-wide instance."""
        if cls._shared is None:
            cls._shared = cls()
        return cls._shared

    @classmethod
    def configure(
        cls, sink: TelemetrySink | None = None, enabled: bool = True
    ) -> "TelemetryManager":
        """Replace the process-wide instance."""
        cls._shared = cls(sink=sink, enabled=enabled)
        return cls._shared

    def signal(self, event: str, properties: dict[str, str] | None = None) -> None:
        """Send a signal. Never raises."""
        if not self.enabled:
            return
        try:
            self.sink(event, dict(properties or {}))
        except Exception as e:
            logger.warning("Dropped telemetry signal %s: %s", event, e)

    # --- Items ---

    def track_item_created(self, price: Decimal, category: str | None) -> None:
        self.signal(
            "item-created",
            {"price_range": price_range(price), "has_category": _yes_no(category)},
        )

    def track_item_edited(self) -> None:
        self.signal("item-edited")

    def track_item_deleted(self) -> None:
        self.signal("item-deleted")

    # --- Shopping items ---

    def track_shopping_item_added(self, price: Decimal, from_existing: bool) -> None:
        self.signal(
            "shopping-item-added",
            {
                "price_range": price_range(price),
                "source": "existing" if from_existing else "new",
            },
        )

    def track_shopping_item_edited(self) -> None:
        self.signal("shopping-item-edited")

    def track_shopping_item_deleted(self) -> None:
        self.signal("shopping-item-deleted")

    # --- Shopping trips ---

    def track_shopping_trip_created(self, store: str | None, item_count: int) -> None:
        self.signal(
            "shopping-trip-created",
            {"has_store": _yes_no(store), "item_count": str(item_count)},
        )

    def track_shopping_trip_completed(
        self, store: str | None, item_count: int, total_amount: Decimal
    ) -> None:
        self.signal(
            "shopping-trip-completed",
            {
                "has_store": _yes_no(store),
                "item_count": str(item_count),
                "total_range": price_range(total_amount),
            },
        )

    # --- Settings ---

    def track_category_created(self) -> None:
        self.signal("category-created")

    def track_category_edited(self) -> None:
        self.signal("category-edited")

    def track_category_deleted(self) -> None:
        self.signal("category-deleted")

    def track_store_created(self) -> None:
        self.signal("store-created")

    def track_store_edited(self) -> None:
        self.signal("store-edited")

    def track_store_deleted(self) -> None:
        self.signal("store-deleted")

    # --- Navigation ---

    def track_tab_selected(self, tab: str) -> None:
        self.signal("tab-selected", {"tab": tab})
