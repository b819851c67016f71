"""Exception types for Cart Copilot."""

from decimal import Decimal
from uuid import UUID


class CartCopilotError(Exception):
    """Base class for all Cart Copilot errors."""


class InvalidPriceError(CartCopilotError):
    """Raised when a price is negative or not a finite number."""

    def __init__(self, price: Decimal | float | int | str):
        self.price = price
        super().__init__(f"Price must be a finite amount of zero or more (got {price})")


class InvalidUnitError(CartCopilotError):
    """Raised when a unit count is zero or negative."""

    def __init__(self, unit: int):
        self.unit = unit
        super().__init__(f"Unit must be greater than zero (got {unit})")


class InvalidQuantityError(CartCopilotError):
    """Raised when a line item quantity is zero or negative."""

    def __init__(self, quantity: int):
        self.quantity = quantity
        super().__init__(f"Quantity must be greater than zero (got {quantity})")


class ValidationError(CartCopilotError):
    """Raised when a record is missing a required reference or is otherwise unusable."""


class RecordNotFoundError(CartCopilotError):
    """Raised when a record is not found."""

    def __init__(self, kind: str, record_id: UUID | str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} with ID '{record_id}' not found")


class PersistenceError(CartCopilotError):
    """Raised when the underlying storage cannot be read or written."""
