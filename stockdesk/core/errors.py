"""
Typed errors raised by the stockdesk services.

Every error carries a machine-readable ``code`` and an HTTP ``status_code`` so
routers can let them propagate and the API layer renders them in the same
envelope as ``HTTPException``:

    StockDeskError
    |
    +-- ValidationError         422  validation_error
    +-- NotFoundError           404  not_found
    +-- ConflictError           409  conflict
    +-- InvalidAdjustmentError  400  invalid_adjustment
    +-- PersistenceError        503  persistence_error
"""

from typing import Any


class StockDeskError(Exception):
    code: str = "stockdesk_error"
    status_code: int = 400

    def __init__(self, message: str, *, details: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(StockDeskError):
    code = "validation_error"
    status_code = 422

    def __init__(self, field: str, message: str):
        super().__init__(
            message,
            details=[{"field": field, "message": message, "type": "value_error"}],
        )
        self.field = field


class NotFoundError(StockDeskError):
    code = "not_found"
    status_code = 404


class ConflictError(StockDeskError):
    code = "conflict"
    status_code = 409


class InvalidAdjustmentError(StockDeskError):
    """A deduction that would drive physical stock below zero."""

    code = "invalid_adjustment"
    status_code = 400

    def __init__(
        self,
        message: str,
        *,
        sku: str,
        amount: int,
        current_physical_stock: int,
        projected_physical_stock: int,
    ):
        super().__init__(
            message,
            details=[
                {
                    "field": "amount",
                    "message": message,
                    "type": "physical_stock_negative",
                    "sku": sku,
                    "amount": amount,
                    "current_physical_stock": current_physical_stock,
                    "projected_physical_stock": projected_physical_stock,
                    "max_deductible": max(current_physical_stock, 0),
                }
            ],
        )
        self.sku = sku
        self.amount = amount
        self.current_physical_stock = current_physical_stock
        self.projected_physical_stock = projected_physical_stock


class PersistenceError(StockDeskError):
    """The store rejected the write; nothing was applied."""

    code = "persistence_error"
    status_code = 503
