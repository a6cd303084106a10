"""
Derived stock for a product's inventory ledger.

    physical  = opening + inward - deduction + auto_addition - auto_deduction
    available = physical - blocked

Both functions are total: negative values are legitimate results (oversold
stock shows up as negative availability) and are classified, never raised.
"""

from dataclasses import dataclass, replace
from typing import Any

LOW_STOCK_THRESHOLD = 10

STOCK_STATUS_OUT = "out-of-stock"
STOCK_STATUS_LOW = "low-stock"
STOCK_STATUS_IN = "in-stock"

ADJUSTMENT_INWARD = "inward"
ADJUSTMENT_DEDUCTION = "deduction"
ADJUSTMENT_TYPES = (ADJUSTMENT_INWARD, ADJUSTMENT_DEDUCTION)

# Counter each manual adjustment type accumulates into.
ADJUSTMENT_COUNTERS = {
    ADJUSTMENT_INWARD: "inward_addition",
    ADJUSTMENT_DEDUCTION: "deduction",
}

LEDGER_FIELDS = (
    "opening_stock",
    "inward_addition",
    "deduction",
    "auto_addition",
    "auto_deduction",
    "blocked_stock",
)


@dataclass(frozen=True)
class LedgerCounters:
    opening_stock: int = 0
    inward_addition: int = 0
    deduction: int = 0
    auto_addition: int = 0
    auto_deduction: int = 0
    blocked_stock: int = 0

    @classmethod
    def from_product(cls, product: Any) -> "LedgerCounters":
        return cls(
            **{field: int(getattr(product, field, 0) or 0) for field in LEDGER_FIELDS}
        )

    def with_counter(self, field: str, value: int) -> "LedgerCounters":
        return replace(self, **{field: value})

    def as_dict(self) -> dict[str, int]:
        return {field: getattr(self, field) for field in LEDGER_FIELDS}


@dataclass(frozen=True)
class DerivedStock:
    physical_stock: int
    available_stock: int

    @property
    def blocked_exceeds_physical(self) -> bool:
        return self.available_stock < 0


def physical_stock(counters: LedgerCounters) -> int:
    return (
        counters.opening_stock
        + counters.inward_addition
        - counters.deduction
        + counters.auto_addition
        - counters.auto_deduction
    )


def available_stock(counters: LedgerCounters) -> int:
    return physical_stock(counters) - counters.blocked_stock


def derive_stock(counters: LedgerCounters) -> DerivedStock:
    physical = physical_stock(counters)
    return DerivedStock(
        physical_stock=physical,
        available_stock=physical - counters.blocked_stock,
    )


def classify_stock_status(available: int) -> str:
    if available <= 0:
        return STOCK_STATUS_OUT
    if available <= LOW_STOCK_THRESHOLD:
        return STOCK_STATUS_LOW
    return STOCK_STATUS_IN


def can_open_deduction(counters: LedgerCounters) -> bool:
    """Deductions are only offered while there is physical stock to take."""
    return physical_stock(counters) > 0


def project_adjustment(
    counters: LedgerCounters, adjustment_type: str, amount: int
) -> tuple[LedgerCounters, int, int]:
    """Returns the projected ledger plus the old and new value of the touched counter."""
    field = ADJUSTMENT_COUNTERS[adjustment_type]
    old_value = getattr(counters, field)
    new_value = old_value + amount
    return counters.with_counter(field, new_value), old_value, new_value
