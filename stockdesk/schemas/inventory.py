from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stockdesk.schemas.product import LedgerOut


class StockAdjustIn(BaseModel):
    sku: str = Field(..., min_length=1, max_length=100)
    type: Literal["inward", "deduction"]
    amount: int = Field(..., gt=0, strict=True, description="Units to add (inward) or remove (deduction).")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "sku": "KURTA-BLU-M",
                "type": "deduction",
                "amount": 2,
            }
        }
    )


class StockSnapshotOut(BaseModel):
    counter_value: int
    physical_stock: int
    available_stock: int


class StockAdjustOut(BaseModel):
    ok: bool = True
    message: str
    sku: str
    product_name: str
    type: str
    amount: int
    counter: str
    previous: StockSnapshotOut
    current: StockSnapshotOut
    blocked_exceeds_physical: bool
    log_id: str


class BulkInwardRowIn(BaseModel):
    # Cells arrive as the spreadsheet typed them; bulk_inward reports bad cells per row.
    sku: Optional[Any] = None
    quantity: Optional[Any] = None

    @field_validator("sku", mode="before")
    @classmethod
    def stringify_numeric_sku(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if isinstance(value, float) and value.is_integer():
                return str(int(value))
            return str(value)
        return value


class BulkInwardIn(BaseModel):
    rows: list[BulkInwardRowIn] = Field(..., min_length=1)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "rows": [
                    {"sku": "KURTA-BLU-M", "quantity": 20},
                    {"sku": "KURTA-RED-L", "quantity": "5"},
                ]
            }
        }
    )


class BulkInwardRowOut(BaseModel):
    row: int
    sku: Optional[str] = None
    quantity: Optional[Any] = None
    status: Literal["Success", "Error", "Skipped"]
    message: str


class BulkInwardSummaryOut(BaseModel):
    total: int
    success: int
    errors: int
    skipped: int


class BulkInwardOut(BaseModel):
    ok: bool = True
    summary: BulkInwardSummaryOut
    results: list[BulkInwardRowOut]


class StockRowOut(BaseModel):
    sku: str
    name: str
    category: Optional[str] = None
    weight: Optional[float] = None
    price: Optional[float] = None
    description: Optional[str] = None
    mapped_variants_count: int = 0
    created_at: Optional[datetime] = None
    ledger: LedgerOut
    physical_stock: int
    available_stock: int
    stock_status: Literal["in-stock", "low-stock", "out-of-stock"]
    can_deduct: bool
    blocked_exceeds_physical: bool


class StockListOut(BaseModel):
    items: list[StockRowOut]
    total_count: int
    page: int
    page_size: int
    total_pages: int


class StockSummaryOut(BaseModel):
    total_products: int
    total_physical: int
    total_available: int
    total_blocked: int
    out_of_stock: int
    low_stock: int


class CategoryListOut(BaseModel):
    items: list[str]
