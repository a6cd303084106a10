from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class MappedVariantIn(BaseModel):
    store_id: str
    product_id: str
    product_title: Optional[str] = None
    variant_id: int
    variant_title: Optional[str] = None
    variant_sku: Optional[str] = None
    mapped_at: Optional[datetime] = None


class ProductCreate(BaseModel):
    sku: str = Field(..., max_length=100)
    name: str = Field(..., max_length=255)
    category: str = Field(..., max_length=100)
    weight: Decimal = Field(..., gt=0, description="Weight in grams")
    price: Optional[Decimal] = Field(default=None, gt=0)
    description: Optional[str] = None
    opening_stock: int = Field(default=0, ge=0)
    mapped_variants: list[MappedVariantIn] = Field(default_factory=list)

    @field_validator("sku", "name", "category")
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("value is required")
        return cleaned

    @field_validator("description")
    @classmethod
    def normalize_description(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "sku": "KURTA-BLU-M",
                "name": "Blue Cotton Kurta (M)",
                "category": "apparel",
                "weight": 250,
                "price": 899,
                "description": "Hand block printed",
                "opening_stock": 10,
            }
        }
    )


class ProductUpdate(BaseModel):
    name: str = Field(..., max_length=255)
    weight: Decimal = Field(..., gt=0)
    category: str = Field(..., max_length=100)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, gt=0)

    @field_validator("name", "category")
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("value is required")
        return cleaned

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Blue Cotton Kurta (Medium)",
                "weight": 260,
                "category": "apparel",
                "price": 949,
            }
        }
    )


class LedgerOut(BaseModel):
    opening_stock: int
    inward_addition: int
    deduction: int
    auto_addition: int
    auto_deduction: int
    blocked_stock: int


class ProductOut(BaseModel):
    sku: str
    name: str
    category: Optional[str] = None
    weight: Optional[float] = None
    price: Optional[float] = None
    description: Optional[str] = None
    mapped_variants: list[dict[str, Any]] = Field(default_factory=list)
    ledger: LedgerOut
    physical_stock: int
    available_stock: int
    stock_status: str
    can_deduct: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductCreateOut(BaseModel):
    ok: bool = True
    message: str = "Product created."
    product: ProductOut


class ProductChangeOut(BaseModel):
    field: str
    field_label: str
    old_value: Any = None
    new_value: Any = None


class ProductUpdateOut(BaseModel):
    updated: bool
    message: str
    product: ProductOut
    changes: list[ProductChangeOut]


class ProductDeleteOut(BaseModel):
    ok: bool = True
    message: str = "Product deleted successfully."
    sku: str
    product_name: str


class ProductLogOut(BaseModel):
    id: str
    action: str
    changes: list[dict[str, Any]]
    adjustment_type: Optional[str] = None
    adjustment_amount: Optional[int] = None
    performed_by: str
    performed_by_email: Optional[str] = None
    performed_at: datetime
    metadata: Optional[dict[str, Any]] = None


class ProductLogListOut(BaseModel):
    sku: str
    product_name: str
    logs: list[ProductLogOut]
    total_logs: int


class MappingRemovalIn(BaseModel):
    skus: Optional[list[str]] = None
    remove_all: bool = False

    @model_validator(mode="after")
    def require_target(self) -> "MappingRemovalIn":
        if not self.remove_all and not self.skus:
            raise ValueError("Either skus array or remove_all flag is required")
        return self

    model_config = ConfigDict(
        json_schema_extra={"example": {"skus": ["KURTA-BLU-M", "KURTA-RED-L"], "remove_all": False}}
    )


class MappingRemovalItemOut(BaseModel):
    sku: str
    product_name: str
    removed_count: int
    status: str
    message: Optional[str] = None


class MappingRemovalSummaryOut(BaseModel):
    processed: int
    mappings_removed: int
    errors: int


class MappingRemovalOut(BaseModel):
    ok: bool = True
    message: str
    summary: MappingRemovalSummaryOut
    results: list[MappingRemovalItemOut]
