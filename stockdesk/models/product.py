from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from stockdesk.db.base import Base

# Counters the operator never writes; order fulfillment and returns own them.
EXTERNAL_LEDGER_FIELDS = ("auto_addition", "auto_deduction", "blocked_stock")
LEDGER_FIELDS = ("opening_stock", "inward_addition", "deduction", *EXTERNAL_LEDGER_FIELDS)


class Product(Base):
    """
    A business product addressed by SKU, with its inventory ledger embedded.

    The six ledger counters are cumulative totals. Physical and available stock
    are derived on read, see ``stockdesk.services.stock_calculator``.
    """
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    business_id: Mapped[str] = mapped_column(String(36), ForeignKey("businesses.id"), index=True)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    weight: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)  # grams
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    mapped_variants: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(JSON, nullable=True)

    opening_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    inward_addition: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    deduction: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    auto_addition: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    auto_deduction: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    blocked_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    created_by_user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    updated_by_user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        *(
            CheckConstraint(f"{field} >= 0", name=f"ck_products_{field}_non_negative")
            for field in LEDGER_FIELDS
        ),
        Index("ix_products_business_created_at", "business_id", "created_at"),
        Index("ix_products_business_category", "business_id", "category"),
        Index("ux_products_business_sku_lower", "business_id", func.lower(sku), unique=True),
    )


class ProductLog(Base):
    """
    Per-product activity trail: creation, edits, mapping removal and every
    accepted inventory adjustment. Rows are append-only.
    """
    __tablename__ = "product_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    business_id: Mapped[str] = mapped_column(String(36), ForeignKey("businesses.id"), index=True)
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("products.id"), index=True)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)

    action: Mapped[str] = mapped_column(String(50), nullable=False)  # "created", "updated", "inventory_adjusted"
    changes: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    adjustment_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    adjustment_amount: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    performed_by_user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    performed_by_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    metadata_json: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    performed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_product_logs_product_performed_at", "product_id", "performed_at"),
        Index("ix_product_logs_business_action_performed_at", "business_id", "action", "performed_at"),
    )
