import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockdesk.core.errors import NotFoundError, ValidationError
from stockdesk.models.product import Product
from stockdesk.services.stock_calculator import (
    LOW_STOCK_THRESHOLD,
    STOCK_STATUS_LOW,
    STOCK_STATUS_OUT,
    LedgerCounters,
    can_open_deduction,
    classify_stock_status,
    derive_stock,
)

STOCK_FILTER_ALL = "all"
STOCK_FILTERS = (STOCK_FILTER_ALL, "in-stock", "low-stock", "out-of-stock")
SORT_FIELDS = ("name", "sku", "physical_stock", "available_stock")
SORT_DIRECTIONS = ("asc", "desc")

_SORT_FIELD_ALIASES = {
    "physicalStock": "physical_stock",
    "availableStock": "available_stock",
}


@dataclass(frozen=True)
class StockListQuery:
    query: str | None = None
    category: str | None = None
    stock_filter: str = STOCK_FILTER_ALL
    sort_field: str = "name"
    sort_direction: str = "asc"
    page: int = 1
    page_size: int = 25


@dataclass(frozen=True)
class StockRow:
    sku: str
    name: str
    category: str | None
    weight: Decimal | None
    price: Decimal | None
    description: str | None
    mapped_variants_count: int
    created_at: datetime | None
    ledger: LedgerCounters
    physical_stock: int
    available_stock: int
    stock_status: str
    can_deduct: bool

    @property
    def blocked_exceeds_physical(self) -> bool:
        return self.available_stock < 0


@dataclass(frozen=True)
class StockPage:
    items: list[StockRow]
    total_count: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size) if self.total_count else 0


@dataclass(frozen=True)
class StockSummary:
    total_products: int
    total_physical: int
    total_available: int
    total_blocked: int
    out_of_stock: int
    low_stock: int


def build_stock_row(product: Any) -> StockRow:
    ledger = LedgerCounters.from_product(product)
    derived = derive_stock(ledger)
    return StockRow(
        sku=product.sku,
        name=product.name,
        category=getattr(product, "category", None),
        weight=getattr(product, "weight", None),
        price=getattr(product, "price", None),
        description=getattr(product, "description", None),
        mapped_variants_count=len(getattr(product, "mapped_variants", None) or []),
        created_at=getattr(product, "created_at", None),
        ledger=ledger,
        physical_stock=derived.physical_stock,
        available_stock=derived.available_stock,
        stock_status=classify_stock_status(derived.available_stock),
        can_deduct=can_open_deduction(ledger),
    )


def normalize_list_query(params: StockListQuery) -> StockListQuery:
    sort_field = _SORT_FIELD_ALIASES.get(params.sort_field, params.sort_field)
    if params.stock_filter not in STOCK_FILTERS:
        raise ValidationError("stock_filter", f"stock_filter must be one of: {', '.join(STOCK_FILTERS)}")
    if sort_field not in SORT_FIELDS:
        raise ValidationError("sort_field", f"sort_field must be one of: {', '.join(SORT_FIELDS)}")
    if params.sort_direction not in SORT_DIRECTIONS:
        raise ValidationError("sort_direction", "sort_direction must be asc or desc")
    if params.page < 1:
        raise ValidationError("page", "page must be at least 1")
    if params.page_size < 1:
        raise ValidationError("page_size", "page_size must be at least 1")

    query = (params.query or "").strip() or None
    category = params.category or None
    return StockListQuery(
        query=query,
        category=category,
        stock_filter=params.stock_filter,
        sort_field=sort_field,
        sort_direction=params.sort_direction,
        page=params.page,
        page_size=params.page_size,
    )


def matches_stock_filter(row: StockRow, stock_filter: str) -> bool:
    if stock_filter == "in-stock":
        return row.available_stock > 0
    if stock_filter == "low-stock":
        return 0 < row.available_stock <= LOW_STOCK_THRESHOLD
    if stock_filter == "out-of-stock":
        return row.available_stock <= 0
    return True


def _sort_key(sort_field: str):
    def key(row: StockRow):
        value = getattr(row, sort_field)
        if isinstance(value, str):
            return value.lower()
        if value is None:
            return ""
        return value

    return key


def filter_and_sort(rows: Iterable[StockRow], params: StockListQuery) -> list[StockRow]:
    result = list(rows)
    if params.query:
        needle = params.query.lower()
        result = [
            row for row in result
            if needle in (row.name or "").lower() or needle in (row.sku or "").lower()
        ]
    if params.category:
        result = [row for row in result if row.category == params.category]
    if params.stock_filter != STOCK_FILTER_ALL:
        result = [row for row in result if matches_stock_filter(row, params.stock_filter)]

    # sorted() is stable in both directions, so equal keys keep catalog order.
    return sorted(
        result,
        key=_sort_key(params.sort_field),
        reverse=params.sort_direction == "desc",
    )


def list_stock(products: Iterable[Any], params: StockListQuery) -> StockPage:
    """Pure read model: same products and params always give the same page."""
    normalized = normalize_list_query(params)
    ordered = filter_and_sort((build_stock_row(p) for p in products), normalized)
    start = (normalized.page - 1) * normalized.page_size
    return StockPage(
        items=ordered[start : start + normalized.page_size],
        total_count=len(ordered),
        page=normalized.page,
        page_size=normalized.page_size,
    )


def summarize_stock(rows: Iterable[StockRow]) -> StockSummary:
    rows = list(rows)
    return StockSummary(
        total_products=len(rows),
        total_physical=sum(row.physical_stock for row in rows),
        total_available=sum(row.available_stock for row in rows),
        total_blocked=sum(row.ledger.blocked_stock for row in rows),
        out_of_stock=sum(1 for row in rows if row.stock_status == STOCK_STATUS_OUT),
        low_stock=sum(1 for row in rows if row.stock_status == STOCK_STATUS_LOW),
    )


def list_categories(products: Iterable[Any]) -> list[str]:
    return sorted({p.category for p in products if getattr(p, "category", None)})


def load_business_products(db: Session, business_id: str) -> list[Product]:
    return list(
        db.execute(
            select(Product)
            .where(Product.business_id == business_id)
            .order_by(Product.created_at.asc(), Product.id.asc())
        ).scalars().all()
    )


def get_stock_row(db: Session, *, business_id: str, sku: str) -> StockRow:
    product = db.execute(
        select(Product).where(
            Product.business_id == business_id,
            func.lower(Product.sku) == sku.strip().lower(),
        )
    ).scalar_one_or_none()
    if not product:
        raise NotFoundError("Product not found")
    return build_stock_row(product)
