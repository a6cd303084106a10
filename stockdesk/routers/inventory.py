from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from stockdesk.core.api_docs import error_responses
from stockdesk.core.config import settings
from stockdesk.core.deps import get_db
from stockdesk.core.errors import ValidationError
from stockdesk.core.permissions import require_permission
from stockdesk.core.security_current import BusinessAccess, actor_from_request
from stockdesk.schemas.inventory import (
    BulkInwardIn,
    BulkInwardOut,
    BulkInwardRowOut,
    BulkInwardSummaryOut,
    CategoryListOut,
    StockAdjustIn,
    StockAdjustOut,
    StockListOut,
    StockRowOut,
    StockSnapshotOut,
    StockSummaryOut,
)
from stockdesk.schemas.product import LedgerOut
from stockdesk.services.inventory_service import apply_adjustment, bulk_inward
from stockdesk.services.stock_calculator import ADJUSTMENT_INWARD
from stockdesk.services.stock_listing_service import (
    StockListQuery,
    StockRow,
    build_stock_row,
    get_stock_row,
    list_categories,
    list_stock,
    load_business_products,
    summarize_stock,
)

router = APIRouter(prefix="/inventory", tags=["inventory"])


def _row_out(row: StockRow) -> StockRowOut:
    return StockRowOut(
        sku=row.sku,
        name=row.name,
        category=row.category,
        weight=float(row.weight) if row.weight is not None else None,
        price=float(row.price) if row.price is not None else None,
        description=row.description,
        mapped_variants_count=row.mapped_variants_count,
        created_at=row.created_at,
        ledger=LedgerOut(**row.ledger.as_dict()),
        physical_stock=row.physical_stock,
        available_stock=row.available_stock,
        stock_status=row.stock_status,
        can_deduct=row.can_deduct,
        blocked_exceeds_physical=row.blocked_exceeds_physical,
    )


@router.post(
    "/adjust",
    response_model=StockAdjustOut,
    summary="Manual stock adjustment",
    description=(
        "Adds an inward quantity or records a deduction against one SKU. A deduction is "
        "rejected when it would take physical stock below zero; nothing is written then."
    ),
    responses=error_responses(400, 401, 403, 404, 422, 500, 503),
)
def adjust_stock(
    payload: StockAdjustIn,
    request: Request,
    db: Session = Depends(get_db),
    access: BusinessAccess = Depends(require_permission("inventory.adjust")),
):
    result = apply_adjustment(
        db,
        business_id=access.business_id,
        sku=payload.sku,
        adjustment_type=payload.type,
        amount=payload.amount,
        actor=actor_from_request(access, request),
    )
    verb = "Added" if result.adjustment_type == ADJUSTMENT_INWARD else "Deducted"
    return StockAdjustOut(
        message=f"{verb} {result.amount} units for {result.sku}",
        sku=result.sku,
        product_name=result.product_name,
        type=result.adjustment_type,
        amount=result.amount,
        counter=result.counter_field,
        previous=StockSnapshotOut(
            counter_value=result.previous_value,
            physical_stock=result.previous.physical_stock,
            available_stock=result.previous.available_stock,
        ),
        current=StockSnapshotOut(
            counter_value=result.new_value,
            physical_stock=result.current.physical_stock,
            available_stock=result.current.available_stock,
        ),
        blocked_exceeds_physical=result.current.blocked_exceeds_physical,
        log_id=result.log_id,
    )


@router.post(
    "/bulk-inward",
    response_model=BulkInwardOut,
    summary="Bulk inward from uploaded rows",
    description=(
        "Applies one inward adjustment per row. Rows are numbered from 2 to line up with the "
        "spreadsheet the operator uploaded. Unknown SKUs are skipped, not failed."
    ),
    responses=error_responses(401, 403, 422, 500),
)
def bulk_inward_stock(
    payload: BulkInwardIn,
    request: Request,
    db: Session = Depends(get_db),
    access: BusinessAccess = Depends(require_permission("inventory.bulk_inward")),
):
    if len(payload.rows) > settings.bulk_inward_max_rows:
        raise ValidationError(
            "rows",
            f"At most {settings.bulk_inward_max_rows} rows can be processed at once",
        )

    outcome = bulk_inward(
        db,
        business_id=access.business_id,
        rows=[row.model_dump() for row in payload.rows],
        actor=actor_from_request(access, request),
    )
    return BulkInwardOut(
        summary=BulkInwardSummaryOut(
            total=len(outcome.results),
            success=outcome.count("Success"),
            errors=outcome.count("Error"),
            skipped=outcome.count("Skipped"),
        ),
        results=[
            BulkInwardRowOut(
                row=item.row,
                sku=item.sku,
                quantity=item.quantity,
                status=item.status,
                message=item.message,
            )
            for item in outcome.results
        ],
    )


@router.get(
    "/stock",
    response_model=StockListOut,
    summary="Stock listing",
    description=(
        "Search by name or SKU, filter by category and stock status, sort and paginate. "
        "`in-stock` includes low-stock rows."
    ),
    responses=error_responses(401, 403, 422, 500),
)
def list_stock_levels(
    query: str | None = Query(default=None, description="Substring of name or SKU, case-insensitive."),
    category: str | None = Query(default=None, description="Exact category. Omit or leave empty for every category."),
    stock_filter: str = Query(default="all", description="all, in-stock, low-stock or out-of-stock."),
    sort_field: str = Query(default="name", description="name, sku, physical_stock or available_stock."),
    sort_direction: str = Query(default="asc", description="asc or desc."),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=25, ge=1, le=settings.stock_list_max_page_size),
    db: Session = Depends(get_db),
    access: BusinessAccess = Depends(require_permission("inventory.view")),
):
    result = list_stock(
        load_business_products(db, access.business_id),
        StockListQuery(
            query=query,
            category=category,
            stock_filter=stock_filter,
            sort_field=sort_field,
            sort_direction=sort_direction,
            page=page,
            page_size=page_size,
        ),
    )
    return StockListOut(
        items=[_row_out(row) for row in result.items],
        total_count=result.total_count,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


@router.get(
    "/stock/{sku}",
    response_model=StockRowOut,
    summary="Stock level for one SKU",
    responses=error_responses(401, 403, 404, 500),
)
def get_stock_level(
    sku: str,
    db: Session = Depends(get_db),
    access: BusinessAccess = Depends(require_permission("inventory.view")),
):
    return _row_out(get_stock_row(db, business_id=access.business_id, sku=sku))


@router.get(
    "/summary",
    response_model=StockSummaryOut,
    summary="Stock totals",
    responses=error_responses(401, 403, 500),
)
def stock_summary(
    db: Session = Depends(get_db),
    access: BusinessAccess = Depends(require_permission("inventory.view")),
):
    rows = [build_stock_row(p) for p in load_business_products(db, access.business_id)]
    summary = summarize_stock(rows)
    return StockSummaryOut(
        total_products=summary.total_products,
        total_physical=summary.total_physical,
        total_available=summary.total_available,
        total_blocked=summary.total_blocked,
        out_of_stock=summary.out_of_stock,
        low_stock=summary.low_stock,
    )


@router.get(
    "/categories",
    response_model=CategoryListOut,
    summary="Categories in use",
    responses=error_responses(401, 403, 500),
)
def categories(
    db: Session = Depends(get_db),
    access: BusinessAccess = Depends(require_permission("inventory.view")),
):
    return CategoryListOut(items=list_categories(load_business_products(db, access.business_id)))
