from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from stockdesk.core.api_docs import error_responses
from stockdesk.core.config import settings
from stockdesk.core.deps import get_db
from stockdesk.core.permissions import require_permission
from stockdesk.core.security_current import BusinessAccess, actor_from_request
from stockdesk.models.product import Product
from stockdesk.schemas.product import (
    LedgerOut,
    MappingRemovalIn,
    MappingRemovalItemOut,
    MappingRemovalOut,
    MappingRemovalSummaryOut,
    ProductChangeOut,
    ProductCreate,
    ProductCreateOut,
    ProductDeleteOut,
    ProductLogListOut,
    ProductLogOut,
    ProductOut,
    ProductUpdate,
    ProductUpdateOut,
)
from stockdesk.services import product_service
from stockdesk.services.stock_listing_service import build_stock_row

router = APIRouter(prefix="/products", tags=["products"])


def _product_out(product: Product) -> ProductOut:
    row = build_stock_row(product)
    return ProductOut(
        sku=product.sku,
        name=product.name,
        category=product.category,
        weight=float(product.weight) if product.weight is not None else None,
        price=float(product.price) if product.price is not None else None,
        description=product.description,
        mapped_variants=list(product.mapped_variants or []),
        ledger=LedgerOut(**row.ledger.as_dict()),
        physical_stock=row.physical_stock,
        available_stock=row.available_stock,
        stock_status=row.stock_status,
        can_deduct=row.can_deduct,
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


@router.post(
    "",
    response_model=ProductCreateOut,
    status_code=201,
    summary="Create product",
    description="Creates a SKU with its opening stock. SKUs are unique per business, ignoring case.",
    responses=error_responses(401, 403, 409, 422, 500, 503),
)
def create_product(
    payload: ProductCreate,
    request: Request,
    db: Session = Depends(get_db),
    access: BusinessAccess = Depends(require_permission("products.manage")),
):
    product = product_service.create_product(
        db,
        business_id=access.business_id,
        actor=actor_from_request(access, request),
        sku=payload.sku,
        name=payload.name,
        category=payload.category,
        weight=payload.weight,
        price=payload.price,
        description=payload.description,
        opening_stock=payload.opening_stock,
        mapped_variants=[item.model_dump(mode="json") for item in payload.mapped_variants],
    )
    return ProductCreateOut(product=_product_out(product))


@router.post(
    "/mappings/remove",
    response_model=MappingRemovalOut,
    summary="Remove storefront variant mappings",
    description="Clears mapped variants for the listed SKUs, or for every product when `remove_all` is set.",
    responses=error_responses(401, 403, 422, 500),
)
def remove_mappings(
    payload: MappingRemovalIn,
    request: Request,
    db: Session = Depends(get_db),
    access: BusinessAccess = Depends(require_permission("products.mappings.remove")),
):
    outcome = product_service.remove_variant_mappings(
        db,
        business_id=access.business_id,
        actor=actor_from_request(access, request),
        skus=payload.skus,
        remove_all=payload.remove_all,
    )
    return MappingRemovalOut(
        message=(
            f"Successfully removed {outcome.mappings_removed} mapping(s) "
            f"from {outcome.processed} product(s)"
        ),
        summary=MappingRemovalSummaryOut(
            processed=outcome.processed,
            mappings_removed=outcome.mappings_removed,
            errors=outcome.errors,
        ),
        results=[
            MappingRemovalItemOut(
                sku=item.sku,
                product_name=item.product_name,
                removed_count=item.removed_count,
                status=item.status,
                message=item.message,
            )
            for item in outcome.results
        ],
    )


@router.get(
    "/{sku}",
    response_model=ProductOut,
    summary="Get product",
    responses=error_responses(401, 403, 404, 500),
)
def get_product(
    sku: str,
    db: Session = Depends(get_db),
    access: BusinessAccess = Depends(require_permission("products.view")),
):
    product = product_service.get_product_by_sku(db, business_id=access.business_id, sku=sku)
    return _product_out(product)


@router.patch(
    "/{sku}",
    response_model=ProductUpdateOut,
    summary="Edit product details",
    description=(
        "Updates name, weight, category, description and price. Ledger counters are "
        "not editable here; use `POST /inventory/adjust`."
    ),
    responses=error_responses(401, 403, 404, 422, 500, 503),
)
def update_product(
    sku: str,
    payload: ProductUpdate,
    request: Request,
    db: Session = Depends(get_db),
    access: BusinessAccess = Depends(require_permission("products.manage")),
):
    result = product_service.update_product(
        db,
        business_id=access.business_id,
        actor=actor_from_request(access, request),
        sku=sku,
        changes=payload.model_dump(exclude_unset=True),
    )
    return ProductUpdateOut(
        updated=result.updated,
        message="Product updated successfully." if result.updated else "No changes detected.",
        product=_product_out(result.product),
        changes=[ProductChangeOut(**change.as_dict()) for change in result.changes],
    )


@router.delete(
    "/{sku}",
    response_model=ProductDeleteOut,
    summary="Delete product",
    description="Deletes the product and its change log. The business audit log keeps a snapshot.",
    responses=error_responses(401, 403, 404, 500, 503),
)
def delete_product(
    sku: str,
    request: Request,
    db: Session = Depends(get_db),
    access: BusinessAccess = Depends(require_permission("products.manage")),
):
    deleted = product_service.delete_product(
        db,
        business_id=access.business_id,
        actor=actor_from_request(access, request),
        sku=sku,
    )
    return ProductDeleteOut(sku=deleted["sku"], product_name=deleted["name"])


@router.get(
    "/{sku}/logs",
    response_model=ProductLogListOut,
    summary="Product change log",
    description="Most recent entries first.",
    responses=error_responses(401, 403, 404, 422, 500),
)
def list_product_logs(
    sku: str,
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    access: BusinessAccess = Depends(require_permission("products.view")),
):
    effective_limit = min(limit or settings.product_logs_default_limit, settings.product_logs_max_limit)
    product, logs = product_service.list_product_logs(
        db,
        business_id=access.business_id,
        sku=sku,
        limit=effective_limit,
    )
    items = [
        ProductLogOut(
            id=entry.id,
            action=entry.action,
            changes=list(entry.changes or []),
            adjustment_type=entry.adjustment_type,
            adjustment_amount=entry.adjustment_amount,
            performed_by=entry.performed_by_user_id,
            performed_by_email=entry.performed_by_email,
            performed_at=entry.performed_at,
            metadata=entry.metadata_json,
        )
        for entry in logs
    ]
    return ProductLogListOut(
        sku=product.sku,
        product_name=product.name,
        logs=items,
        total_logs=len(items),
    )
