import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stockdesk.core.errors import (
    InvalidAdjustmentError,
    NotFoundError,
    PersistenceError,
    StockDeskError,
    ValidationError,
)
from stockdesk.core.locks import KeyedLock
from stockdesk.core.observability import log_event
from stockdesk.models.product import Product
from stockdesk.services.audit_service import append_product_log, log_audit_event
from stockdesk.services.stock_calculator import (
    ADJUSTMENT_COUNTERS,
    ADJUSTMENT_DEDUCTION,
    ADJUSTMENT_INWARD,
    ADJUSTMENT_TYPES,
    DerivedStock,
    LedgerCounters,
    can_open_deduction,
    derive_stock,
    project_adjustment,
)

logger = logging.getLogger("stockdesk.inventory")

# Serializes read-modify-write per (business_id, lower(sku)) inside this process.
# Postgres additionally holds a row lock (SELECT ... FOR UPDATE) for the transaction.
sku_locks = KeyedLock()

_COUNTER_LABELS = {
    "inward_addition": "Inward Addition",
    "deduction": "Deduction",
}


@dataclass(frozen=True)
class Actor:
    user_id: str
    email: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class AdjustmentResult:
    sku: str
    product_name: str
    adjustment_type: str
    amount: int
    counter_field: str
    previous_value: int
    new_value: int
    previous: DerivedStock
    current: DerivedStock
    log_id: str


@dataclass
class BulkInwardRowResult:
    row: int
    sku: str | None
    quantity: Any
    status: str  # "Success", "Error", "Skipped"
    message: str


@dataclass
class BulkInwardResult:
    results: list[BulkInwardRowResult] = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for item in self.results if item.status == status)


def validate_adjustment_request(sku: Any, adjustment_type: Any, amount: Any) -> str:
    if not isinstance(sku, str) or not sku.strip():
        raise ValidationError("sku", "sku is required and must be a string")
    if adjustment_type not in ADJUSTMENT_TYPES:
        raise ValidationError("type", 'type must be either "inward" or "deduction"')
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError("amount", "amount must be a positive integer")
    return sku.strip()


def _load_product_for_update(db: Session, *, business_id: str, sku: str) -> Product | None:
    stmt = (
        select(Product)
        .where(
            Product.business_id == business_id,
            func.lower(Product.sku) == sku.lower(),
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return db.execute(stmt).scalar_one_or_none()


def _deduction_rejected(sku: str, amount: int, before: DerivedStock, projected: DerivedStock):
    return InvalidAdjustmentError(
        (
            f"Cannot deduct {amount} units. Current physical stock is {before.physical_stock}. "
            f"Maximum deductible: {max(before.physical_stock, 0)}"
        ),
        sku=sku,
        amount=amount,
        current_physical_stock=before.physical_stock,
        projected_physical_stock=projected.physical_stock,
    )


def _write_counter(
    db: Session,
    *,
    product: Product,
    counter_field: str,
    amount: int,
    adjustment_type: str,
    actor: Actor,
    now: datetime,
) -> bool:
    """
    Increments the counter in SQL rather than writing the value read earlier, so
    collaborator writes to the auto_* and blocked counters are never overwritten.
    Deductions re-check the invariant in the same statement.
    """
    column = getattr(Product, counter_field)
    stmt = (
        update(Product)
        .where(Product.id == product.id, Product.business_id == product.business_id)
        .values(
            {
                counter_field: column + amount,
                "updated_at": now,
                "updated_by_user_id": actor.user_id,
            }
        )
        .execution_options(synchronize_session=False)
    )
    if adjustment_type == ADJUSTMENT_DEDUCTION:
        stmt = stmt.where(
            Product.opening_stock
            + Product.inward_addition
            - (Product.deduction + amount)
            + Product.auto_addition
            - Product.auto_deduction
            >= 0
        )
    return db.execute(stmt).rowcount == 1


def apply_adjustment(
    db: Session,
    *,
    business_id: str,
    sku: Any,
    adjustment_type: Any,
    amount: Any,
    actor: Actor,
) -> AdjustmentResult:
    """
    Applies an operator inward/deduction adjustment to one SKU's ledger.

    The counter increment, the product log entry and the business audit event
    commit together or not at all. Rejected and failed adjustments leave the
    ledger untouched.
    """
    normalized_sku = validate_adjustment_request(sku, adjustment_type, amount)

    with sku_locks.hold((business_id, normalized_sku.lower())):
        try:
            product = _load_product_for_update(db, business_id=business_id, sku=normalized_sku)
            if product is None:
                raise NotFoundError(f'Product with SKU "{normalized_sku}" not found')

            counters = LedgerCounters.from_product(product)
            before = derive_stock(counters)
            projected_counters, old_value, new_value = project_adjustment(
                counters, adjustment_type, amount
            )
            after = derive_stock(projected_counters)

            if adjustment_type == ADJUSTMENT_DEDUCTION and (
                not can_open_deduction(counters) or after.physical_stock < 0
            ):
                raise _deduction_rejected(product.sku, amount, before, after)

            counter_field = ADJUSTMENT_COUNTERS[adjustment_type]
            now = datetime.now(timezone.utc)
            written = _write_counter(
                db,
                product=product,
                counter_field=counter_field,
                amount=amount,
                adjustment_type=adjustment_type,
                actor=actor,
                now=now,
            )
            if not written and adjustment_type == ADJUSTMENT_INWARD:
                raise NotFoundError(f'Product with SKU "{normalized_sku}" not found')
            if not written:
                # A collaborator consumed stock between the read and the write.
                db.rollback()
                db.expire_all()
                fresh = _load_product_for_update(db, business_id=business_id, sku=normalized_sku)
                fresh_before = derive_stock(LedgerCounters.from_product(fresh)) if fresh else before
                raise _deduction_rejected(
                    normalized_sku,
                    amount,
                    fresh_before,
                    DerivedStock(
                        physical_stock=fresh_before.physical_stock - amount,
                        available_stock=fresh_before.available_stock - amount,
                    ),
                )

            stock_metadata = {
                "user_agent": actor.user_agent,
                "previous_physical_stock": before.physical_stock,
                "new_physical_stock": after.physical_stock,
                "previous_available_stock": before.available_stock,
                "new_available_stock": after.available_stock,
            }
            log_entry = append_product_log(
                db,
                product=product,
                actor_user_id=actor.user_id,
                actor_email=actor.email,
                action="inventory_adjusted",
                changes=[
                    {
                        "field": counter_field,
                        "field_label": _COUNTER_LABELS[counter_field],
                        "old_value": old_value,
                        "new_value": new_value,
                    }
                ],
                adjustment_type=adjustment_type,
                adjustment_amount=amount,
                metadata_json=stock_metadata,
            )
            log_audit_event(
                db,
                business_id=business_id,
                actor_user_id=actor.user_id,
                action=f"inventory.{adjustment_type}",
                target_type="product",
                target_id=product.id,
                target_sku=product.sku,
                metadata_json={
                    "amount": amount,
                    "counter": counter_field,
                    "old_value": old_value,
                    "new_value": new_value,
                    "product_log_id": log_entry.id,
                },
            )
            result = AdjustmentResult(
                sku=product.sku,
                product_name=product.name,
                adjustment_type=adjustment_type,
                amount=amount,
                counter_field=counter_field,
                previous_value=old_value,
                new_value=new_value,
                previous=before,
                current=after,
                log_id=log_entry.id,
            )
            db.commit()
        except StockDeskError as exc:
            db.rollback()
            log_event(
                logger,
                "inventory.adjustment.rejected",
                level=logging.WARNING,
                business_id=business_id,
                sku=normalized_sku,
                type=adjustment_type,
                amount=amount,
                code=exc.code,
                reason=exc.message,
            )
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            log_event(
                logger,
                "inventory.adjustment.failed",
                level=logging.ERROR,
                business_id=business_id,
                sku=normalized_sku,
                type=adjustment_type,
                amount=amount,
                error=str(exc),
            )
            raise PersistenceError(
                "Inventory adjustment could not be saved. Re-check stock before retrying."
            ) from exc

    log_event(
        logger,
        "inventory.adjustment.accepted",
        business_id=business_id,
        sku=result.sku,
        type=adjustment_type,
        amount=amount,
        physical_stock=result.current.physical_stock,
        available_stock=result.current.available_stock,
        blocked_exceeds_physical=result.current.blocked_exceeds_physical,
    )
    return result


def _parse_quantity(raw: Any) -> int | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    return None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def bulk_inward(
    db: Session,
    *,
    business_id: str,
    rows: list[dict[str, Any]],
    actor: Actor,
) -> BulkInwardResult:
    """
    Applies one inward adjustment per row. Each row commits on its own, so a bad
    row never undoes the rows before it. Row numbers count from 2 to match the
    spreadsheet the operator filled in (row 1 is the header).
    """
    outcome = BulkInwardResult()
    for index, row in enumerate(rows):
        row_number = index + 2
        raw_sku = row.get("sku")
        raw_quantity = row.get("quantity")
        if _is_blank(raw_sku) and _is_blank(raw_quantity):
            continue

        sku = raw_sku.strip() if isinstance(raw_sku, str) else raw_sku
        if _is_blank(sku):
            outcome.results.append(
                BulkInwardRowResult(row_number, None, raw_quantity, "Error", f"Row {row_number}: SKU is required")
            )
            continue
        if not isinstance(sku, str):
            outcome.results.append(
                BulkInwardRowResult(row_number, None, raw_quantity, "Error", f"Row {row_number}: SKU must be text")
            )
            continue

        quantity = _parse_quantity(raw_quantity)
        if quantity is None or quantity <= 0:
            outcome.results.append(
                BulkInwardRowResult(
                    row_number,
                    sku,
                    raw_quantity,
                    "Error",
                    f"Row {row_number}: Quantity must be a positive integer",
                )
            )
            continue

        try:
            result = apply_adjustment(
                db,
                business_id=business_id,
                sku=sku,
                adjustment_type=ADJUSTMENT_INWARD,
                amount=quantity,
                actor=actor,
            )
        except NotFoundError:
            outcome.results.append(
                BulkInwardRowResult(
                    row_number, sku, quantity, "Skipped", f'SKU "{sku}" does not exist in the system'
                )
            )
            continue
        except StockDeskError as exc:
            outcome.results.append(
                BulkInwardRowResult(row_number, sku, quantity, "Error", f"Row {row_number}: {exc.message}")
            )
            continue

        outcome.results.append(
            BulkInwardRowResult(
                row_number,
                result.sku,
                quantity,
                "Success",
                f"Added {quantity} units (physical stock {result.current.physical_stock})",
            )
        )

    log_event(
        logger,
        "inventory.bulk_inward.completed",
        business_id=business_id,
        total=len(outcome.results),
        success=outcome.count("Success"),
        errors=outcome.count("Error"),
        skipped=outcome.count("Skipped"),
    )
    return outcome
