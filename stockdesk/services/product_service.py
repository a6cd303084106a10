import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from stockdesk.core.errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from stockdesk.core.id_utils import generate_id
from stockdesk.core.observability import log_event
from stockdesk.models.product import LEDGER_FIELDS, Product, ProductLog
from stockdesk.services.audit_service import append_product_log, log_audit_event
from stockdesk.services.inventory_service import Actor

logger = logging.getLogger("stockdesk.inventory")

TRACKED_FIELDS = ("name", "weight", "category", "description", "price")
FIELD_LABELS = {
    "name": "Product Name",
    "weight": "Weight",
    "category": "Category",
    "description": "Description",
    "price": "Price",
}


@dataclass(frozen=True)
class ProductChange:
    field: str
    field_label: str
    old_value: Any
    new_value: Any

    def as_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "field_label": self.field_label,
            "old_value": _json_value(self.old_value),
            "new_value": _json_value(self.new_value),
        }


@dataclass
class ProductUpdateResult:
    product: Product
    changes: list[ProductChange]

    @property
    def updated(self) -> bool:
        return bool(self.changes)


@dataclass
class MappingRemovalItem:
    sku: str
    product_name: str
    removed_count: int
    status: str  # "success", "error", "skipped"
    message: str | None = None


@dataclass
class MappingRemovalResult:
    results: list[MappingRemovalItem] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return sum(1 for item in self.results if item.status == "success")

    @property
    def mappings_removed(self) -> int:
        return sum(item.removed_count for item in self.results)

    @property
    def errors(self) -> int:
        return sum(1 for item in self.results if item.status == "error")


def _json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _normalize(value: Any) -> Any:
    """None and empty strings compare equal; numbers compare by value."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return Decimal(str(value))
    return value


def diff_product_fields(old: dict[str, Any], new: dict[str, Any]) -> list[ProductChange]:
    changes: list[ProductChange] = []
    for name in TRACKED_FIELDS:
        old_value = _normalize(old.get(name))
        new_value = _normalize(new.get(name))
        if old_value != new_value:
            changes.append(
                ProductChange(
                    field=name,
                    field_label=FIELD_LABELS.get(name, name),
                    old_value=old_value,
                    new_value=new_value,
                )
            )
    return changes


def _snapshot(product: Product) -> dict[str, Any]:
    return {name: getattr(product, name) for name in TRACKED_FIELDS}


def get_product_by_sku(db: Session, *, business_id: str, sku: str) -> Product:
    cleaned = (sku or "").strip()
    if not cleaned:
        raise ValidationError("sku", "sku is required")
    product = db.execute(
        select(Product).where(
            Product.business_id == business_id,
            func.lower(Product.sku) == cleaned.lower(),
        )
    ).scalar_one_or_none()
    if not product:
        raise NotFoundError("Product not found")
    return product


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        log_event(logger, "product.persist.failed", level=logging.ERROR, action=action, error=str(exc))
        raise PersistenceError(f"Product {action} could not be saved") from exc


def create_product(
    db: Session,
    *,
    business_id: str,
    actor: Actor,
    sku: str,
    name: str,
    category: str,
    weight: Decimal,
    price: Decimal | None = None,
    description: str | None = None,
    opening_stock: int = 0,
    mapped_variants: list[dict[str, Any]] | None = None,
) -> Product:
    cleaned_sku = (sku or "").strip()
    if not cleaned_sku:
        raise ValidationError("sku", "sku is required")
    if opening_stock < 0:
        raise ValidationError("opening_stock", "opening_stock cannot be negative")

    exists = db.execute(
        select(Product.id).where(
            Product.business_id == business_id,
            func.lower(Product.sku) == cleaned_sku.lower(),
        )
    ).scalar_one_or_none()
    if exists:
        raise ConflictError("Cannot create already existing product")

    now = datetime.now(timezone.utc)
    product = Product(
        id=generate_id(),
        business_id=business_id,
        sku=cleaned_sku,
        name=name,
        category=category,
        weight=weight,
        price=price,
        description=description,
        mapped_variants=list(mapped_variants or []),
        opening_stock=opening_stock,
        **{name_: 0 for name_ in LEDGER_FIELDS if name_ != "opening_stock"},
        created_by_user_id=actor.user_id,
        created_at=now,
    )
    db.add(product)
    initial = {**_snapshot(product), "opening_stock": opening_stock}
    append_product_log(
        db,
        product=product,
        actor_user_id=actor.user_id,
        actor_email=actor.email,
        action="created",
        changes=[
            {
                "field": key,
                "field_label": FIELD_LABELS.get(key, "Opening Stock"),
                "old_value": None,
                "new_value": _json_value(value),
            }
            for key, value in initial.items()
            if value is not None
        ],
        metadata_json={"user_agent": actor.user_agent},
    )
    log_audit_event(
        db,
        business_id=business_id,
        actor_user_id=actor.user_id,
        action="product.create",
        target_type="product",
        target_id=product.id,
        target_sku=product.sku,
        metadata_json={"name": name, "category": category, "opening_stock": opening_stock},
    )
    try:
        _commit(db, "create")
    except IntegrityError as exc:
        raise ConflictError("Cannot create already existing product") from exc
    log_event(logger, "product.created", business_id=business_id, sku=cleaned_sku)
    return product


def update_product(
    db: Session,
    *,
    business_id: str,
    actor: Actor,
    sku: str,
    changes: dict[str, Any],
) -> ProductUpdateResult:
    """
    Applies the editable fields and reports a field-by-field diff. Optional
    fields absent from ``changes`` keep their current value; an update that
    changes nothing writes nothing.
    """
    product = get_product_by_sku(db, business_id=business_id, sku=sku)
    current = _snapshot(product)
    proposed = dict(current)
    for name in TRACKED_FIELDS:
        if name in changes:
            proposed[name] = changes[name]

    diff = diff_product_fields(current, proposed)
    if not diff:
        return ProductUpdateResult(product=product, changes=[])

    for change in diff:
        setattr(product, change.field, proposed[change.field] if proposed[change.field] != "" else None)
    product.updated_by_user_id = actor.user_id
    product.updated_at = datetime.now(timezone.utc)

    serialized = [change.as_dict() for change in diff]
    append_product_log(
        db,
        product=product,
        actor_user_id=actor.user_id,
        actor_email=actor.email,
        action="updated",
        changes=serialized,
        metadata_json={"user_agent": actor.user_agent},
    )
    log_audit_event(
        db,
        business_id=business_id,
        actor_user_id=actor.user_id,
        action="product.update",
        target_type="product",
        target_id=product.id,
        target_sku=product.sku,
        metadata_json={"changes": serialized},
    )
    _commit(db, "update")
    db.refresh(product)
    return ProductUpdateResult(product=product, changes=diff)


def delete_product(db: Session, *, business_id: str, actor: Actor, sku: str) -> dict[str, Any]:
    """Removes the product and its log trail; the business audit log keeps a snapshot."""
    product = get_product_by_sku(db, business_id=business_id, sku=sku)
    deleted_data = {
        "name": product.name,
        "sku": product.sku,
        "weight": _json_value(product.weight),
        "category": product.category,
        "description": product.description,
        "price": _json_value(product.price),
        "ledger": {name: getattr(product, name) for name in LEDGER_FIELDS},
        "created_at": _json_value(product.created_at),
        "created_by": product.created_by_user_id,
    }

    db.execute(
        delete(ProductLog).where(
            ProductLog.business_id == business_id,
            ProductLog.product_id == product.id,
        )
    )
    db.delete(product)
    log_audit_event(
        db,
        business_id=business_id,
        actor_user_id=actor.user_id,
        action="product.delete",
        target_type="product",
        target_id=product.id,
        target_sku=product.sku,
        metadata_json={
            "deleted_data": deleted_data,
            "performed_by_email": actor.email,
            "user_agent": actor.user_agent,
        },
    )
    _commit(db, "delete")
    log_event(logger, "product.deleted", business_id=business_id, sku=deleted_data["sku"])
    return deleted_data


def list_product_logs(
    db: Session,
    *,
    business_id: str,
    sku: str,
    limit: int,
) -> tuple[Product, list[ProductLog]]:
    product = get_product_by_sku(db, business_id=business_id, sku=sku)
    rows = db.execute(
        select(ProductLog)
        .where(
            ProductLog.business_id == business_id,
            ProductLog.product_id == product.id,
        )
        .order_by(ProductLog.performed_at.desc(), ProductLog.id.desc())
        .limit(limit)
    ).scalars().all()
    return product, list(rows)


def remove_variant_mappings(
    db: Session,
    *,
    business_id: str,
    actor: Actor,
    skus: list[str] | None = None,
    remove_all: bool = False,
) -> MappingRemovalResult:
    """
    Clears storefront variant mappings. Only products that currently carry
    mappings are touched; unknown SKUs are ignored. Each product commits on its
    own so one failure leaves the others removed.
    """
    if not remove_all and not skus:
        raise ValidationError("skus", "Either skus array or remove_all flag is required")

    stmt = select(Product).where(Product.business_id == business_id)
    if not remove_all:
        wanted = {sku.strip().lower() for sku in skus or [] if sku and sku.strip()}
        stmt = stmt.where(func.lower(Product.sku).in_(wanted))
    candidates = [
        product
        for product in db.execute(stmt.order_by(Product.created_at.asc(), Product.id.asc())).scalars().all()
        if product.mapped_variants
    ]

    outcome = MappingRemovalResult()
    for product in candidates:
        sku, name = product.sku, product.name
        removed = list(product.mapped_variants or [])
        product.mapped_variants = []
        product.updated_by_user_id = actor.user_id
        product.updated_at = datetime.now(timezone.utc)
        append_product_log(
            db,
            product=product,
            actor_user_id=actor.user_id,
            actor_email=actor.email,
            action="mappings_removed",
            changes=[
                {
                    "field": "mapped_variants",
                    "field_label": "Mapped Variants",
                    "old_value": len(removed),
                    "new_value": 0,
                }
            ],
            metadata_json={"removed_mappings": removed},
        )
        log_audit_event(
            db,
            business_id=business_id,
            actor_user_id=actor.user_id,
            action="product.mappings.remove",
            target_type="product",
            target_id=product.id,
            target_sku=product.sku,
            metadata_json={"removed_count": len(removed)},
        )
        try:
            _commit(db, "mapping removal")
        except PersistenceError as exc:
            outcome.results.append(
                MappingRemovalItem(sku, name, 0, "error", exc.message)
            )
            continue
        outcome.results.append(
            MappingRemovalItem(
                sku,
                name,
                len(removed),
                "success",
                f"Removed {len(removed)} mapping(s)",
            )
        )
    return outcome
