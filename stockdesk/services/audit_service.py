from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from stockdesk.core.id_utils import generate_id
from stockdesk.models.audit_log import AuditLog
from stockdesk.models.product import Product, ProductLog


def log_audit_event(
    db: Session,
    *,
    business_id: str,
    actor_user_id: str,
    action: str,
    target_type: str,
    target_id: str | None = None,
    target_sku: str | None = None,
    metadata_json: dict[str, Any] | None = None,
) -> AuditLog:
    event = AuditLog(
        id=generate_id(),
        business_id=business_id,
        actor_user_id=actor_user_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        target_sku=target_sku,
        metadata_json=metadata_json,
        created_at=datetime.now(timezone.utc),
    )
    db.add(event)
    return event


def append_product_log(
    db: Session,
    *,
    product: Product,
    actor_user_id: str,
    action: str,
    changes: list[dict[str, Any]] | None = None,
    actor_email: str | None = None,
    adjustment_type: str | None = None,
    adjustment_amount: int | None = None,
    metadata_json: dict[str, Any] | None = None,
) -> ProductLog:
    """Stages a product log row; the caller's commit makes it durable with the change it describes."""
    entry = ProductLog(
        id=generate_id(),
        business_id=product.business_id,
        product_id=product.id,
        sku=product.sku,
        action=action,
        changes=changes or [],
        adjustment_type=adjustment_type,
        adjustment_amount=adjustment_amount,
        performed_by_user_id=actor_user_id,
        performed_by_email=actor_email,
        metadata_json=metadata_json,
        performed_at=datetime.now(timezone.utc),
    )
    db.add(entry)
    return entry
