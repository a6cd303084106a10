from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockdesk.core.api_docs import error_responses
from stockdesk.core.deps import get_db
from stockdesk.core.permissions import require_permission
from stockdesk.core.security_current import BusinessAccess
from stockdesk.models.audit_log import AuditLog
from stockdesk.schemas.audit import AuditLogListOut, AuditLogOut
from stockdesk.schemas.common import PaginationMeta

router = APIRouter(prefix="/audit-logs", tags=["audit"])


@router.get(
    "",
    response_model=AuditLogListOut,
    summary="List audit logs",
    responses={**error_responses(400, 401, 403, 422, 500)},
)
def list_audit_logs(
    actor_user_id: str | None = Query(default=None),
    action: str | None = Query(default=None),
    sku: str | None = Query(default=None, description="Exact SKU, case-insensitive."),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    access: BusinessAccess = Depends(require_permission("audit.view")),
):
    if start_date and end_date and end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date cannot be before start_date")

    filters = [AuditLog.business_id == access.business_id]
    if actor_user_id:
        filters.append(AuditLog.actor_user_id == actor_user_id)
    if action:
        filters.append(AuditLog.action == action)
    if sku and sku.strip():
        filters.append(func.lower(AuditLog.target_sku) == sku.strip().lower())
    if start_date:
        filters.append(func.date(AuditLog.created_at) >= start_date)
    if end_date:
        filters.append(func.date(AuditLog.created_at) <= end_date)

    total = int(db.execute(select(func.count(AuditLog.id)).where(*filters)).scalar_one())
    rows = db.execute(
        select(AuditLog)
        .where(*filters)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()

    items = [
        AuditLogOut(
            id=row.id,
            actor_user_id=row.actor_user_id,
            action=row.action,
            target_type=row.target_type,
            target_id=row.target_id,
            target_sku=row.target_sku,
            metadata_json=row.metadata_json,
            created_at=row.created_at,
        )
        for row in rows
    ]
    count = len(items)
    return AuditLogListOut(
        items=items,
        pagination=PaginationMeta(
            total=total,
            limit=limit,
            offset=offset,
            count=count,
            has_next=(offset + count) < total,
        ),
    )
