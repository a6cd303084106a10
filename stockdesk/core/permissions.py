from collections.abc import Callable

from fastapi import Depends, HTTPException, status

from stockdesk.core.security_current import BusinessAccess, get_current_business_access

PERMISSION_MATRIX: dict[str, set[str]] = {
    "owner": {"*"},
    "admin": {
        "products.view",
        "products.manage",
        "products.mappings.remove",
        "inventory.view",
        "inventory.adjust",
        "inventory.bulk_inward",
        "audit.view",
    },
    "staff": {
        "products.view",
        "inventory.view",
        "inventory.adjust",
    },
}


def role_permissions(role: str) -> set[str]:
    normalized = (role or "").strip().lower()
    return set(PERMISSION_MATRIX.get(normalized, set()))


def has_permission(*, role: str, permission: str) -> bool:
    permissions = role_permissions(role)
    if "*" in permissions:
        return True
    return permission in permissions


def require_permission(permission: str) -> Callable[[BusinessAccess], BusinessAccess]:
    normalized_permission = (permission or "").strip().lower()
    if not normalized_permission:
        raise ValueError("Permission key is required")

    def dependency(access: BusinessAccess = Depends(get_current_business_access)) -> BusinessAccess:
        if not has_permission(role=access.role, permission=normalized_permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permission for this action",
            )
        return access

    return dependency
