from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import case, select
from sqlalchemy.orm import Session

from stockdesk.core.deps import get_db
from stockdesk.core.security import TokenValidationError, decode_access_token
from stockdesk.models.business import Business
from stockdesk.models.business_membership import BusinessMembership
from stockdesk.models.user import User
from stockdesk.services.inventory_service import Actor

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


@dataclass(frozen=True)
class BusinessAccess:
    business: Business
    user: User
    role: str
    membership_id: str

    @property
    def business_id(self) -> str:
        return self.business.id


def _membership_role_rank():
    return case(
        (BusinessMembership.role == "owner", 0),
        (BusinessMembership.role == "admin", 1),
        (BusinessMembership.role == "staff", 2),
        else_=3,
    )


def resolve_business_access(db: Session, user: User) -> BusinessAccess | None:
    row = db.execute(
        select(BusinessMembership, Business)
        .join(Business, Business.id == BusinessMembership.business_id)
        .where(
            BusinessMembership.user_id == user.id,
            BusinessMembership.is_active.is_(True),
        )
        .order_by(_membership_role_rank(), BusinessMembership.created_at.asc())
        .limit(1)
    ).first()
    if not row:
        return None

    membership, business = row
    role = (membership.role or "staff").lower()
    return BusinessAccess(business=business, user=user, role=role, membership_id=membership.id)


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    try:
        payload = decode_access_token(token)
    except TokenValidationError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    user = db.execute(select(User).where(User.id == payload["sub"])).scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def get_current_business_access(
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
) -> BusinessAccess:
    access = resolve_business_access(db, user)
    if not access:
        raise HTTPException(status_code=404, detail="Business not found")
    return access


def actor_from_request(access: BusinessAccess, request: Request) -> Actor:
    return Actor(
        user_id=access.user.id,
        email=access.user.email,
        user_agent=request.headers.get("user-agent"),
    )
