import re
import uuid

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from stockdesk.core.api_docs import error_responses
from stockdesk.core.deps import get_db
from stockdesk.core.id_utils import generate_short_token
from stockdesk.core.security import create_access_token, hash_password, verify_password
from stockdesk.core.security_current import BusinessAccess, get_current_business_access
from stockdesk.models.business import Business
from stockdesk.models.business_membership import BusinessMembership
from stockdesk.models.user import User
from stockdesk.schemas.auth import LoginIn, RegisterIn, TokenOut, UserProfileOut

router = APIRouter(prefix="/auth", tags=["auth"])
TOKEN_RESPONSE = {
    200: {
        "description": "Bearer access token",
        "content": {
            "application/json": {
                "example": {
                    "access_token": "access-token",
                    "token_type": "bearer",
                }
            }
        },
    }
}


def _slugify_username(seed: str) -> str:
    cleaned = re.sub(r"[^a-z0-9_]+", "_", seed.strip().lower())
    cleaned = re.sub(r"_+", "_", cleaned).strip("_")
    if not cleaned:
        return "user"
    return cleaned[:30]


def _username_exists(db: Session, username: str) -> bool:
    found = db.execute(
        select(User.id).where(func.lower(User.username) == username.lower())
    ).scalar_one_or_none()
    return found is not None


def _generate_unique_username(
    db: Session,
    preferred_username: str | None,
    fallback_seed: str,
) -> str:
    base = _slugify_username(preferred_username or fallback_seed)
    candidate = base
    while _username_exists(db, candidate):
        candidate = f"{base[:22]}_{generate_short_token(6)}"
    return candidate


def _create_business(db: Session, user_id: str, business_name: str | None) -> Business:
    name = (business_name or "").strip() or "My Business"
    business = Business(id=str(uuid.uuid4()), owner_user_id=user_id, name=name)
    db.add(business)
    db.flush()
    db.add(
        BusinessMembership(
            id=str(uuid.uuid4()),
            business_id=business.id,
            user_id=user_id,
            role="owner",
            is_active=True,
        )
    )
    return business


def _authenticate_user(db: Session, identifier: str, password: str) -> User:
    normalized_identifier = identifier.strip().lower()
    user = db.execute(
        select(User).where(
            or_(
                func.lower(User.email) == normalized_identifier,
                func.lower(User.username) == normalized_identifier,
            )
        )
    ).scalar_one_or_none()

    if not user or not user.is_active or not verify_password(password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return user


@router.post(
    "/register",
    response_model=TokenOut,
    summary="Register a user",
    description="Creates a user and the business they own, then returns an access token.",
    responses={**TOKEN_RESPONSE, **error_responses(400, 422, 500)},
)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    normalized_email = payload.email.lower()
    exists = db.execute(
        select(User).where(func.lower(User.email) == normalized_email)
    ).scalar_one_or_none()
    if exists:
        raise HTTPException(status_code=400, detail="Email already registered")

    username = _generate_unique_username(
        db,
        preferred_username=payload.username,
        fallback_seed=normalized_email.split("@")[0],
    )

    user = User(
        email=normalized_email,
        username=username,
        full_name=payload.full_name,
        hashed_password=hash_password(payload.password),
    )
    db.add(user)
    db.flush()

    _create_business(db, user.id, payload.business_name)
    db.commit()
    return TokenOut(access_token=create_access_token(user.id))


@router.post(
    "/login",
    response_model=TokenOut,
    summary="Login with JSON",
    description="Authenticate with email/username and password.",
    responses={**TOKEN_RESPONSE, **error_responses(401, 422, 500)},
)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = _authenticate_user(db, payload.identifier, payload.password)
    return TokenOut(access_token=create_access_token(user.id))


@router.post(
    "/token",
    response_model=TokenOut,
    summary="OAuth2 password token (Swagger Authorize)",
    description=(
        "Form-data login endpoint used by Swagger Authorize. "
        "Use your email or username in the `username` field."
    ),
    responses={**TOKEN_RESPONSE, **error_responses(401, 422, 500)},
)
def login_for_swagger(
    db: Session = Depends(get_db),
    form_data: OAuth2PasswordRequestForm = Depends(),
):
    user = _authenticate_user(db, form_data.username, form_data.password)
    return TokenOut(access_token=create_access_token(user.id))


@router.get(
    "/me",
    response_model=UserProfileOut,
    summary="Current operator profile",
    responses=error_responses(401, 404, 500),
)
def me(access: BusinessAccess = Depends(get_current_business_access)):
    user = access.user
    return UserProfileOut(
        id=user.id,
        email=user.email,
        username=user.username,
        full_name=user.full_name,
        business_id=access.business.id,
        business_name=access.business.name,
        role=access.role,
        created_at=user.created_at,
    )
