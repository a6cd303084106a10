import pytest
import os
import uuid
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import stockdesk.models  # noqa: F401
from stockdesk.core.config import settings
from stockdesk.core.deps import get_db
from stockdesk.db.base import Base
from stockdesk.main import app
from stockdesk.models.business import Business
from stockdesk.models.business_membership import BusinessMembership
from stockdesk.models.user import User
from stockdesk.services.inventory_service import Actor, sku_locks


@pytest.fixture()
def test_context():
    original_secret = settings.secret_key
    settings.secret_key = "test-secret-key"

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as client:
        yield client, session_local

    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)
    settings.secret_key = original_secret
    sku_locks.clear()


@pytest.fixture()
def ledger_context():
    """Service-level fixture: a session factory plus one seeded business and its owner."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = session_local()
    user = User(
        id=str(uuid.uuid4()),
        email="ledger-owner@example.com",
        username="ledger_owner",
        hashed_password="not-a-real-hash",
        full_name="Ledger Owner",
    )
    business = Business(id=str(uuid.uuid4()), owner_user_id=user.id, name="Ledger Biz")
    db.add(user)
    db.flush()
    db.add(business)
    db.flush()
    db.add(
        BusinessMembership(
            id=str(uuid.uuid4()),
            business_id=business.id,
            user_id=user.id,
            role="owner",
            is_active=True,
        )
    )
    db.commit()
    business_id, actor = business.id, Actor(user_id=user.id, email=user.email, user_agent="pytest")
    db.close()

    yield session_local, business_id, actor

    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    sku_locks.clear()
