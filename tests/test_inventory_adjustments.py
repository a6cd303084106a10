import threading
import uuid
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, func, select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from stockdesk.core.errors import (
    InvalidAdjustmentError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from stockdesk.db.base import Base
from stockdesk.models.audit_log import AuditLog
from stockdesk.models.business import Business
from stockdesk.models.product import Product, ProductLog
from stockdesk.models.user import User
from stockdesk.services import inventory_service
from stockdesk.services.inventory_service import Actor, apply_adjustment, bulk_inward, sku_locks
from stockdesk.services.product_service import create_product
from stockdesk.services.stock_calculator import LedgerCounters, derive_stock


def _seed_product(session_local, business_id: str, actor: Actor, *, sku: str = "KURTA-BLU-M", opening: int = 10):
    db = session_local()
    try:
        create_product(
            db,
            business_id=business_id,
            actor=actor,
            sku=sku,
            name="Blue Cotton Kurta",
            category="apparel",
            weight=Decimal("250"),
            opening_stock=opening,
        )
    finally:
        db.close()


def _set_external_counters(session_local, business_id: str, sku: str, **values) -> None:
    """Writes the counters order processing owns, the way that collaborator would."""
    db = session_local()
    try:
        db.execute(
            update(Product)
            .where(Product.business_id == business_id, Product.sku == sku)
            .values(**values)
        )
        db.commit()
    finally:
        db.close()


def _ledger(session_local, business_id: str, sku: str) -> LedgerCounters:
    db = session_local()
    try:
        product = db.execute(
            select(Product).where(Product.business_id == business_id, Product.sku == sku)
        ).scalar_one()
        return LedgerCounters.from_product(product)
    finally:
        db.close()


def _adjustment_logs(session_local, business_id: str) -> list[ProductLog]:
    db = session_local()
    try:
        return list(
            db.execute(
                select(ProductLog)
                .where(
                    ProductLog.business_id == business_id,
                    ProductLog.action == "inventory_adjusted",
                )
                .order_by(ProductLog.performed_at.asc())
            ).scalars().all()
        )
    finally:
        db.close()


def _adjust(session_local, business_id: str, actor: Actor, adjustment_type: str, amount, sku: str = "KURTA-BLU-M"):
    db = session_local()
    try:
        return apply_adjustment(
            db,
            business_id=business_id,
            sku=sku,
            adjustment_type=adjustment_type,
            amount=amount,
            actor=actor,
        )
    finally:
        db.close()


def test_inward_then_rejected_then_accepted_deduction(ledger_context):
    session_local, business_id, actor = ledger_context
    _seed_product(session_local, business_id, actor)
    _set_external_counters(session_local, business_id, "KURTA-BLU-M", blocked_stock=2)

    inward = _adjust(session_local, business_id, actor, "inward", 5)
    assert inward.counter_field == "inward_addition"
    assert (inward.previous_value, inward.new_value) == (0, 5)
    assert inward.previous.physical_stock == 10
    assert inward.current.physical_stock == 15
    assert inward.current.available_stock == 13

    with pytest.raises(InvalidAdjustmentError) as exc_info:
        _adjust(session_local, business_id, actor, "deduction", 20)
    rejection = exc_info.value
    assert rejection.current_physical_stock == 15
    assert rejection.projected_physical_stock == -5
    assert rejection.details[0]["max_deductible"] == 15
    assert "Maximum deductible: 15" in rejection.message

    ledger = _ledger(session_local, business_id, "KURTA-BLU-M")
    assert ledger.deduction == 0
    assert derive_stock(ledger).physical_stock == 15

    deduction = _adjust(session_local, business_id, actor, "deduction", 15)
    assert deduction.new_value == 15
    assert deduction.current.physical_stock == 0
    assert deduction.current.available_stock == -2
    assert deduction.current.blocked_exceeds_physical

    ledger = _ledger(session_local, business_id, "KURTA-BLU-M")
    assert ledger == LedgerCounters(opening_stock=10, inward_addition=5, deduction=15, blocked_stock=2)

    logs = _adjustment_logs(session_local, business_id)
    assert [(log.adjustment_type, log.adjustment_amount) for log in logs] == [
        ("inward", 5),
        ("deduction", 15),
    ]
    assert logs[0].changes == [
        {"field": "inward_addition", "field_label": "Inward Addition", "old_value": 0, "new_value": 5}
    ]
    assert logs[1].performed_by_email == "ledger-owner@example.com"
    assert logs[1].metadata_json["new_available_stock"] == -2


def test_deduction_rejected_when_no_physical_stock(ledger_context):
    session_local, business_id, actor = ledger_context
    _seed_product(session_local, business_id, actor, opening=0)

    with pytest.raises(InvalidAdjustmentError) as exc_info:
        _adjust(session_local, business_id, actor, "deduction", 1)

    assert exc_info.value.details[0]["max_deductible"] == 0
    assert _adjustment_logs(session_local, business_id) == []


def test_adjustment_writes_audit_event_in_same_transaction(ledger_context):
    session_local, business_id, actor = ledger_context
    _seed_product(session_local, business_id, actor)

    result = _adjust(session_local, business_id, actor, "deduction", 4)

    db = session_local()
    try:
        event = db.execute(
            select(AuditLog).where(
                AuditLog.business_id == business_id,
                AuditLog.action == "inventory.deduction",
            )
        ).scalar_one()
    finally:
        db.close()
    assert event.target_sku == "KURTA-BLU-M"
    assert event.metadata_json["product_log_id"] == result.log_id
    assert event.metadata_json["old_value"] == 0
    assert event.metadata_json["new_value"] == 4


def test_sku_lookup_ignores_case_and_surrounding_whitespace(ledger_context):
    session_local, business_id, actor = ledger_context
    _seed_product(session_local, business_id, actor)

    result = _adjust(session_local, business_id, actor, "inward", 3, sku="  kurta-blu-m ")

    assert result.sku == "KURTA-BLU-M"
    assert _ledger(session_local, business_id, "KURTA-BLU-M").inward_addition == 3


def test_sku_with_like_wildcards_is_matched_literally(ledger_context):
    session_local, business_id, actor = ledger_context
    _seed_product(session_local, business_id, actor, sku="KURTA_BLU")

    with pytest.raises(NotFoundError):
        _adjust(session_local, business_id, actor, "inward", 1, sku="KURTA%")
    with pytest.raises(NotFoundError):
        _adjust(session_local, business_id, actor, "inward", 1, sku="KURTAXBLU")


def test_unknown_sku_and_other_tenant_sku_are_not_found(ledger_context):
    session_local, business_id, actor = ledger_context
    _seed_product(session_local, business_id, actor)

    with pytest.raises(NotFoundError) as exc_info:
        _adjust(session_local, business_id, actor, "inward", 1, sku="MISSING-SKU")
    assert 'SKU "MISSING-SKU"' in exc_info.value.message

    with pytest.raises(NotFoundError):
        _adjust(session_local, str(uuid.uuid4()), actor, "inward", 1)


@pytest.mark.parametrize(
    ("sku", "adjustment_type", "amount", "field"),
    [
        ("", "inward", 1, "sku"),
        ("   ", "inward", 1, "sku"),
        (None, "inward", 1, "sku"),
        ("KURTA-BLU-M", "transfer", 1, "type"),
        ("KURTA-BLU-M", "inward", 0, "amount"),
        ("KURTA-BLU-M", "deduction", -3, "amount"),
        ("KURTA-BLU-M", "inward", 2.5, "amount"),
        ("KURTA-BLU-M", "inward", "5", "amount"),
        ("KURTA-BLU-M", "inward", True, "amount"),
    ],
)
def test_invalid_requests_are_rejected_before_touching_the_ledger(
    ledger_context, sku, adjustment_type, amount, field
):
    session_local, business_id, actor = ledger_context
    _seed_product(session_local, business_id, actor)

    with pytest.raises(ValidationError) as exc_info:
        _adjust(session_local, business_id, actor, adjustment_type, amount, sku=sku)

    assert exc_info.value.field == field
    assert _ledger(session_local, business_id, "KURTA-BLU-M") == LedgerCounters(opening_stock=10)


def test_collaborator_counters_are_never_overwritten(ledger_context):
    session_local, business_id, actor = ledger_context
    _seed_product(session_local, business_id, actor)

    db = session_local()
    try:
        # Load the product into this session, then let a collaborator write underneath it.
        db.execute(select(Product).where(Product.sku == "KURTA-BLU-M")).scalar_one()
        _set_external_counters(
            session_local,
            business_id,
            "KURTA-BLU-M",
            auto_addition=7,
            auto_deduction=4,
            blocked_stock=3,
        )
        result = apply_adjustment(
            db,
            business_id=business_id,
            sku="KURTA-BLU-M",
            adjustment_type="deduction",
            amount=13,
            actor=actor,
        )
    finally:
        db.close()

    assert result.current.physical_stock == 0
    assert _ledger(session_local, business_id, "KURTA-BLU-M") == LedgerCounters(
        opening_stock=10,
        deduction=13,
        auto_addition=7,
        auto_deduction=4,
        blocked_stock=3,
    )


def test_deduction_rejected_when_collaborator_consumes_stock_before_write(ledger_context, monkeypatch):
    session_local, business_id, actor = ledger_context
    _seed_product(session_local, business_id, actor)
    load_product = inventory_service._load_product_for_update
    calls = []

    def load_then_consume(db, *, business_id, sku):
        product = load_product(db, business_id=business_id, sku=sku)
        if not calls:
            # Order processing ships 8 units after the read but before the counter write.
            _set_external_counters(session_local, business_id, "KURTA-BLU-M", auto_deduction=8)
        calls.append(sku)
        return product

    monkeypatch.setattr(inventory_service, "_load_product_for_update", load_then_consume)
    with pytest.raises(InvalidAdjustmentError) as exc_info:
        _adjust(session_local, business_id, actor, "deduction", 5)

    rejection = exc_info.value
    assert rejection.current_physical_stock == 2
    assert rejection.projected_physical_stock == -3
    assert "Maximum deductible: 2" in rejection.message
    assert len(calls) == 2
    assert _ledger(session_local, business_id, "KURTA-BLU-M") == LedgerCounters(
        opening_stock=10, auto_deduction=8
    )
    assert _adjustment_logs(session_local, business_id) == []

    db = session_local()
    try:
        audit_count = db.execute(
            select(func.count()).select_from(AuditLog).where(AuditLog.action.like("inventory.%"))
        ).scalar_one()
    finally:
        db.close()
    assert audit_count == 0
    assert sku_locks.active_keys() == 0


def test_failed_commit_leaves_ledger_and_logs_untouched(ledger_context, monkeypatch):
    session_local, business_id, actor = ledger_context
    _seed_product(session_local, business_id, actor)

    db = session_local()

    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", failing_commit)
    try:
        with pytest.raises(PersistenceError):
            apply_adjustment(
                db,
                business_id=business_id,
                sku="KURTA-BLU-M",
                adjustment_type="inward",
                amount=5,
                actor=actor,
            )
    finally:
        db.close()

    assert _ledger(session_local, business_id, "KURTA-BLU-M") == LedgerCounters(opening_stock=10)
    assert _adjustment_logs(session_local, business_id) == []
    assert sku_locks.active_keys() == 0


def test_bulk_inward_reports_each_row(ledger_context):
    session_local, business_id, actor = ledger_context
    _seed_product(session_local, business_id, actor, sku="KUR-1", opening=0)
    _seed_product(session_local, business_id, actor, sku="KUR-2", opening=4)

    db = session_local()
    try:
        outcome = bulk_inward(
            db,
            business_id=business_id,
            rows=[
                {"sku": "KUR-1", "quantity": 20},
                {"sku": "kur-2", "quantity": "6"},
                {"sku": "", "quantity": None},
                {"sku": "NOPE-9", "quantity": 3},
                {"sku": "", "quantity": 2},
                {"sku": "KUR-1", "quantity": 2.5},
                {"sku": "KUR-1", "quantity": 0},
                {"sku": "KUR-1", "quantity": 2.0},
            ],
            actor=actor,
        )
    finally:
        db.close()

    assert [(item.row, item.status) for item in outcome.results] == [
        (2, "Success"),
        (3, "Success"),
        (5, "Skipped"),
        (6, "Error"),
        (7, "Error"),
        (8, "Error"),
        (9, "Success"),
    ]
    assert outcome.results[0].message == "Added 20 units (physical stock 20)"
    assert outcome.results[2].message == 'SKU "NOPE-9" does not exist in the system'
    assert outcome.results[3].message == "Row 6: SKU is required"
    assert outcome.count("Success") == 3
    assert _ledger(session_local, business_id, "KUR-1").inward_addition == 22
    assert _ledger(session_local, business_id, "KUR-2").inward_addition == 6


def test_concurrent_deductions_never_oversell(tmp_path):
    """Twenty operators race to deduct one unit each from ten units on a file-backed database."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = session_local()
    user = User(
        id=str(uuid.uuid4()),
        email="race@example.com",
        username="race",
        hashed_password="not-a-real-hash",
    )
    business = Business(id=str(uuid.uuid4()), owner_user_id=user.id, name="Race Biz")
    db.add(user)
    db.flush()
    db.add(business)
    db.commit()
    business_id = business.id
    actor = Actor(user_id=user.id, email=user.email)
    db.close()
    _seed_product(session_local, business_id, actor, sku="RACE-1", opening=10)

    outcomes: list[str] = []
    outcomes_guard = threading.Lock()
    start = threading.Barrier(20)

    def worker():
        start.wait()
        session = session_local()
        try:
            apply_adjustment(
                session,
                business_id=business_id,
                sku="RACE-1",
                adjustment_type="deduction",
                amount=1,
                actor=actor,
            )
            outcome = "accepted"
        except InvalidAdjustmentError:
            outcome = "rejected"
        finally:
            session.close()
        with outcomes_guard:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(20)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    try:
        assert outcomes.count("accepted") == 10
        assert outcomes.count("rejected") == 10
        ledger = _ledger(session_local, business_id, "RACE-1")
        assert ledger.deduction == 10
        assert derive_stock(ledger).physical_stock == 0

        db = session_local()
        try:
            log_count = db.execute(
                select(func.count(ProductLog.id)).where(ProductLog.action == "inventory_adjusted")
            ).scalar_one()
        finally:
            db.close()
        assert log_count == 10
        assert sku_locks.active_keys() == 0
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
