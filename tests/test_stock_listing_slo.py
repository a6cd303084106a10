import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from time import perf_counter

from sqlalchemy import select

from stockdesk.models.business import Business
from stockdesk.models.product import Product
from stockdesk.models.user import User


def _register(client, *, email: str, full_name: str = "Owner"):
    return client.post(
        "/auth/register",
        json={
            "email": email,
            "full_name": full_name,
            "password": "password123",
            "business_name": f"{full_name} Biz",
        },
    )


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _p95_ms(values: list[float]) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    index = max(0, int(round(0.95 * len(ordered))) - 1)
    return ordered[min(index, len(ordered) - 1)]


def _seed_catalog(session_local, *, email: str, size: int) -> None:
    db = session_local()
    try:
        user = db.execute(select(User).where(User.email == email)).scalar_one()
        business = db.execute(select(Business).where(Business.owner_user_id == user.id)).scalar_one()
        started_at = datetime.now(timezone.utc)
        for idx in range(size):
            db.add(
                Product(
                    id=str(uuid.uuid4()),
                    business_id=business.id,
                    sku=f"SLO-{idx:04d}",
                    name=f"SLO Product {idx:04d}",
                    category=("apparel", "sarees", "dupattas")[idx % 3],
                    weight=Decimal("100"),
                    opening_stock=idx % 40,
                    inward_addition=idx % 7,
                    deduction=idx % 5,
                    blocked_stock=idx % 4,
                    created_at=started_at + timedelta(microseconds=idx),
                )
            )
        db.commit()
    finally:
        db.close()


def test_stock_listing_slo_latency(test_context):
    """The stock listing stays interactive for a catalog of a few hundred SKUs."""

    client, session_local = test_context

    register = _register(client, email="listing-slo-owner@example.com")
    assert register.status_code == 200, register.text
    token = register.json()["access_token"]

    catalog_size = 300
    _seed_catalog(session_local, email="listing-slo-owner@example.com", size=catalog_size)

    max_listing_p95_ms = 1500.0
    max_adjust_p95_ms = 1000.0
    sample_size = 20
    query_variants = [
        {"stock_filter": "all", "sort_field": "name", "sort_direction": "asc"},
        {"stock_filter": "in-stock", "sort_field": "available_stock", "sort_direction": "desc"},
        {"stock_filter": "low-stock", "sort_field": "physical_stock", "sort_direction": "asc"},
        {"stock_filter": "out-of-stock", "query": "slo", "category": "sarees"},
    ]

    listing_latencies_ms: list[float] = []
    for idx in range(sample_size):
        params = {**query_variants[idx % len(query_variants)], "page": 1 + idx % 3, "page_size": 50}
        started = perf_counter()
        res = client.get("/inventory/stock", params=params, headers=_auth_headers(token))
        listing_latencies_ms.append((perf_counter() - started) * 1000)
        assert res.status_code == 200, res.text
        if params.get("stock_filter") == "all":
            assert res.json()["total_count"] == catalog_size

    adjust_latencies_ms: list[float] = []
    for idx in range(sample_size):
        started = perf_counter()
        res = client.post(
            "/inventory/adjust",
            json={"sku": f"SLO-{idx:04d}", "type": "inward", "amount": 1},
            headers=_auth_headers(token),
        )
        adjust_latencies_ms.append((perf_counter() - started) * 1000)
        assert res.status_code == 200, res.text

    assert _p95_ms(listing_latencies_ms) <= max_listing_p95_ms
    assert _p95_ms(adjust_latencies_ms) <= max_adjust_p95_ms
