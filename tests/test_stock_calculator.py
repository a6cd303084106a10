from types import SimpleNamespace

import pytest

from stockdesk.services.stock_calculator import (
    LOW_STOCK_THRESHOLD,
    LedgerCounters,
    can_open_deduction,
    classify_stock_status,
    derive_stock,
    physical_stock,
    available_stock,
    project_adjustment,
)


def test_opening_stock_with_blocked_units():
    counters = LedgerCounters(opening_stock=10, blocked_stock=2)

    derived = derive_stock(counters)

    assert derived.physical_stock == 10
    assert derived.available_stock == 8
    assert not derived.blocked_exceeds_physical


def test_physical_stock_includes_collaborator_counters():
    counters = LedgerCounters(
        opening_stock=10,
        inward_addition=7,
        deduction=3,
        auto_addition=4,
        auto_deduction=6,
        blocked_stock=5,
    )

    assert physical_stock(counters) == 12
    assert available_stock(counters) == 7


def test_available_stock_may_go_negative_and_is_flagged():
    counters = LedgerCounters(opening_stock=10, inward_addition=5, deduction=15, blocked_stock=2)

    derived = derive_stock(counters)

    assert derived.physical_stock == 0
    assert derived.available_stock == -2
    assert derived.blocked_exceeds_physical


def test_from_product_treats_unset_counters_as_zero():
    product = SimpleNamespace(opening_stock=4, inward_addition=None, auto_deduction=1, blocked_stock=None)

    counters = LedgerCounters.from_product(product)

    assert counters == LedgerCounters(opening_stock=4, auto_deduction=1)
    assert counters.as_dict()["deduction"] == 0


@pytest.mark.parametrize(
    ("available", "expected"),
    [
        (-3, "out-of-stock"),
        (0, "out-of-stock"),
        (1, "low-stock"),
        (LOW_STOCK_THRESHOLD, "low-stock"),
        (LOW_STOCK_THRESHOLD + 1, "in-stock"),
    ],
)
def test_stock_status_buckets(available, expected):
    assert classify_stock_status(available) == expected


def test_deduction_only_offered_while_physical_stock_positive():
    assert can_open_deduction(LedgerCounters(opening_stock=1))
    assert not can_open_deduction(LedgerCounters(opening_stock=2, deduction=2))
    # Blocked units do not close the deduction control.
    assert can_open_deduction(LedgerCounters(opening_stock=2, blocked_stock=9))


def test_project_adjustment_touches_only_the_manual_counter():
    counters = LedgerCounters(opening_stock=10, auto_addition=3, blocked_stock=2)

    projected, old_value, new_value = project_adjustment(counters, "inward", 5)
    assert (old_value, new_value) == (0, 5)
    assert projected.inward_addition == 5
    assert projected.auto_addition == 3
    assert derive_stock(projected).physical_stock == 18

    projected, old_value, new_value = project_adjustment(projected, "deduction", 4)
    assert (old_value, new_value) == (0, 4)
    assert projected.opening_stock == 10
    assert derive_stock(projected).available_stock == 12
    # The source ledger is immutable.
    assert counters.inward_addition == 0
