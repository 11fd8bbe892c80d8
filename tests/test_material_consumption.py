from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from siteops.core.errors import (
    InsufficientStockError,
    MaterialNotFoundError,
    StockRemainingError,
    ValidationError,
)
from siteops.domain.materials import (
    BatchStatus,
    add_batch,
    consume_material,
    delete_batch,
    list_batches,
    update_status_by_code,
)
from siteops.domain.materials.aggregates import available_for, consumed_for
from siteops.domain.materials.consumption import plan_fifo_allocation

JAN_1 = datetime(2026, 1, 1, 8, 0, tzinfo=timezone.utc)
JAN_2 = datetime(2026, 1, 2, 8, 0, tzinfo=timezone.utc)


def _cement(session, project_id, quantity, delivered_at, code="CEM1"):
    return add_batch(
        session,
        material_code=code,
        name="Portland cement 50kg",
        quantity=quantity,
        added_by="store-keeper",
        project_id=project_id,
        amount="410.50",
        delivered_at=delivered_at,
    )


def test_consumption_depletes_oldest_batch_first(project_id, session):
    older = _cement(session, project_id, 100, JAN_1)
    newer = _cement(session, project_id, 50, JAN_2)

    result = consume_material(session, "CEM1", 120, taken_by="mason-crew")

    assert older.remaining_quantity == Decimal("0")
    assert newer.remaining_quantity == Decimal("30")
    assert [(a.batch_id, a.quantity) for a in result.allocations] == [
        (older.id, Decimal("100")),
        (newer.id, Decimal("20")),
    ]
    assert len(older.usage_events) == 1
    assert len(newer.usage_events) == 1
    assert older.usage_events[0].consumption_id == newer.usage_events[0].consumption_id == result.consumption_id
    assert newer.usage_events[0].quantity == Decimal("20")
    assert newer.usage_events[0].taken_by == "mason-crew"


def test_insufficient_stock_leaves_every_batch_untouched(project_id, session):
    older = _cement(session, project_id, 100, JAN_1)
    newer = _cement(session, project_id, 50, JAN_2)

    with pytest.raises(InsufficientStockError) as exc_info:
        consume_material(session, "CEM1", 200, taken_by="mason-crew")

    assert exc_info.value.requested == Decimal("200")
    assert exc_info.value.available == Decimal("150")
    assert older.remaining_quantity == Decimal("100")
    assert newer.remaining_quantity == Decimal("50")
    assert older.usage_events == []
    assert newer.usage_events == []


def test_delivery_date_wins_over_insertion_order(project_id, session):
    late = _cement(session, project_id, 40, JAN_2)
    early = _cement(session, project_id, 40, JAN_1)

    result = consume_material(session, "CEM1", 10, taken_by="crew")

    assert [a.batch_id for a in result.allocations] == [early.id]
    assert late.remaining_quantity == Decimal("40")


def test_same_delivery_instant_falls_back_to_insertion_order(project_id, session):
    first = _cement(session, project_id, 5, JAN_1)
    second = _cement(session, project_id, 5, JAN_1)

    result = consume_material(session, "CEM1", 7, taken_by="crew")

    assert [(a.batch_id, a.quantity) for a in result.allocations] == [
        (first.id, Decimal("5")),
        (second.id, Decimal("2")),
    ]


def test_exact_stock_is_consumed_completely(project_id, session):
    batch = _cement(session, project_id, "12.5", JAN_1)

    consume_material(session, "CEM1", "12.5", taken_by="crew")

    assert batch.remaining_quantity == Decimal("0")
    with pytest.raises(MaterialNotFoundError):
        consume_material(session, "CEM1", "0.001", taken_by="crew")


def test_unknown_material_code_is_not_found(project_id, session):
    _cement(session, project_id, 10, JAN_1)

    with pytest.raises(MaterialNotFoundError) as exc_info:
        consume_material(session, "SAND", 1, taken_by="crew")
    assert exc_info.value.material_code == "SAND"


@pytest.mark.parametrize("quantity", [0, -5, "abc"])
def test_non_positive_or_invalid_quantity_is_rejected(project_id, session, quantity):
    _cement(session, project_id, 10, JAN_1)

    with pytest.raises(ValidationError):
        consume_material(session, "CEM1", quantity, taken_by="crew")


def test_out_of_stock_batches_are_written_off_and_skipped(project_id, session):
    batch = _cement(session, project_id, 100, JAN_1)
    consume_material(session, "CEM1", 30, taken_by="crew")

    modified = update_status_by_code(session, "CEM1", "out of stock")

    assert modified == 1
    assert batch.status == BatchStatus.OUT_OF_STOCK.value
    assert batch.remaining_quantity == Decimal("0")
    assert batch.written_off_quantity == Decimal("70")
    assert consumed_for(session, "CEM1") == Decimal("30")
    with pytest.raises(MaterialNotFoundError):
        consume_material(session, "CEM1", 1, taken_by="crew")


def test_on_hold_batches_stay_consumable(project_id, session):
    _cement(session, project_id, 10, JAN_1)
    update_status_by_code(session, "CEM1", BatchStatus.ON_HOLD)

    result = consume_material(session, "CEM1", 4, taken_by="crew")

    assert result.allocations[0].quantity == Decimal("4")


def test_invalid_status_value_is_rejected(project_id, session):
    _cement(session, project_id, 10, JAN_1)

    with pytest.raises(ValidationError):
        update_status_by_code(session, "CEM1", "Borrowed")


def test_delete_refuses_batches_that_still_hold_stock(project_id, session):
    batch = _cement(session, project_id, 10, JAN_1)

    with pytest.raises(StockRemainingError):
        delete_batch(session, batch.id)

    consume_material(session, "CEM1", 10, taken_by="crew")
    delete_batch(session, batch.id)

    assert list_batches(session, material_code="CEM1") == []
    assert [b.id for b in list_batches(session, material_code="CEM1", include_deleted=True)] == [batch.id]
    assert consumed_for(session, "CEM1") == Decimal("10")
    assert available_for(session, "CEM1") == Decimal("0")


def test_plan_fifo_allocation_is_pure():
    batches = [
        SimpleNamespace(id="a", remaining_quantity=Decimal("3")),
        SimpleNamespace(id="b", remaining_quantity=Decimal("0")),
        SimpleNamespace(id="c", remaining_quantity=Decimal("4")),
    ]

    plan = plan_fifo_allocation(batches, Decimal("5"), "GRAVEL")

    assert [(a.batch_id, a.quantity) for a in plan] == [("a", Decimal("3")), ("c", Decimal("2"))]
    assert batches[0].remaining_quantity == Decimal("3")
    with pytest.raises(InsufficientStockError):
        plan_fifo_allocation(batches, Decimal("8"), "GRAVEL")


def test_random_withdrawals_keep_batch_quantities_consistent(project_id, session):
    rng = random.Random(20260101)
    batches = [
        _cement(session, project_id, rng.randint(5, 40), JAN_1 + timedelta(hours=i), code="STEEL")
        for i in range(6)
    ]
    delivered = sum((b.delivered_quantity for b in batches), Decimal("0"))
    taken = Decimal("0")

    for _ in range(25):
        quantity = Decimal(rng.randint(1, 15))
        try:
            consume_material(session, "STEEL", quantity, taken_by="crew")
        except (InsufficientStockError, MaterialNotFoundError):
            continue
        taken += quantity

    for batch in batches:
        used = sum((event.quantity for event in batch.usage_events), Decimal("0"))
        assert Decimal("0") <= batch.remaining_quantity <= batch.delivered_quantity
        assert batch.remaining_quantity == batch.delivered_quantity - used - batch.written_off_quantity

    # Oldest first: depleted batches, at most one partial, then untouched ones.
    touched = [b.remaining_quantity < b.delivered_quantity for b in batches]
    assert touched == sorted(touched, reverse=True)
    partial = [b for b in batches if Decimal("0") < b.remaining_quantity < b.delivered_quantity]
    assert len(partial) <= 1

    assert available_for(session, "STEEL") == delivered - taken
    assert consumed_for(session, "STEEL") == taken


def test_fractional_quantities_are_deducted_exactly(project_id, session):
    batch = _cement(session, project_id, 10, JAN_1)

    result = consume_material(session, "CEM1", "0.125", taken_by="crew")

    assert result.requested_quantity == Decimal("0.125")
    assert result.allocations[0].quantity == Decimal("0.125")
    assert batch.remaining_quantity == Decimal("9.875")


@pytest.mark.parametrize("quantity", ["0.0015", "0.0004", "2.1234"])
def test_quantities_beyond_three_decimal_places_are_refused_not_rounded(project_id, session, quantity):
    batch = _cement(session, project_id, 10, JAN_1)

    with pytest.raises(ValidationError, match="decimal places"):
        consume_material(session, "CEM1", quantity, taken_by="crew")

    assert batch.remaining_quantity == Decimal("10")
    assert batch.usage_events == []


def test_amounts_keep_two_decimal_places(project_id, session):
    batch = add_batch(session, "CEM1", "cement", "1.500", "store", project_id, amount="410.50")
    assert batch.unit_amount == Decimal("410.5")
    assert batch.delivered_quantity == Decimal("1.5")

    with pytest.raises(ValidationError, match="amount allows at most 2 decimal places"):
        add_batch(session, "CEM1", "cement", 1, "store", project_id, amount="410.555")
    with pytest.raises(ValidationError, match="too large"):
        add_batch(session, "CEM1", "cement", "100000000000", "store", project_id)
