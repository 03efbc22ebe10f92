"""Tests for LPG bill allocation and refill storage."""

from datetime import datetime
from decimal import Decimal

import pytest

from condobooks.domain.entities import MeterReading
from condobooks.domain.errors import AuthorizationError, NotFoundError, ValidationError
from condobooks.domain.lpg import LpgService, allocate, total_billed

TOLERANCE = Decimal("0.000001")


def test_allocate_splits_by_consumption():
    allocations = allocate(
        Decimal("10000"),
        Decimal("10"),
        [
            MeterReading(1, Decimal("150"), Decimal("100")),
            MeterReading(2, Decimal("230"), Decimal("200")),
            MeterReading(3, Decimal("20")),
        ],
    )

    assert [a.owner_id for a in allocations] == [1, 2, 3]
    assert [a.consumption for a in allocations] == [Decimal("50"), Decimal("30"), Decimal("20")]
    assert [a.percentage for a in allocations] == [Decimal("50"), Decimal("30"), Decimal("20")]
    assert [a.subtotal for a in allocations] == [Decimal("5000"), Decimal("3000"), Decimal("2000")]
    assert [a.total_amount for a in allocations] == [Decimal("5500"), Decimal("3300"), Decimal("2200")]
    assert allocations[2].previous_reading == Decimal("0")


def test_allocate_conserves_bill_with_uneven_shares():
    bill = Decimal("1000.00")
    allocations = allocate(
        bill,
        Decimal("0"),
        [MeterReading(n, Decimal("10.3") * n, Decimal("0")) for n in range(1, 8)],
    )

    assert abs(sum(a.subtotal for a in allocations) - bill) < Decimal("1e-20")
    assert abs(sum(a.percentage for a in allocations) - 100) < Decimal("1e-20")


def test_allocate_applies_efficiency_to_total():
    allocations = allocate(Decimal("900"), Decimal("12.5"), [MeterReading(1, Decimal("3"), Decimal("1"))])
    assert allocations[0].subtotal == Decimal("900")
    assert allocations[0].total_amount == Decimal("1012.5")


def test_allocate_allows_zero_consumption_for_some_owners():
    allocations = allocate(
        Decimal("100"), Decimal("0"),
        [MeterReading(1, Decimal("5"), Decimal("5")), MeterReading(2, Decimal("15"), Decimal("5"))],
    )
    assert allocations[0].total_amount == 0
    assert allocations[1].total_amount == Decimal("100")


@pytest.mark.parametrize(
    "bill, efficiency, readings",
    [
        (Decimal("100"), Decimal("0"), []),
        (Decimal("100"), Decimal("0"), [MeterReading(1, Decimal("5"), Decimal("5"))]),
        (Decimal("100"), Decimal("0"), [MeterReading(1, Decimal("4"), Decimal("9"))]),
        (Decimal("-1"), Decimal("0"), [MeterReading(1, Decimal("9"), Decimal("4"))]),
        (Decimal("100"), Decimal("-5"), [MeterReading(1, Decimal("9"), Decimal("4"))]),
        (Decimal("100"), Decimal("0"), [MeterReading(1, Decimal("-9"))]),
        (
            Decimal("100"),
            Decimal("0"),
            [MeterReading(1, Decimal("9"), Decimal("4")), MeterReading(1, Decimal("10"), Decimal("4"))],
        ),
    ],
)
def test_allocate_rejects_invalid_input(bill, efficiency, readings):
    with pytest.raises(ValidationError):
        allocate(bill, efficiency, readings)


def test_create_refill_stores_entries(lpg_service, tag_service, sample_owners):
    tag = tag_service.create_tag("LPG March")
    refill = lpg_service.create_refill(
        bill_amount=Decimal("12000"),
        gallons_refilled=Decimal("100"),
        refill_date=datetime(2024, 3, 10),
        efficiency_percentage=Decimal("5"),
        readings=[
            MeterReading(sample_owners["1A"].id, Decimal("60")),
            MeterReading(sample_owners["2B"].id, Decimal("40")),
        ],
        tag_id=tag.id,
    )

    assert refill.tag_id == tag.id
    assert len(refill.entries) == 2
    owed = {e.owner_id: e.total_amount for e in refill.entries}
    assert abs(owed[sample_owners["1A"].id] - Decimal("7560")) < TOLERANCE
    assert abs(owed[sample_owners["2B"].id] - Decimal("5040")) < TOLERANCE
    assert abs(total_billed(refill) - Decimal("12600")) < TOLERANCE
    assert abs(sum(e.total_amount for e in refill.entries) - total_billed(refill)) < TOLERANCE


def test_next_refill_continues_from_last_reading(lpg_service, sample_owners):
    a, b = sample_owners["1A"].id, sample_owners["2B"].id
    lpg_service.create_refill(
        Decimal("1000"), Decimal("10"), datetime(2024, 1, 10), Decimal("0"),
        [MeterReading(a, Decimal("50")), MeterReading(b, Decimal("50"))],
    )
    second = lpg_service.create_refill(
        Decimal("1000"), Decimal("10"), datetime(2024, 2, 10), Decimal("0"),
        [MeterReading(a, Decimal("80")), MeterReading(b, Decimal("60"))],
    )

    entries = {e.owner_id: e for e in second.entries}
    assert entries[a].previous_reading == Decimal("50")
    assert entries[a].consumption == Decimal("30")
    assert entries[b].consumption == Decimal("10")
    assert lpg_service.latest_refill().id == second.id
    assert lpg_service.previous_readings() == {a: Decimal("80"), b: Decimal("60")}


def test_failed_allocation_stores_nothing(lpg_service, temp_db, sample_owners):
    with pytest.raises(ValidationError):
        lpg_service.create_refill(
            Decimal("1000"), Decimal("10"), datetime(2024, 1, 10), Decimal("0"),
            [MeterReading(sample_owners["1A"].id, Decimal("0"))],
        )
    assert temp_db.list_refills() == []


def test_create_refill_unknown_owner(lpg_service):
    with pytest.raises(NotFoundError):
        lpg_service.create_refill(
            Decimal("1000"), Decimal("10"), datetime(2024, 1, 10), Decimal("0"),
            [MeterReading(999, Decimal("10"))],
        )


def test_create_refill_requires_admin(temp_db, viewer, sample_owners):
    service = LpgService(temp_db, viewer)
    with pytest.raises(AuthorizationError):
        service.create_refill(
            Decimal("1000"), Decimal("10"), datetime(2024, 1, 10), Decimal("0"),
            [MeterReading(sample_owners["1A"].id, Decimal("10"))],
        )


def test_delete_refill(lpg_service, sample_owners):
    refill = lpg_service.create_refill(
        Decimal("1000"), Decimal("10"), datetime(2024, 1, 10), Decimal("0"),
        [MeterReading(sample_owners["1A"].id, Decimal("10"))],
    )
    assert len(lpg_service.refills_for_owner(sample_owners["1A"].id)) == 1

    lpg_service.delete_refill(refill.id)

    assert lpg_service.list_refills() == []
    with pytest.raises(NotFoundError):
        lpg_service.get_refill(refill.id)
