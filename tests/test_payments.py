"""Tests for LPG payment reconciliation."""

from datetime import datetime
from decimal import Decimal

import pytest

from condobooks.domain.entities import (
    LpgRefillEntry,
    MeterReading,
    NewTransaction,
    PaymentStatus,
    TransactionType,
)
from condobooks.domain.errors import NotFoundError, ValidationError
from condobooks.domain.payments import reconcile_payments


def _entry(owner_id, total):
    total = Decimal(total)
    return LpgRefillEntry(
        id=owner_id,
        refill_id=1,
        owner_id=owner_id,
        previous_reading=Decimal(0),
        current_reading=Decimal(1),
        consumption=Decimal(1),
        percentage=Decimal(50),
        subtotal=total,
        total_amount=total,
    )


def test_reconcile_payments_counts_owner_money_in(make_transaction, sample_owners):
    a, b, c = (o.id for o in sample_owners.values())
    transactions = [
        make_transaction(amount="250", owner_id=a),
        make_transaction(amount="250", owner_id=a),
        make_transaction(amount="80", owner_id=b),
        make_transaction(amount="999", owner_id=b, type=TransactionType.MONEY_OUT),
        make_transaction(amount="999"),
    ]

    results = reconcile_payments([_entry(a, "500"), _entry(b, "300"), _entry(c, "0")], transactions)

    assert [r.owner_id for r in results] == [a, b]
    assert results[0].amount_paid == Decimal("500")
    assert results[0].remaining_balance == 0
    assert results[0].status is PaymentStatus.PAID
    assert results[1].amount_paid == Decimal("80")
    assert results[1].remaining_balance == Decimal("220")
    assert results[1].status is PaymentStatus.PENDING


def test_overpayment_is_paid_with_negative_remaining(make_transaction, sample_owners):
    owner_id = sample_owners["1A"].id
    [result] = reconcile_payments([_entry(owner_id, "100")], [make_transaction(amount="150", owner_id=owner_id)])
    assert result.remaining_balance == Decimal("-50")
    assert result.status is PaymentStatus.PAID


@pytest.fixture
def tagged_refill(lpg_service, tag_service, sample_owners):
    tag = tag_service.create_tag("LPG March")
    refill = lpg_service.create_refill(
        bill_amount=Decimal("1000"),
        gallons_refilled=Decimal("50"),
        refill_date=datetime(2024, 3, 10),
        efficiency_percentage=Decimal("0"),
        readings=[
            MeterReading(sample_owners["1A"].id, Decimal("60")),
            MeterReading(sample_owners["2B"].id, Decimal("40")),
        ],
        tag_id=tag.id,
    )
    return refill, tag


def test_pending_payments_for_refill(
    payment_service, tagged_refill, tag_service, sample_owners, make_transaction, temp_db
):
    refill, tag = tagged_refill
    a, b = sample_owners["1A"].id, sample_owners["2B"].id
    child = tag_service.create_tag("LPG March late", parent_id=tag.id)

    make_transaction(amount="600", owner_id=a, tag_ids=[tag.id])
    make_transaction(amount="100", owner_id=b, tag_ids=[tag.id])
    make_transaction(amount="300", owner_id=b)
    make_transaction(amount="200", owner_id=b, tag_ids=[child.id])
    make_transaction(amount="500", tag_ids=[tag.id])
    temp_db.create_transaction(
        NewTransaction(
            type=TransactionType.MONEY_IN,
            amount=Decimal("300"),
            date=datetime(2024, 3, 12),
            description="DUP",
            owner_id=b,
            is_duplicate=True,
            tag_ids=(tag.id,),
        )
    )

    results = {p.owner_id: p for p in payment_service.pending_payments_for_refill(refill.id)}

    assert results[a].status is PaymentStatus.PAID
    assert results[a].amount_paid == Decimal("600")
    assert results[b].amount_owed == Decimal("400")
    assert results[b].amount_paid == Decimal("100")
    assert results[b].remaining_balance == Decimal("300")
    assert results[b].status is PaymentStatus.PENDING


def test_untagged_refill_has_no_pending(payment_service, lpg_service, sample_owners):
    refill = lpg_service.create_refill(
        Decimal("1000"), Decimal("50"), datetime(2024, 3, 10), Decimal("0"),
        [MeterReading(sample_owners["1A"].id, Decimal("10"))],
    )
    assert payment_service.pending_payments_for_refill(refill.id) == []


def test_pending_payments_unknown_refill(payment_service):
    with pytest.raises(NotFoundError):
        payment_service.pending_payments_for_refill(404)


def test_all_pending_payments_sums_refills(
    payment_service, tagged_refill, lpg_service, tag_service, sample_owners, make_transaction
):
    a, b = sample_owners["1A"].id, sample_owners["2B"].id
    april = tag_service.create_tag("LPG April")
    lpg_service.create_refill(
        Decimal("500"), Decimal("25"), datetime(2024, 4, 10), Decimal("0"),
        [MeterReading(a, Decimal("70")), MeterReading(b, Decimal("50"))],
        tag_id=april.id,
    )
    make_transaction(amount="600", owner_id=a, tag_ids=[tagged_refill[1].id])

    results = payment_service.all_pending_payments()

    assert [p.owner_id for p in results] == sorted([a, b])
    by_owner = {p.owner_id: p for p in results}
    assert by_owner[a].amount_owed == Decimal("850")
    assert by_owner[a].amount_paid == Decimal("600")
    assert by_owner[a].status is PaymentStatus.PENDING
    assert by_owner[b].amount_owed == Decimal("650")
    assert by_owner[b].remaining_balance == Decimal("650")


def test_tag_payment_breakdown(payment_service, tag_service, sample_owners, make_transaction):
    fee = tag_service.create_tag("Fee March")
    a = sample_owners["1A"].id
    make_transaction(amount="3000", owner_id=a, tag_ids=[fee.id], date=datetime(2024, 3, 2))
    make_transaction(amount="1000", owner_id=a, tag_ids=[fee.id], date=datetime(2024, 3, 20))

    rows = payment_service.tag_payment_breakdown([fee.id])

    assert [r.owner_id for r in rows] == [o.id for o in sample_owners.values()]
    first = rows[0]
    assert first.amount_paid == Decimal("4000")
    assert first.payment_count == 2
    assert first.last_payment_date == datetime(2024, 3, 20)
    assert first.status is PaymentStatus.PAID
    assert rows[1].status is PaymentStatus.PENDING
    assert rows[1].last_payment_date is None


def test_tag_payment_breakdown_validates_tags(payment_service):
    with pytest.raises(ValidationError):
        payment_service.tag_payment_breakdown([])
    with pytest.raises(NotFoundError):
        payment_service.tag_payment_breakdown([77])
