"""Tests for the transaction service."""

from datetime import datetime
from decimal import Decimal

import pytest

from condobooks.domain.entities import TransactionFilters, TransactionType
from condobooks.domain.errors import AuthorizationError, NotFoundError, ValidationError
from condobooks.domain.transaction import TransactionService


def test_create_transaction(transaction_service, sample_owners, tag_service):
    tag = tag_service.create_tag("Fees")
    txn = transaction_service.create_transaction(
        type=TransactionType.MONEY_IN,
        amount=Decimal("2500"),
        date=datetime(2024, 3, 5),
        description="Cash fee",
        owner_id=sample_owners["1A"].id,
        tag_ids=[tag.id, tag.id],
    )

    assert txn.type is TransactionType.MONEY_IN
    assert txn.amount == Decimal("2500")
    assert txn.owner_id == sample_owners["1A"].id
    assert txn.tag_ids == (tag.id,)
    assert txn.batch_id is None
    assert not txn.is_duplicate


def test_create_transaction_validation(transaction_service):
    with pytest.raises(ValidationError):
        transaction_service.create_transaction(TransactionType.MONEY_OUT, Decimal("-1"), datetime(2024, 1, 1))
    with pytest.raises(NotFoundError):
        transaction_service.create_transaction(
            TransactionType.MONEY_OUT, Decimal("1"), datetime(2024, 1, 1), owner_id=55
        )
    with pytest.raises(NotFoundError):
        transaction_service.create_transaction(
            TransactionType.MONEY_OUT, Decimal("1"), datetime(2024, 1, 1), tag_ids=[55]
        )


@pytest.mark.parametrize("bad", ["abc", "NaN", Decimal("NaN"), Decimal("Infinity"), None])
def test_create_transaction_rejects_non_numeric_amount(transaction_service, bad):
    with pytest.raises(ValidationError):
        transaction_service.create_transaction(TransactionType.MONEY_IN, bad, datetime(2024, 1, 1))
    assert transaction_service.list_transactions().transactions == ()


def test_create_transaction_float_amount_is_exact(transaction_service):
    txn = transaction_service.create_transaction(TransactionType.MONEY_IN, 0.1, datetime(2024, 1, 1))
    assert txn.amount == Decimal("0.1")


def test_updates_keep_bank_description(transaction_service, make_transaction, sample_owners):
    txn = make_transaction(description="TRANSF 0042")

    transaction_service.update_description(txn.id, "March fee")
    transaction_service.set_owner(txn.id, sample_owners["2B"].id)
    updated = transaction_service.set_category(txn.id, "fees")

    assert updated.description == "March fee"
    assert updated.bank_description == "TRANSF 0042"
    assert updated.owner_id == sample_owners["2B"].id
    assert updated.category == "fees"
    assert transaction_service.set_owner(txn.id, None).owner_id is None


def test_set_owner_unknown(transaction_service, make_transaction):
    txn = make_transaction()
    with pytest.raises(NotFoundError):
        transaction_service.set_owner(txn.id, 404)


def test_add_and_remove_tag(transaction_service, make_transaction, tag_service):
    tag = tag_service.create_tag("Fees")
    txn = make_transaction()

    assert transaction_service.add_tag(txn.id, tag.id) is True
    assert transaction_service.add_tag(txn.id, tag.id) is False
    assert transaction_service.require_transaction(txn.id).tag_ids == (tag.id,)
    assert transaction_service.remove_tag(txn.id, tag.id) is True
    assert transaction_service.remove_tag(txn.id, tag.id) is False


def test_list_transactions_pages_newest_first(transaction_service, make_transaction):
    for day in range(1, 6):
        make_transaction(date=datetime(2024, 3, day), description=f"ROW {day}")

    first = transaction_service.list_transactions(page=1, limit=2)
    last = transaction_service.list_transactions(page=3, limit=2)

    assert [t.description for t in first.transactions] == ["ROW 5", "ROW 4"]
    assert first.pagination.total_count == 5
    assert first.pagination.page_count == 3
    assert [t.description for t in last.transactions] == ["ROW 1"]


def test_list_transactions_filters(transaction_service, make_transaction, sample_owners):
    owner_id = sample_owners["1A"].id
    make_transaction(date=datetime(2024, 3, 1), description="RENT 1A", owner_id=owner_id)
    make_transaction(date=datetime(2024, 3, 2), description="WATER", type=TransactionType.MONEY_OUT)
    make_transaction(date=datetime(2024, 3, 3, 18, 30), description="LATE DEPOSIT")

    def descriptions(**kwargs):
        page = transaction_service.list_transactions(TransactionFilters(**kwargs))
        return [t.description for t in page.transactions]

    assert descriptions(owner_id=owner_id) == ["RENT 1A"]
    assert descriptions(no_owner=True) == ["LATE DEPOSIT", "WATER"]
    assert descriptions(type=TransactionType.MONEY_OUT) == ["WATER"]
    assert descriptions(search="rent") == ["RENT 1A"]
    assert descriptions(end_date=datetime(2024, 3, 3, 23, 59, 59)) == ["LATE DEPOSIT", "WATER", "RENT 1A"]
    assert descriptions(start_date=datetime(2024, 3, 2), end_date=datetime(2024, 3, 2, 23, 59, 59)) == ["WATER"]


def test_list_transactions_rejects_bad_limit(transaction_service):
    with pytest.raises(ValidationError):
        transaction_service.list_transactions(limit=0)


def test_mutations_require_admin(temp_db, viewer, make_transaction):
    txn = make_transaction()
    service = TransactionService(temp_db, viewer)
    with pytest.raises(AuthorizationError):
        service.update_description(txn.id, "nope")
    with pytest.raises(AuthorizationError):
        service.create_transaction(TransactionType.MONEY_IN, Decimal("1"), datetime(2024, 1, 1))
    assert service.list_transactions().pagination.total_count == 1
