"""Tests for statement import and reconciliation."""

from datetime import datetime
from decimal import Decimal

import pytest

from condobooks.domain.batch_import import BatchImportService, classify_candidates
from condobooks.domain.entities import TransactionFilters, TransactionType
from condobooks.domain.errors import AuthorizationError, NotFoundError, ParseErrorKind
from condobooks.domain.statement_parser import ParsedTransaction


def _candidate(amount="100", serial="0001", description="ABONO", type=TransactionType.MONEY_IN):
    return ParsedTransaction(
        type=type,
        amount=Decimal(amount),
        date=datetime(2024, 3, 1),
        description=description,
        bank_description=description,
        reference=None,
        serial=serial,
    )


def test_import_stores_batch_and_transactions(import_service, temp_db, statement_bytes):
    result = import_service.import_batch(statement_bytes, "marzo.csv")

    assert result.success
    assert result.total_count == 5
    assert result.new_count == 5
    assert result.duplicate_count == 0

    batch = import_service.get_batch(result.batch_id)
    assert batch.original_filename == "marzo.csv"
    assert batch.filename.endswith("-marzo.csv")
    assert batch.account_number == "000000000000844987537"
    assert batch.total_transactions == 5

    rows = import_service.batch_transactions(result.batch_id)
    assert len(rows) == 5
    assert all(r.description == r.bank_description for r in rows)
    assert all(r.owner_id is None and r.category is None for r in rows)


def test_reimport_marks_every_row_duplicate(import_service, temp_db, statement_bytes):
    first = import_service.import_batch(statement_bytes, "marzo.csv")
    second = import_service.import_batch(statement_bytes, "marzo.csv")

    assert second.success
    assert second.new_count == 0
    assert second.duplicate_count == first.total_count

    visible, total = temp_db.list_transactions(TransactionFilters())
    assert total == 5
    assert {t.batch_id for t in visible} == {first.batch_id}


def test_reimport_copies_staff_edits(import_service, transaction_service, sample_owners, statement_bytes):
    first = import_service.import_batch(statement_bytes, "marzo.csv")
    original = import_service.batch_transactions(first.batch_id)[0]
    transaction_service.update_description(original.id, "Cuota marzo 1A")
    transaction_service.set_owner(original.id, sample_owners["1A"].id)
    transaction_service.set_category(original.id, "fees")

    second = import_service.import_batch(statement_bytes, "marzo.csv")
    duplicate = import_service.batch_transactions(second.batch_id)[0]

    assert duplicate.is_duplicate
    assert duplicate.description == "Cuota marzo 1A"
    assert duplicate.owner_id == sample_owners["1A"].id
    assert duplicate.category == "fees"
    assert duplicate.bank_description == "Desde INTERNET 120117775"


def test_import_attributes_owner_by_pattern(import_service, pattern_service, sample_owners, statement_bytes):
    pattern_service.create_owner_pattern(sample_owners["3B"].id, "RENT")

    result = import_service.import_batch(statement_bytes, "marzo.csv")
    rows = import_service.batch_transactions(result.batch_id)
    owned = [r for r in rows if r.owner_id is not None]

    assert len(owned) == 1
    assert owned[0].owner_id == sample_owners["3B"].id
    assert "RENT" in owned[0].bank_description


def test_import_without_pattern_matching(import_service, pattern_service, sample_owners, statement_bytes):
    pattern_service.create_owner_pattern(sample_owners["3B"].id, "RENT")

    result = import_service.import_batch(statement_bytes, "marzo.csv", use_pattern_matching=False)
    rows = import_service.batch_transactions(result.batch_id)
    assert all(r.owner_id is None for r in rows)


def test_import_parse_error_writes_nothing(import_service, temp_db):
    result = import_service.import_batch(b"nothing to see", "bad.csv")

    assert not result.success
    assert result.error_kind is ParseErrorKind.FORMAT
    assert result.batch_id is None
    assert temp_db.list_batches() == []


def test_import_is_atomic(import_service, temp_db, statement_bytes, monkeypatch):
    original = temp_db._new_transaction_row
    calls = {"n": 0}

    def failing(transaction):
        calls["n"] += 1
        if calls["n"] == 3:
            raise RuntimeError("disk full")
        return original(transaction)

    monkeypatch.setattr(temp_db, "_new_transaction_row", failing)
    result = import_service.import_batch(statement_bytes, "marzo.csv")

    assert not result.success
    assert "disk full" in result.error
    assert temp_db.list_batches() == []
    assert temp_db.list_transactions(TransactionFilters()) == ([], 0)


def test_import_requires_admin(temp_db, viewer, statement_bytes):
    service = BatchImportService(temp_db, viewer)
    with pytest.raises(AuthorizationError):
        service.import_batch(statement_bytes, "marzo.csv")
    assert temp_db.list_batches() == []


def test_delete_batch_removes_its_transactions(import_service, temp_db, statement_bytes):
    result = import_service.import_batch(statement_bytes, "marzo.csv")

    deleted = import_service.delete_batch(result.batch_id)

    assert deleted == 5
    assert temp_db.list_batches() == []
    assert temp_db.list_transactions(TransactionFilters())[1] == 0
    with pytest.raises(NotFoundError):
        import_service.get_batch(result.batch_id)


def test_batches_are_consistent_after_import(import_service, statement_bytes):
    import_service.import_batch(statement_bytes, "marzo.csv")
    import_service.import_batch(statement_bytes, "marzo.csv")
    assert import_service.find_inconsistent_batches() == []


def test_classify_rows_within_same_batch():
    rows = classify_candidates(
        [_candidate(serial="0001"), _candidate(serial="0001"), _candidate(serial="0002")],
        lambda c: None,
    )
    assert [r.is_duplicate for r in rows] == [False, True, False]


def test_classify_key_includes_type():
    rows = classify_candidates(
        [_candidate(), _candidate(type=TransactionType.MONEY_OUT)],
        lambda c: None,
    )
    assert [r.is_duplicate for r in rows] == [False, False]
