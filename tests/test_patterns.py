"""Tests for owner and tag recognition patterns."""

import pytest

from condobooks.domain.entities import OwnerPattern, TransactionFilters
from condobooks.domain.errors import AuthorizationError, NotFoundError, ValidationError
from condobooks.domain.patterns import (
    PatternService,
    first_match,
    match_patterns,
    pattern_matches,
    validate_pattern,
)


def _owner_pattern(id, owner_id, pattern, is_active=True):
    return OwnerPattern(
        id=id, owner_id=owner_id, pattern=pattern, description=None, is_active=is_active, created_at=None
    )


@pytest.mark.parametrize(
    "bad",
    ["", "   ", "(unclosed", "[a-", "(a+)+", "(x*)*y", r"^(a|aa)*$", r"(foo|bar)+", "(RENT|RENTA){2,}", "a" * 501],
)
def test_validate_pattern_rejects(bad):
    with pytest.raises(ValidationError):
        validate_pattern(bad)


def test_validate_pattern_strips_whitespace():
    assert validate_pattern("  RENT  ") == "RENT"


def test_validate_pattern_allows_unrepeated_alternation():
    assert validate_pattern(r"(RENT|ALQUILER) 3B") == r"(RENT|ALQUILER) 3B"
    assert validate_pattern(r"(RENT|ALQUILER)?") == r"(RENT|ALQUILER)?"


def test_pattern_matches_searches_anywhere():
    assert pattern_matches("RENT", "TRANSF RENT APT 3B")
    assert pattern_matches(r"APT\s+3B$", "TRANSF RENT APT 3B")
    assert not pattern_matches("rent", "TRANSF RENT APT 3B")
    assert not pattern_matches("RENT", None)


def test_pattern_matches_treats_invalid_regex_as_no_match():
    assert not pattern_matches("(unclosed", "anything")


def test_first_match_skips_inactive_and_keeps_order():
    patterns = [
        _owner_pattern(1, 10, "RENT", is_active=False),
        _owner_pattern(2, 20, "APT"),
        _owner_pattern(3, 30, "RENT"),
    ]
    assert first_match(patterns, "RENT APT 3B").owner_id == 20
    assert [p.id for p in match_patterns(patterns, "RENT APT 3B")] == [2, 3]
    assert first_match(patterns, "nothing") is None


def test_invalid_pattern_is_not_stored(pattern_service, temp_db, sample_owners):
    with pytest.raises(ValidationError):
        pattern_service.create_owner_pattern(sample_owners["1A"].id, "(unclosed")
    assert temp_db.list_owner_patterns() == []


def test_create_owner_pattern_without_apply_changes_nothing(pattern_service, make_transaction, sample_owners):
    txn = make_transaction(description="TRANSF RENT APT 3B")

    result = pattern_service.create_owner_pattern(sample_owners["3B"].id, "RENT")

    assert result.pattern.pattern == "RENT"
    assert result.matched == 0
    assert pattern_service.db.get_transaction(txn.id).owner_id is None


def test_retroactive_apply_only_unassigned(pattern_service, temp_db, make_transaction, sample_owners):
    already_owned = make_transaction(description="RENT MARCH", owner_id=sample_owners["1A"].id)
    unowned = [make_transaction(description=f"RENT {n}") for n in range(5)]
    unrelated = make_transaction(description="WATER BILL")

    result = pattern_service.create_owner_pattern(
        sample_owners["3B"].id, "RENT", apply_to_existing=True, only_unassigned=True
    )

    assert result.matched == 5
    assert result.updated == 5
    assert result.failed_chunks == 0
    assert temp_db.get_transaction(already_owned.id).owner_id == sample_owners["1A"].id
    assert all(temp_db.get_transaction(t.id).owner_id == sample_owners["3B"].id for t in unowned)
    assert temp_db.get_transaction(unrelated.id).owner_id is None


def test_retroactive_apply_overwrites_when_not_only_unassigned(pattern_service, temp_db, make_transaction, sample_owners):
    owned = make_transaction(description="RENT MARCH", owner_id=sample_owners["1A"].id)

    pattern_service.create_owner_pattern(sample_owners["3B"].id, "RENT", apply_to_existing=True)

    assert temp_db.get_transaction(owned.id).owner_id == sample_owners["3B"].id


def test_retroactive_apply_continues_after_failed_chunk(pattern_service, temp_db, make_transaction, sample_owners, monkeypatch):
    rows = [make_transaction(description=f"RENT {n}") for n in range(6)]
    original = temp_db.assign_owner_to_transactions
    calls = {"n": 0}

    def flaky(ids, owner_id):
        calls["n"] += 1
        if calls["n"] == 2:
            raise RuntimeError("database is locked")
        return original(ids, owner_id)

    monkeypatch.setattr(temp_db, "assign_owner_to_transactions", flaky)
    result = pattern_service.create_owner_pattern(sample_owners["3B"].id, "RENT", apply_to_existing=True)

    # chunk size is 2: the second chunk fails, the others are committed
    assert result.matched == 6
    assert result.updated == 4
    assert result.failed_chunks == 1
    owners = [temp_db.get_transaction(t.id).owner_id for t in rows]
    assert owners.count(sample_owners["3B"].id) == 4


def test_retroactive_tag_apply_only_untagged(pattern_service, tag_service, temp_db, make_transaction):
    lpg = tag_service.create_tag("LPG")
    other = tag_service.create_tag("Other")
    tagged = make_transaction(description="PAGO GAS 1A", tag_ids=[other.id])
    untagged = make_transaction(description="PAGO GAS 2B")

    result = pattern_service.create_tag_pattern(lpg.id, "GAS", apply_to_existing=True, only_unassigned=True)

    assert result.updated == 1
    assert temp_db.get_transaction(tagged.id).tag_ids == (other.id,)
    assert temp_db.get_transaction(untagged.id).tag_ids == (lpg.id,)


def test_toggle_and_delete_owner_pattern(pattern_service, temp_db, sample_owners):
    created = pattern_service.create_owner_pattern(sample_owners["1A"].id, "GARCIA").pattern

    toggled = pattern_service.toggle_owner_pattern(created.id)
    assert toggled.is_active is False
    assert temp_db.list_owner_patterns(active_only=True) == []

    pattern_service.delete_owner_pattern(created.id)
    with pytest.raises(NotFoundError):
        pattern_service.get_owner_pattern(created.id)


def test_auto_assign_owner_and_tags(pattern_service, tag_service, temp_db, make_transaction, sample_owners):
    lpg = tag_service.create_tag("LPG")
    pattern_service.create_owner_pattern(sample_owners["1A"].id, "GARCIA")
    pattern_service.create_tag_pattern(lpg.id, "LPG")
    txn = make_transaction(description="DEP LPG GARCIA 1A")

    assert pattern_service.auto_assign_owner(txn.id) == sample_owners["1A"].id
    assert pattern_service.auto_assign_tags(txn.id) == [lpg.id]

    stored = temp_db.get_transaction(txn.id)
    assert stored.owner_id == sample_owners["1A"].id
    assert stored.tag_ids == (lpg.id,)


def test_auto_assign_owner_without_match_leaves_row(pattern_service, temp_db, make_transaction, sample_owners):
    txn = make_transaction(description="COMISION", owner_id=sample_owners["2B"].id)
    assert pattern_service.auto_assign_owner(txn.id) is None
    assert temp_db.get_transaction(txn.id).owner_id == sample_owners["2B"].id


def test_auto_assign_requires_text(pattern_service, make_transaction):
    txn = make_transaction(description=None)
    with pytest.raises(ValidationError):
        pattern_service.auto_assign_owner(txn.id)


def test_pattern_changes_require_admin(temp_db, viewer, sample_owners):
    service = PatternService(temp_db, viewer)
    with pytest.raises(AuthorizationError):
        service.create_owner_pattern(sample_owners["1A"].id, "GARCIA")
    assert temp_db.list_transactions(TransactionFilters())[1] == 0
