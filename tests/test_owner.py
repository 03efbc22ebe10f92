"""Tests for owner management."""

import pytest

from condobooks.domain.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from condobooks.domain.owner import OwnerService


def test_create_owner(owner_service):
    owner = owner_service.create_owner(name=" Ana Perez ", apartment_id=" 3B ", email="ana@example.com")

    assert owner.name == "Ana Perez"
    assert owner.apartment_id == "3B"
    assert owner.email == "ana@example.com"
    assert owner.is_active
    assert owner_service.get_owner_by_apartment("3B").id == owner.id


def test_duplicate_apartment(owner_service):
    owner_service.create_owner(name="Ana", apartment_id="3B")
    with pytest.raises(ConflictError):
        owner_service.create_owner(name="Someone else", apartment_id="3B")


@pytest.mark.parametrize("name, apartment", [("", "1A"), ("Ana", "  "), (None, "1A")])
def test_blank_fields_are_rejected(owner_service, name, apartment):
    with pytest.raises(ValidationError):
        owner_service.create_owner(name=name, apartment_id=apartment)


def test_update_owner(owner_service, sample_owners):
    owner = sample_owners["1A"]

    updated = owner_service.update_owner(owner.id, name="Luis G.", email="luis@example.com")

    assert updated.name == "Luis G."
    assert updated.email == "luis@example.com"
    assert owner_service.update_owner(owner.id, email="").email is None
    with pytest.raises(ConflictError):
        owner_service.update_owner(owner.id, apartment_id="2B")


def test_deactivate_hides_owner_from_default_list(owner_service, sample_owners):
    owner_service.set_active(sample_owners["2B"].id, False)

    assert [o.apartment_id for o in owner_service.list_owners()] == ["1A", "3B"]
    assert [o.apartment_id for o in owner_service.list_owners(include_inactive=True)] == ["1A", "2B", "3B"]


def test_delete_owner_unassigns_transactions(owner_service, sample_owners, make_transaction, temp_db):
    owner = sample_owners["3B"]
    txn = make_transaction(owner_id=owner.id)

    owner_service.delete_owner(owner.id)

    assert owner_service.get_owner(owner.id) is None
    assert temp_db.get_transaction(txn.id).owner_id is None


def test_require_missing_owner(owner_service):
    with pytest.raises(NotFoundError):
        owner_service.require_owner(999)


def test_owner_mutations_require_admin(temp_db, viewer, sample_owners):
    service = OwnerService(temp_db, viewer)
    with pytest.raises(AuthorizationError):
        service.create_owner(name="Eve", apartment_id="9Z")
    with pytest.raises(AuthorizationError):
        service.delete_owner(sample_owners["1A"].id)
    assert service.list_owners()
