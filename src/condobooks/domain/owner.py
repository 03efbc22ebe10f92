"""Owner domain service."""

from typing import Optional

from condobooks.database.base import Database
from condobooks.domain.access import require_admin
from condobooks.domain.audit import AuditService
from condobooks.domain.entities import Actor, AuditEntityType, Owner
from condobooks.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    duplicate_apartment,
    owner_not_found,
)


class OwnerService:
    """Service for managing apartment owners."""

    def __init__(self, db: Database, actor: Optional[Actor] = None, audit: Optional[AuditService] = None):
        """Initialize owner service.

        Args:
            db: Database instance
            actor: Acting identity for mutating operations
            audit: Audit service (defaults to one bound to ``actor``)
        """
        self.db = db
        self.actor = actor
        self.audit = audit or AuditService(db, actor)

    def create_owner(
        self,
        name: str,
        apartment_id: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Owner:
        """Create an owner.

        Args:
            name: Owner name
            apartment_id: Unique apartment identifier (e.g. "3B")
            email: Optional contact email
            phone: Optional contact phone

        Returns:
            The created owner

        Raises:
            AuthorizationError: If the actor is not an admin
            ValidationError: If name or apartment is blank
            ConflictError: If the apartment already has an owner
        """
        require_admin(self.actor, "create owners")
        name, apartment_id = _required(name, "Name"), _required(apartment_id, "Apartment")
        if self.db.get_owner_by_apartment(apartment_id) is not None:
            raise ConflictError(duplicate_apartment(apartment_id))

        owner_id = self.db.create_owner(name=name, apartment_id=apartment_id, email=email, phone=phone)
        owner = self.require_owner(owner_id)
        self.audit.log_create(AuditEntityType.OWNER, owner_id, owner)
        return owner

    def get_owner(self, owner_id: int) -> Optional[Owner]:
        """Get owner by ID.

        Returns:
            Owner entity or None if not found
        """
        return self.db.get_owner(owner_id)

    def require_owner(self, owner_id: int) -> Owner:
        """Get owner by ID or raise NotFoundError."""
        owner = self.db.get_owner(owner_id)
        if owner is None:
            raise NotFoundError(owner_not_found(owner_id))
        return owner

    def get_owner_by_apartment(self, apartment_id: str) -> Optional[Owner]:
        return self.db.get_owner_by_apartment(apartment_id)

    def list_owners(self, include_inactive: bool = False) -> list[Owner]:
        """List owners ordered by apartment.

        Args:
            include_inactive: Also list deactivated owners
        """
        return self.db.list_owners(active_only=not include_inactive)

    def update_owner(
        self,
        owner_id: int,
        name: Optional[str] = None,
        apartment_id: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Owner:
        """Update owner details. Arguments left as None are not changed.

        Raises:
            AuthorizationError: If the actor is not an admin
            NotFoundError: If owner doesn't exist
            ConflictError: If the new apartment belongs to another owner
        """
        require_admin(self.actor, "update owners")
        old = self.require_owner(owner_id)

        fields = {}
        if name is not None:
            fields["name"] = _required(name, "Name")
        if apartment_id is not None:
            apartment_id = _required(apartment_id, "Apartment")
            other = self.db.get_owner_by_apartment(apartment_id)
            if other is not None and other.id != owner_id:
                raise ConflictError(duplicate_apartment(apartment_id))
            fields["apartment_id"] = apartment_id
        if email is not None:
            fields["email"] = email or None
        if phone is not None:
            fields["phone"] = phone or None
        if not fields:
            return old

        self.db.update_owner(owner_id, **fields)
        new = self.require_owner(owner_id)
        self.audit.log_update(AuditEntityType.OWNER, owner_id, old, new)
        return new

    def set_active(self, owner_id: int, is_active: bool) -> Owner:
        """Activate or deactivate an owner.

        Raises:
            AuthorizationError: If the actor is not an admin
            NotFoundError: If owner doesn't exist
        """
        require_admin(self.actor, "update owners")
        old = self.require_owner(owner_id)
        if old.is_active == is_active:
            return old
        self.db.update_owner(owner_id, is_active=is_active)
        new = self.require_owner(owner_id)
        self.audit.log_update(AuditEntityType.OWNER, owner_id, old, new)
        return new

    def delete_owner(self, owner_id: int) -> None:
        """Delete an owner with their patterns and refill entries.

        Their transactions are kept and become unassigned.

        Raises:
            AuthorizationError: If the actor is not an admin
            NotFoundError: If owner doesn't exist
        """
        require_admin(self.actor, "delete owners")
        owner = self.require_owner(owner_id)
        self.db.delete_owner(owner_id)
        self.audit.log_delete(AuditEntityType.OWNER, owner_id, owner)


def _required(value: str, label: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{label} is required")
    return value
