"""Transaction domain service."""

from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from condobooks.database.base import Database
from condobooks.domain.access import require_admin
from condobooks.domain.amounts import to_decimal
from condobooks.domain.audit import AuditService
from condobooks.domain.entities import (
    Actor,
    AuditEntityType,
    NewTransaction,
    Page,
    Transaction,
    TransactionFilters,
    TransactionPage,
    TransactionType,
)
from condobooks.domain.errors import (
    NotFoundError,
    ValidationError,
    owner_not_found,
    tag_not_found,
    transaction_not_found,
)

DEFAULT_PAGE_SIZE = 50


class TransactionService:
    """Service for managing ledger transactions."""

    def __init__(self, db: Database, actor: Optional[Actor] = None, audit: Optional[AuditService] = None):
        """Initialize transaction service.

        Args:
            db: Database instance
            actor: Acting identity for mutating operations
            audit: Audit service (defaults to one bound to ``actor``)
        """
        self.db = db
        self.actor = actor
        self.audit = audit or AuditService(db, actor)

    def create_transaction(
        self,
        type: TransactionType,
        amount: Decimal,
        date: datetime,
        description: Optional[str] = None,
        owner_id: Optional[int] = None,
        reference: Optional[str] = None,
        category: Optional[str] = None,
        tag_ids: Iterable[int] = (),
    ) -> Transaction:
        """Record a transaction by hand.

        Args:
            type: Money in or money out
            amount: Non-negative amount
            date: Transaction date
            description: Optional description
            owner_id: Optional owner
            reference: Optional bank reference
            category: Optional free-text category
            tag_ids: Tags to attach

        Returns:
            The created transaction

        Raises:
            AuthorizationError: If the actor is not an admin
            ValidationError: If amount is not a finite number or is negative
            NotFoundError: If the owner or a tag doesn't exist
        """
        require_admin(self.actor, "create transactions")
        amount = to_decimal(amount, "Amount")
        if amount < 0:
            raise ValidationError("Amount cannot be negative")
        if owner_id is not None and self.db.get_owner(owner_id) is None:
            raise NotFoundError(owner_not_found(owner_id))
        tag_ids = tuple(dict.fromkeys(tag_ids))
        for tag_id in tag_ids:
            if self.db.get_tag(tag_id) is None:
                raise NotFoundError(tag_not_found(tag_id))

        transaction_id = self.db.create_transaction(
            NewTransaction(
                type=TransactionType(type),
                amount=amount,
                date=date,
                description=description,
                owner_id=owner_id,
                reference=reference,
                category=category,
                tag_ids=tag_ids,
            )
        )
        transaction = self.require_transaction(transaction_id)
        self.audit.log_create(AuditEntityType.TRANSACTION, transaction_id, transaction)
        return transaction

    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        """Get transaction by ID.

        Returns:
            Transaction entity or None if not found
        """
        return self.db.get_transaction(transaction_id)

    def require_transaction(self, transaction_id: int) -> Transaction:
        """Get transaction by ID or raise NotFoundError."""
        transaction = self.db.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        return transaction

    def _update(self, transaction_id: int, action: str, **fields) -> Transaction:
        require_admin(self.actor, action)
        old = self.require_transaction(transaction_id)
        self.db.update_transaction(transaction_id, **fields)
        new = self.require_transaction(transaction_id)
        self.audit.log_update(
            AuditEntityType.TRANSACTION,
            transaction_id,
            {name: getattr(old, name) for name in fields},
            {name: getattr(new, name) for name in fields},
        )
        return new

    def update_description(self, transaction_id: int, description: Optional[str]) -> Transaction:
        """Change the staff-facing description. The bank description never changes."""
        return self._update(transaction_id, "update transactions", description=description or None)

    def set_owner(self, transaction_id: int, owner_id: Optional[int]) -> Transaction:
        """Attribute a transaction to an owner, or clear it with None.

        Raises:
            NotFoundError: If the transaction or owner doesn't exist
        """
        if owner_id is not None and self.db.get_owner(owner_id) is None:
            require_admin(self.actor, "update transactions")
            raise NotFoundError(owner_not_found(owner_id))
        return self._update(transaction_id, "update transactions", owner_id=owner_id)

    def set_category(self, transaction_id: int, category: Optional[str]) -> Transaction:
        return self._update(transaction_id, "update transactions", category=category or None)

    def add_tag(self, transaction_id: int, tag_id: int) -> bool:
        """Attach a tag.

        Returns:
            True if the tag was added, False if it was already present

        Raises:
            AuthorizationError: If the actor is not an admin
            NotFoundError: If the transaction or tag doesn't exist
        """
        require_admin(self.actor, "tag transactions")
        transaction = self.require_transaction(transaction_id)
        if self.db.get_tag(tag_id) is None:
            raise NotFoundError(tag_not_found(tag_id))
        if tag_id in transaction.tag_ids:
            return False
        self.db.add_tag_to_transactions([transaction_id], tag_id)
        self.audit.log_create(
            AuditEntityType.TRANSACTION_TAG,
            transaction_id,
            {"transaction_id": transaction_id, "tag_id": tag_id},
        )
        return True

    def remove_tag(self, transaction_id: int, tag_id: int) -> bool:
        """Detach a tag.

        Returns:
            True if a tag was removed
        """
        require_admin(self.actor, "tag transactions")
        self.require_transaction(transaction_id)
        removed = self.db.remove_transaction_tag(transaction_id, tag_id)
        if removed:
            self.audit.log_delete(
                AuditEntityType.TRANSACTION_TAG,
                transaction_id,
                {"transaction_id": transaction_id, "tag_id": tag_id},
            )
        return removed

    def list_transactions(
        self,
        filters: Optional[TransactionFilters] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        tag_id: Optional[int] = None,
    ) -> TransactionPage:
        """List non-duplicate transactions, newest first.

        Args:
            filters: Optional filters
            page: 1-based page number
            limit: Page size
            tag_id: Keep transactions tagged with this tag or one of its
                direct children (overrides ``filters.tag_ids``)

        Returns:
            TransactionPage with the rows and pagination metadata
        """
        if limit <= 0:
            raise ValidationError("Page size must be positive")
        filters = filters or TransactionFilters()
        if tag_id is not None:
            if self.db.get_tag(tag_id) is None:
                raise NotFoundError(tag_not_found(tag_id))
            filters = replace(filters, tag_ids=(tag_id, *self.db.list_child_tag_ids(tag_id)))

        page = max(page, 1)
        rows, total = self.db.list_transactions(filters, limit=limit, offset=(page - 1) * limit)
        return TransactionPage(transactions=tuple(rows), pagination=Page.build(total, page, limit))
