"""Abstract database interface."""

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence
from datetime import datetime
from decimal import Decimal

# Import entities directly to avoid circular import through domain/__init__.py
from condobooks.domain.entities import (
    Allocation,
    Attachment,
    AttachmentKind,
    AuditLogEntry,
    AuditLogFilters,
    LpgRefill,
    LpgRefillEntry,
    NewTransaction,
    Owner,
    OwnerPattern,
    Tag,
    TagPattern,
    Transaction,
    TransactionBatch,
    TransactionFilters,
    TransactionType,
)


class Database(ABC):
    """Abstract database interface for condobooks."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Owner operations
    @abstractmethod
    def create_owner(
        self,
        name: str,
        apartment_id: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        is_active: bool = True,
    ) -> int:
        """Create an owner. Returns owner ID."""
        pass

    @abstractmethod
    def get_owner(self, owner_id: int) -> Optional[Owner]:
        """Get owner by ID."""
        pass

    @abstractmethod
    def get_owner_by_apartment(self, apartment_id: str) -> Optional[Owner]:
        """Get owner by apartment identifier."""
        pass

    @abstractmethod
    def list_owners(self, active_only: bool = False) -> list[Owner]:
        """List owners ordered by apartment identifier."""
        pass

    @abstractmethod
    def update_owner(self, owner_id: int, **fields: Any) -> None:
        """Update owner columns (name, apartment_id, email, phone, is_active)."""
        pass

    @abstractmethod
    def delete_owner(self, owner_id: int) -> None:
        """Delete an owner, its patterns and its refill entries."""
        pass

    # Owner pattern operations
    @abstractmethod
    def create_owner_pattern(self, owner_id: int, pattern: str, description: Optional[str] = None) -> int:
        """Create an active owner pattern. Returns pattern ID."""
        pass

    @abstractmethod
    def get_owner_pattern(self, pattern_id: int) -> Optional[OwnerPattern]:
        """Get owner pattern by ID."""
        pass

    @abstractmethod
    def list_owner_patterns(
        self, owner_id: Optional[int] = None, active_only: bool = False
    ) -> list[OwnerPattern]:
        """List owner patterns in creation order."""
        pass

    @abstractmethod
    def set_owner_pattern_active(self, pattern_id: int, is_active: bool) -> None:
        """Activate or deactivate an owner pattern."""
        pass

    @abstractmethod
    def delete_owner_pattern(self, pattern_id: int) -> None:
        """Delete an owner pattern."""
        pass

    # Tag operations
    @abstractmethod
    def create_tag(
        self,
        name: str,
        description: Optional[str] = None,
        color: Optional[str] = None,
        parent_id: Optional[int] = None,
    ) -> int:
        """Create a tag. Returns tag ID."""
        pass

    @abstractmethod
    def get_tag(self, tag_id: int) -> Optional[Tag]:
        """Get tag by ID."""
        pass

    @abstractmethod
    def get_tag_by_name(self, name: str) -> Optional[Tag]:
        """Get tag by name."""
        pass

    @abstractmethod
    def list_tags(self) -> list[Tag]:
        """List all tags ordered by name."""
        pass

    @abstractmethod
    def list_child_tag_ids(self, tag_id: int) -> list[int]:
        """List IDs of the direct children of a tag."""
        pass

    @abstractmethod
    def update_tag(self, tag_id: int, **fields: Any) -> None:
        """Update tag columns (name, description, color, parent_id)."""
        pass

    @abstractmethod
    def delete_tag(self, tag_id: int) -> None:
        """Delete a tag; children become roots, patterns and links are removed."""
        pass

    # Tag pattern operations
    @abstractmethod
    def create_tag_pattern(self, tag_id: int, pattern: str, description: Optional[str] = None) -> int:
        """Create an active tag pattern. Returns pattern ID."""
        pass

    @abstractmethod
    def get_tag_pattern(self, pattern_id: int) -> Optional[TagPattern]:
        """Get tag pattern by ID."""
        pass

    @abstractmethod
    def list_tag_patterns(self, tag_id: Optional[int] = None, active_only: bool = False) -> list[TagPattern]:
        """List tag patterns in creation order."""
        pass

    @abstractmethod
    def set_tag_pattern_active(self, pattern_id: int, is_active: bool) -> None:
        """Activate or deactivate a tag pattern."""
        pass

    @abstractmethod
    def delete_tag_pattern(self, pattern_id: int) -> None:
        """Delete a tag pattern."""
        pass

    # Transaction operations
    @abstractmethod
    def create_transaction(self, transaction: NewTransaction, batch_id: Optional[int] = None) -> int:
        """Create a transaction with its tag links. Returns transaction ID."""
        pass

    @abstractmethod
    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        """Get transaction by ID."""
        pass

    @abstractmethod
    def find_matching_transaction(
        self,
        date: datetime,
        amount: Decimal,
        type: TransactionType,
        serial: Optional[str] = None,
    ) -> Optional[Transaction]:
        """Find a stored transaction with the same duplicate key.

        Non-duplicate rows are preferred over rows already flagged duplicate,
        then the oldest row wins. The serial only takes part when given.
        """
        pass

    @abstractmethod
    def update_transaction(self, transaction_id: int, **fields: Any) -> None:
        """Update editable transaction columns (description, owner_id, category)."""
        pass

    @abstractmethod
    def list_transactions(
        self, filters: TransactionFilters, limit: Optional[int] = None, offset: int = 0
    ) -> tuple[list[Transaction], int]:
        """List non-duplicate transactions newest first.

        Returns the requested page and the total number of matching rows.
        """
        pass

    @abstractmethod
    def list_transaction_chunk(
        self,
        after_id: int,
        limit: int,
        only_unowned: bool = False,
        only_untagged: bool = False,
    ) -> list[Transaction]:
        """List up to ``limit`` non-duplicate transactions with ``id > after_id`` by ascending ID."""
        pass

    @abstractmethod
    def assign_owner_to_transactions(self, transaction_ids: Sequence[int], owner_id: Optional[int]) -> int:
        """Set the owner of several transactions in one commit. Returns rows updated."""
        pass

    @abstractmethod
    def add_tag_to_transactions(self, transaction_ids: Sequence[int], tag_id: int) -> int:
        """Link a tag to several transactions in one commit. Returns links created."""
        pass

    @abstractmethod
    def remove_transaction_tag(self, transaction_id: int, tag_id: int) -> bool:
        """Remove a tag link. Returns True if a link was removed."""
        pass

    # Batch operations
    @abstractmethod
    def create_batch_with_transactions(
        self,
        filename: str,
        original_filename: str,
        processed_at: datetime,
        transactions: Sequence[NewTransaction],
        account_number: Optional[str] = None,
    ) -> int:
        """Insert a batch header with final counts and all its rows atomically.

        Returns batch ID. Nothing is written if any row fails.
        """
        pass

    @abstractmethod
    def get_batch(self, batch_id: int) -> Optional[TransactionBatch]:
        """Get batch by ID."""
        pass

    @abstractmethod
    def list_batches(self) -> list[TransactionBatch]:
        """List batches newest first."""
        pass

    @abstractmethod
    def list_batch_transactions(self, batch_id: int) -> list[Transaction]:
        """List every row of a batch, duplicates included."""
        pass

    @abstractmethod
    def count_batch_transactions(self) -> dict[int, int]:
        """Return stored row count per batch ID."""
        pass

    @abstractmethod
    def delete_batch(self, batch_id: int) -> int:
        """Delete a batch and its transactions atomically. Returns rows deleted."""
        pass

    # LPG operations
    @abstractmethod
    def create_refill_with_entries(
        self,
        bill_amount: Decimal,
        gallons_refilled: Decimal,
        refill_date: datetime,
        efficiency_percentage: Decimal,
        allocations: Sequence[Allocation],
        tag_id: Optional[int] = None,
    ) -> int:
        """Insert a refill and all its entries atomically. Returns refill ID."""
        pass

    @abstractmethod
    def get_refill(self, refill_id: int) -> Optional[LpgRefill]:
        """Get refill by ID, entries included."""
        pass

    @abstractmethod
    def list_refills(self) -> list[LpgRefill]:
        """List refills newest refill date first."""
        pass

    @abstractmethod
    def list_refill_entries_for_owner(self, owner_id: int) -> list[LpgRefillEntry]:
        """List an owner's refill entries, newest refill first."""
        pass

    @abstractmethod
    def delete_refill(self, refill_id: int) -> None:
        """Delete a refill and its entries."""
        pass

    # Key-value operations
    @abstractmethod
    def get_kv(self, key: str) -> Optional[str]:
        """Get a stored value, or None."""
        pass

    @abstractmethod
    def set_kv(self, values: dict[str, str]) -> None:
        """Upsert one or more key/value pairs in one commit."""
        pass

    @abstractmethod
    def delete_kv(self, *keys: str) -> None:
        """Delete keys; missing keys are ignored."""
        pass

    # Audit log operations
    @abstractmethod
    def create_audit_log(
        self,
        event_type: str,
        entity_type: str,
        entity_id: Optional[str] = None,
        user_id: Optional[str] = None,
        user_email: Optional[str] = None,
        details: Optional[str] = None,
        is_system_event: bool = False,
    ) -> int:
        """Append an audit record. Returns record ID."""
        pass

    @abstractmethod
    def list_audit_logs(
        self, filters: AuditLogFilters, limit: Optional[int] = None, offset: int = 0
    ) -> tuple[list[AuditLogEntry], int]:
        """List audit records newest first with the total count."""
        pass

    # Attachment operations
    @abstractmethod
    def create_attachment(
        self,
        kind: AttachmentKind,
        entity_id: int,
        filename: str,
        storage_key: str,
        size: int,
        mime_type: str,
    ) -> int:
        """Record attachment metadata. Returns attachment ID."""
        pass

    @abstractmethod
    def get_attachment(self, attachment_id: int) -> Optional[Attachment]:
        """Get attachment by ID."""
        pass

    @abstractmethod
    def list_attachments(self, kind: AttachmentKind, entity_id: int) -> list[Attachment]:
        """List attachments of one entity."""
        pass

    @abstractmethod
    def delete_attachment(self, attachment_id: int) -> None:
        """Delete attachment metadata."""
        pass
