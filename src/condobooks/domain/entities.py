"""Domain model entities for condobooks.

These are pure data classes representing business concepts, independent of
database schema. Services and the CLI only ever see these, never ORM rows.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class TransactionType(str, Enum):
    """Direction of money relative to the building's bank account.

    The stored values follow the bank's own markers: a "Crédito" line is money
    credited to the account, a "Débito" line is money taken out of it.
    """

    MONEY_IN = "credit"
    MONEY_OUT = "debit"

    @property
    def sign(self) -> int:
        return 1 if self is TransactionType.MONEY_IN else -1


class PaymentStatus(str, Enum):
    """Settlement state of an owner's share."""

    PAID = "paid"
    PENDING = "pending"


class AuditEventType(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    SIGN_IN = "SIGN_IN"
    SIGN_OUT = "SIGN_OUT"
    BULK_IMPORT = "BULK_IMPORT"
    BULK_DELETE = "BULK_DELETE"


class AuditEntityType(str, Enum):
    OWNER = "OWNER"
    TRANSACTION = "TRANSACTION"
    TAG = "TAG"
    ATTACHMENT = "ATTACHMENT"
    BATCH = "BATCH"
    PATTERN = "PATTERN"
    TRANSACTION_TAG = "TRANSACTION_TAG"
    LPG_REFILL = "LPG_REFILL"
    BALANCE = "BALANCE"
    SYSTEM = "SYSTEM"


class AttachmentKind(str, Enum):
    """Which kind of entity an attachment supports."""

    TRANSACTION = "transaction"
    REFILL = "refill"
    REFILL_ENTRY = "refill_entry"


@dataclass(frozen=True)
class Actor:
    """Identity performing an operation, as supplied by the caller."""

    user_id: str
    email: Optional[str] = None
    is_admin: bool = False


@dataclass(frozen=True)
class Owner:
    """Apartment owner domain entity."""

    id: int
    name: str
    apartment_id: str
    email: Optional[str]
    phone: Optional[str]
    is_active: bool
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Tag:
    """Transaction tag with an optional single parent."""

    id: int
    name: str
    description: Optional[str]
    color: Optional[str]
    parent_id: Optional[int]
    created_at: datetime


@dataclass(frozen=True)
class OwnerPattern:
    """Regular expression that attributes transactions to an owner."""

    id: int
    owner_id: int
    pattern: str
    description: Optional[str]
    is_active: bool
    created_at: datetime


@dataclass(frozen=True)
class TagPattern:
    """Regular expression that tags matching transactions."""

    id: int
    tag_id: int
    pattern: str
    description: Optional[str]
    is_active: bool
    created_at: datetime


@dataclass(frozen=True)
class Transaction:
    """Ledger entry domain entity."""

    id: int
    type: TransactionType
    amount: Decimal
    date: datetime
    description: Optional[str]
    bank_description: Optional[str]
    owner_id: Optional[int]
    reference: Optional[str]
    serial: Optional[str]
    category: Optional[str]
    batch_id: Optional[int]
    is_duplicate: bool
    created_at: datetime
    updated_at: datetime
    tag_ids: tuple[int, ...] = ()

    @property
    def match_text(self) -> str:
        """Text that recognition patterns are evaluated against."""
        return self.description or self.bank_description or ""

    @property
    def signed_amount(self) -> Decimal:
        return self.amount * self.type.sign


@dataclass(frozen=True)
class TransactionBatch:
    """One statement import run."""

    id: int
    filename: str
    original_filename: str
    account_number: Optional[str]
    processed_at: datetime
    total_transactions: int
    new_transactions: int
    duplicated_transactions: int

    @property
    def counts_consistent(self) -> bool:
        return self.new_transactions + self.duplicated_transactions == self.total_transactions


@dataclass(frozen=True)
class LpgRefillEntry:
    """One owner's share of one refill."""

    id: int
    refill_id: int
    owner_id: int
    previous_reading: Decimal
    current_reading: Decimal
    consumption: Decimal
    percentage: Decimal
    subtotal: Decimal
    total_amount: Decimal


@dataclass(frozen=True)
class LpgRefill:
    """Billing event for the shared LPG tank."""

    id: int
    bill_amount: Decimal
    gallons_refilled: Decimal
    refill_date: datetime
    efficiency_percentage: Decimal
    tag_id: Optional[int]
    created_at: datetime
    entries: tuple[LpgRefillEntry, ...] = ()


@dataclass(frozen=True)
class Attachment:
    """Supporting document stored in the blob store."""

    id: int
    kind: AttachmentKind
    entity_id: int
    filename: str
    storage_key: str
    size: int
    mime_type: str
    created_at: datetime


@dataclass(frozen=True)
class AuditLogEntry:
    """Append-only record of an administrative action."""

    id: int
    event_type: AuditEventType
    entity_type: AuditEntityType
    entity_id: Optional[str]
    user_id: Optional[str]
    user_email: Optional[str]
    details: dict[str, Any]
    is_system_event: bool
    created_at: datetime


@dataclass(frozen=True)
class Page:
    """Pagination metadata for list queries."""

    total_count: int
    page_count: int
    current_page: int
    limit: int

    @classmethod
    def build(cls, total_count: int, page: int, limit: int) -> "Page":
        page_count = max(1, -(-total_count // limit)) if limit > 0 else 1
        return cls(total_count=total_count, page_count=page_count, current_page=page, limit=limit)


@dataclass(frozen=True)
class TransactionPage:
    transactions: tuple[Transaction, ...]
    pagination: Page


@dataclass(frozen=True)
class TransactionFilters:
    """Filters for transaction list queries. Duplicates are always excluded."""

    owner_id: Optional[int] = None
    no_owner: bool = False
    type: Optional[TransactionType] = None
    tag_ids: Optional[tuple[int, ...]] = None
    no_tags: bool = False
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    search: Optional[str] = None


@dataclass(frozen=True)
class AuditLogFilters:
    event_type: Optional[AuditEventType] = None
    entity_type: Optional[AuditEntityType] = None
    entity_id: Optional[str] = None
    user_email: Optional[str] = None
    is_system_event: Optional[bool] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None


@dataclass(frozen=True)
class NewTransaction:
    """Row to be inserted; used for atomic batch inserts."""

    type: TransactionType
    amount: Decimal
    date: datetime
    description: Optional[str]
    bank_description: Optional[str] = None
    owner_id: Optional[int] = None
    reference: Optional[str] = None
    serial: Optional[str] = None
    category: Optional[str] = None
    is_duplicate: bool = False
    tag_ids: tuple[int, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class MeterReading:
    """Meter readings for one owner at refill time."""

    owner_id: int
    current_reading: Decimal
    previous_reading: Optional[Decimal] = None


@dataclass(frozen=True)
class Allocation:
    """Computed share of a refill bill for one owner. Values are unrounded."""

    owner_id: int
    previous_reading: Decimal
    current_reading: Decimal
    consumption: Decimal
    percentage: Decimal
    subtotal: Decimal
    total_amount: Decimal
