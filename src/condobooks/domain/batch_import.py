"""Statement import and batch management service.

An import classifies every parsed row before touching storage, then writes
the batch header (with its final counts) and all rows in one atomic call.
Rows matching an already stored transaction on (date, amount, type, serial)
are kept as duplicates and inherit that transaction's staff edits.
"""

from dataclasses import dataclass
from datetime import datetime, UTC
from decimal import Decimal
from typing import IO, Callable, Optional, Sequence, Union

from condobooks.database.base import Database
from condobooks.domain.access import require_admin
from condobooks.domain.audit import AuditService
from condobooks.domain.entities import (
    Actor,
    AuditEntityType,
    NewTransaction,
    OwnerPattern,
    Transaction,
    TransactionBatch,
    TransactionType,
)
from condobooks.domain.errors import NotFoundError, ParseErrorKind, batch_not_found
from condobooks.domain.patterns import first_match
from condobooks.domain.statement_parser import ParsedTransaction, parse_statement
from condobooks.logging_setup import get_logger

logger = get_logger(__name__)

DuplicateKey = tuple[datetime, Decimal, TransactionType, Optional[str]]


@dataclass(frozen=True)
class ImportResult:
    """Outcome of one statement import."""

    success: bool
    batch_id: Optional[int] = None
    total_count: int = 0
    new_count: int = 0
    duplicate_count: int = 0
    error: Optional[str] = None
    error_kind: Optional[ParseErrorKind] = None


@dataclass(frozen=True)
class BatchInconsistency:
    """A batch whose stored state disagrees with its recorded counts."""

    batch: TransactionBatch
    stored_rows: int


def duplicate_key(date: datetime, amount: Decimal, type: TransactionType, serial: Optional[str]) -> DuplicateKey:
    """Composite key used to recognise the same bank movement across imports."""
    return (date, Decimal(amount), type, serial or None)


def classify_candidates(
    candidates: Sequence[ParsedTransaction],
    find_existing: Callable[[ParsedTransaction], Optional[Transaction]],
    owner_patterns: Sequence[OwnerPattern] = (),
) -> list[NewTransaction]:
    """Decide, row by row, whether each candidate is new or a duplicate.

    Args:
        candidates: Parsed rows in file order
        find_existing: Callable taking a candidate and returning the stored
            Transaction with the same duplicate key, or None
        owner_patterns: Active owner patterns in evaluation order; empty
            disables attribution

    Returns:
        Rows to insert, one per candidate, in the same order. A row planned
        earlier in the same batch counts as existing for later rows.
    """
    planned: dict[DuplicateKey, NewTransaction] = {}
    rows = []
    for candidate in candidates:
        key = duplicate_key(candidate.date, candidate.amount, candidate.type, candidate.serial)
        existing: Optional[Union[Transaction, NewTransaction]] = find_existing(candidate)
        if existing is None:
            existing = planned.get(key)

        if existing is not None:
            row = NewTransaction(
                type=candidate.type,
                amount=candidate.amount,
                date=candidate.date,
                description=existing.description,
                bank_description=candidate.bank_description,
                owner_id=existing.owner_id,
                reference=candidate.reference,
                serial=candidate.serial,
                category=existing.category,
                is_duplicate=True,
            )
        else:
            match = first_match(owner_patterns, candidate.bank_description or candidate.description)
            row = NewTransaction(
                type=candidate.type,
                amount=candidate.amount,
                date=candidate.date,
                description=candidate.bank_description,
                bank_description=candidate.bank_description,
                owner_id=match.owner_id if match else None,
                reference=candidate.reference,
                serial=candidate.serial,
                category=None,
                is_duplicate=False,
            )
            planned[key] = row
        rows.append(row)
    return rows


class BatchImportService:
    """Service for importing bank statements and managing import batches."""

    def __init__(self, db: Database, actor: Optional[Actor] = None, audit: Optional[AuditService] = None):
        """Initialize batch import service.

        Args:
            db: Database instance
            actor: Acting identity for mutating operations
            audit: Audit service (defaults to one bound to ``actor``)
        """
        self.db = db
        self.actor = actor
        self.audit = audit or AuditService(db, actor)

    def import_batch(
        self,
        stream: Union[bytes, IO[bytes]],
        filename: str,
        use_pattern_matching: bool = True,
    ) -> ImportResult:
        """Import one statement file.

        Args:
            stream: File contents or an open binary file
            filename: Original file name
            use_pattern_matching: Attribute new rows to owners with owner patterns

        Returns:
            ImportResult. Parse and storage failures come back with
            ``success=False`` and nothing written.

        Raises:
            AuthorizationError: If the actor is not an admin (checked first)
        """
        require_admin(self.actor, "import statements")

        parsed = parse_statement(stream, filename)
        if not parsed.ok:
            return ImportResult(success=False, error=parsed.message, error_kind=parsed.error_kind)

        patterns = self.db.list_owner_patterns(active_only=True) if use_pattern_matching else []
        rows = classify_candidates(
            parsed.transactions,
            lambda c: self.db.find_matching_transaction(c.date, c.amount, c.type, c.serial),
            patterns,
        )
        duplicates = sum(1 for r in rows if r.is_duplicate)

        try:
            batch_id = self.db.create_batch_with_transactions(
                filename=parsed.filename,
                original_filename=parsed.original_filename,
                processed_at=datetime.now(UTC),
                transactions=rows,
                account_number=parsed.metadata.account if parsed.metadata else None,
            )
        except Exception as e:
            logger.exception("Import of %s failed; nothing was stored", filename)
            return ImportResult(success=False, total_count=len(rows), error=f"Failed to store import: {e}")

        result = ImportResult(
            success=True,
            batch_id=batch_id,
            total_count=len(rows),
            new_count=len(rows) - duplicates,
            duplicate_count=duplicates,
        )
        logger.info(
            "Imported %s as batch %d: %d rows, %d new, %d duplicates",
            filename, batch_id, result.total_count, result.new_count, result.duplicate_count,
        )
        self.audit.log_bulk_import(AuditEntityType.BATCH, batch_id, len(rows), parsed.original_filename)
        return result

    def list_batches(self) -> list[TransactionBatch]:
        """List import batches, newest first."""
        return self.db.list_batches()

    def get_batch(self, batch_id: int) -> TransactionBatch:
        """Get batch by ID.

        Raises:
            NotFoundError: If batch doesn't exist
        """
        batch = self.db.get_batch(batch_id)
        if batch is None:
            raise NotFoundError(batch_not_found(batch_id))
        return batch

    def batch_transactions(self, batch_id: int) -> list[Transaction]:
        """All rows produced by a batch, duplicates included, in file order."""
        self.get_batch(batch_id)
        return self.db.list_batch_transactions(batch_id)

    def delete_batch(self, batch_id: int) -> int:
        """Delete a batch and every transaction it produced.

        Returns:
            Number of transactions deleted

        Raises:
            AuthorizationError: If the actor is not an admin
            NotFoundError: If batch doesn't exist
        """
        require_admin(self.actor, "delete batches")
        batch = self.get_batch(batch_id)
        deleted = self.db.delete_batch(batch_id)
        logger.info("Deleted batch %d and %d transactions", batch_id, deleted)
        self.audit.log_bulk_delete(
            AuditEntityType.BATCH,
            batch_id,
            deleted,
            {"batch_id": batch_id, "filename": batch.original_filename},
        )
        return deleted

    def find_inconsistent_batches(self) -> list[BatchInconsistency]:
        """Batches whose counts don't add up or don't match their stored rows."""
        stored = self.db.count_batch_transactions()
        problems = []
        for batch in self.db.list_batches():
            rows = stored.get(batch.id, 0)
            if not batch.counts_consistent or rows != batch.total_transactions:
                problems.append(BatchInconsistency(batch=batch, stored_rows=rows))
        return problems
