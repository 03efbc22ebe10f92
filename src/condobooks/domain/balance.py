"""Estimated account balance from an operator checkpoint."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from condobooks.database.base import Database
from condobooks.domain.access import require_admin
from condobooks.domain.amounts import to_decimal
from condobooks.domain.audit import AuditService
from condobooks.domain.entities import Actor, AuditEntityType, TransactionFilters
from condobooks.logging_setup import get_logger

logger = get_logger(__name__)

CURRENT_BALANCE_KEY = "current_balance"
BALANCE_DATE_KEY = "balance_date"


@dataclass(frozen=True)
class BalanceCheckpoint:
    balance: Decimal
    date: datetime


@dataclass(frozen=True)
class BalanceEstimate:
    """Checkpoint plus signed transactions since its date.

    Every field is None (and the count 0) when no checkpoint is recorded.
    """

    checkpoint_balance: Optional[Decimal]
    checkpoint_date: Optional[datetime]
    estimated_balance: Optional[Decimal]
    transaction_count_since: int


class BalanceService:
    """Service for the balance checkpoint and estimate."""

    def __init__(self, db: Database, actor: Optional[Actor] = None, audit: Optional[AuditService] = None):
        """Initialize balance service.

        Args:
            db: Database instance
            actor: Acting identity for mutating operations
            audit: Audit service (defaults to one bound to ``actor``)
        """
        self.db = db
        self.actor = actor
        self.audit = audit or AuditService(db, actor)

    def get_checkpoint(self) -> Optional[BalanceCheckpoint]:
        """Read the stored checkpoint, or None if absent or unreadable."""
        balance_text = self.db.get_kv(CURRENT_BALANCE_KEY)
        date_text = self.db.get_kv(BALANCE_DATE_KEY)
        if not balance_text or not date_text:
            return None
        try:
            return BalanceCheckpoint(balance=Decimal(balance_text), date=datetime.fromisoformat(date_text))
        except (InvalidOperation, ValueError):
            logger.warning("Ignoring unreadable balance checkpoint %r at %r", balance_text, date_text)
            return None

    def set_checkpoint(self, balance: Decimal, date: datetime) -> BalanceCheckpoint:
        """Overwrite the checkpoint.

        Raises:
            AuthorizationError: If the actor is not an admin
            ValidationError: If balance is not a finite number
        """
        require_admin(self.actor, "set the balance")
        old = self.get_checkpoint()
        checkpoint = BalanceCheckpoint(balance=to_decimal(balance, "Balance"), date=date)
        self.db.set_kv(
            {
                CURRENT_BALANCE_KEY: str(checkpoint.balance),
                BALANCE_DATE_KEY: checkpoint.date.isoformat(),
            }
        )
        self.audit.log_update(AuditEntityType.BALANCE, CURRENT_BALANCE_KEY, old or {}, checkpoint)
        return checkpoint

    def clear_checkpoint(self) -> None:
        """Remove the checkpoint.

        Raises:
            AuthorizationError: If the actor is not an admin
        """
        require_admin(self.actor, "clear the balance")
        old = self.get_checkpoint()
        self.db.delete_kv(CURRENT_BALANCE_KEY, BALANCE_DATE_KEY)
        if old is not None:
            self.audit.log_delete(AuditEntityType.BALANCE, CURRENT_BALANCE_KEY, old)

    def estimate_balance(self) -> BalanceEstimate:
        """Checkpoint balance plus money in minus money out since the checkpoint date.

        Duplicate rows are excluded.
        """
        checkpoint = self.get_checkpoint()
        if checkpoint is None:
            return BalanceEstimate(None, None, None, 0)

        since, _ = self.db.list_transactions(TransactionFilters(start_date=checkpoint.date))
        signed_sum = sum((t.signed_amount for t in since), Decimal(0))
        return BalanceEstimate(
            checkpoint_balance=checkpoint.balance,
            checkpoint_date=checkpoint.date,
            estimated_balance=checkpoint.balance + signed_sum,
            transaction_count_since=len(since),
        )
