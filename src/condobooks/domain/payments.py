"""Reconciliation of LPG shares against owner payments.

Payments for a refill are money-in transactions that carry the refill's
tag and are attributed to the owner.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from condobooks.database.base import Database
from condobooks.domain.entities import (
    LpgRefillEntry,
    PaymentStatus,
    Transaction,
    TransactionFilters,
    TransactionType,
)
from condobooks.domain.errors import NotFoundError, ValidationError, refill_not_found, tag_not_found

ZERO = Decimal(0)


@dataclass(frozen=True)
class PendingPayment:
    """Amount owed, paid and remaining for one owner."""

    owner_id: int
    amount_owed: Decimal
    amount_paid: Decimal
    remaining_balance: Decimal
    status: PaymentStatus


@dataclass(frozen=True)
class OwnerTagPayments:
    """Payments an owner made under a set of tags."""

    owner_id: int
    amount_paid: Decimal
    payment_count: int
    last_payment_date: Optional[datetime]
    status: PaymentStatus


def _status(remaining: Decimal) -> PaymentStatus:
    return PaymentStatus.PAID if remaining <= ZERO else PaymentStatus.PENDING


def reconcile_payments(
    entries: Iterable[LpgRefillEntry],
    transactions: Iterable[Transaction],
) -> list[PendingPayment]:
    """Compare each owner's share with what they paid.

    Args:
        entries: Refill entries; entries with nothing owed are skipped
        transactions: Transactions carrying the refill's tag; only
            non-duplicate money-in rows count as payments

    Returns:
        One PendingPayment per entry with a positive total, in entry order
    """
    paid_by_owner: dict[int, Decimal] = {}
    for txn in transactions:
        if txn.is_duplicate or txn.type is not TransactionType.MONEY_IN or txn.owner_id is None:
            continue
        paid_by_owner[txn.owner_id] = paid_by_owner.get(txn.owner_id, ZERO) + txn.amount

    results = []
    for entry in entries:
        if entry.total_amount <= ZERO:
            continue
        paid = paid_by_owner.get(entry.owner_id, ZERO)
        remaining = entry.total_amount - paid
        results.append(
            PendingPayment(
                owner_id=entry.owner_id,
                amount_owed=entry.total_amount,
                amount_paid=paid,
                remaining_balance=remaining,
                status=_status(remaining),
            )
        )
    return results


def aggregate_by_owner(payments: Iterable[PendingPayment]) -> list[PendingPayment]:
    """Sum owed, paid and remaining per owner; status follows the summed remainder."""
    totals: dict[int, tuple[Decimal, Decimal, Decimal]] = {}
    for p in payments:
        owed, paid, remaining = totals.get(p.owner_id, (ZERO, ZERO, ZERO))
        totals[p.owner_id] = (owed + p.amount_owed, paid + p.amount_paid, remaining + p.remaining_balance)
    return [
        PendingPayment(
            owner_id=owner_id,
            amount_owed=owed,
            amount_paid=paid,
            remaining_balance=remaining,
            status=_status(remaining),
        )
        for owner_id, (owed, paid, remaining) in totals.items()
    ]


class PaymentService:
    """Service for LPG payment tracking."""

    def __init__(self, db: Database):
        """Initialize payment service.

        Args:
            db: Database instance
        """
        self.db = db

    def _tagged_transactions(self, tag_ids: Sequence[int]) -> list[Transaction]:
        transactions, _ = self.db.list_transactions(TransactionFilters(tag_ids=tuple(tag_ids)))
        return transactions

    def pending_payments_for_refill(self, refill_id: int) -> list[PendingPayment]:
        """Per-owner payment state for one refill.

        Returns:
            Empty list if the refill has no tag

        Raises:
            NotFoundError: If refill doesn't exist
        """
        refill = self.db.get_refill(refill_id)
        if refill is None:
            raise NotFoundError(refill_not_found(refill_id))
        if refill.tag_id is None:
            return []
        return reconcile_payments(refill.entries, self._tagged_transactions([refill.tag_id]))

    def all_pending_payments(self) -> list[PendingPayment]:
        """Payment state per owner summed over every tagged refill, ordered by owner ID."""
        payments = []
        for refill in self.db.list_refills():
            if refill.tag_id is None:
                continue
            payments.extend(reconcile_payments(refill.entries, self._tagged_transactions([refill.tag_id])))
        return sorted(aggregate_by_owner(payments), key=lambda p: p.owner_id)

    def tag_payment_breakdown(self, tag_ids: Sequence[int]) -> list[OwnerTagPayments]:
        """What every active owner paid under the given tags.

        Args:
            tag_ids: Tags that identify the payments (e.g. one month's fee tags)

        Returns:
            One row per active owner, ordered by apartment; status is PAID if
            the owner paid anything

        Raises:
            ValidationError: If no tag IDs are given
            NotFoundError: If a tag doesn't exist
        """
        if not tag_ids:
            raise ValidationError("At least one tag is required")
        for tag_id in tag_ids:
            if self.db.get_tag(tag_id) is None:
                raise NotFoundError(tag_not_found(tag_id))

        by_owner: dict[int, list[Transaction]] = {}
        for txn in self._tagged_transactions(tag_ids):
            if txn.type is TransactionType.MONEY_IN and txn.owner_id is not None:
                by_owner.setdefault(txn.owner_id, []).append(txn)

        rows = []
        for owner in self.db.list_owners(active_only=True):
            owner_txns = by_owner.get(owner.id, [])
            paid = sum((t.amount for t in owner_txns), ZERO)
            rows.append(
                OwnerTagPayments(
                    owner_id=owner.id,
                    amount_paid=paid,
                    payment_count=len(owner_txns),
                    last_payment_date=max((t.date for t in owner_txns), default=None),
                    status=PaymentStatus.PAID if paid > ZERO else PaymentStatus.PENDING,
                )
            )
        return rows
