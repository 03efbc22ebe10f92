"""LPG tank refill billing.

A refill bill is split between apartments in proportion to metered
consumption since the previous refill, then marked up by an efficiency
surcharge. All arithmetic is Decimal and unrounded; rounding only happens
when amounts are displayed.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from condobooks.database.base import Database
from condobooks.domain.access import require_admin
from condobooks.domain.amounts import to_decimal
from condobooks.domain.audit import AuditService
from condobooks.domain.entities import (
    Actor,
    Allocation,
    AuditEntityType,
    LpgRefill,
    LpgRefillEntry,
    MeterReading,
)
from condobooks.domain.errors import (
    NotFoundError,
    ValidationError,
    owner_not_found,
    refill_not_found,
    tag_not_found,
)
from condobooks.logging_setup import get_logger

logger = get_logger(__name__)

HUNDRED = Decimal(100)
ZERO = Decimal(0)


def allocate(
    bill_amount: Decimal,
    efficiency_percent: Decimal,
    readings: Sequence[MeterReading],
) -> list[Allocation]:
    """Split a refill bill between owners by metered consumption.

    For each owner: consumption = current - previous; percentage =
    consumption / total consumption * 100; subtotal = percentage / 100 *
    bill; total = subtotal * (1 + efficiency / 100).

    Args:
        bill_amount: Amount billed for the refill
        efficiency_percent: Surcharge percentage applied on top of each share
        readings: One reading per participating owner; previous_reading
            defaults to zero when missing

    Returns:
        One Allocation per reading, in input order

    Raises:
        ValidationError: If there are no readings, an owner appears twice, a
            reading or amount is negative, or total consumption is not
            positive
    """
    bill_amount = to_decimal(bill_amount, "Bill amount")
    efficiency_percent = to_decimal(efficiency_percent, "Efficiency percentage")
    if bill_amount < ZERO:
        raise ValidationError("Bill amount cannot be negative")
    if efficiency_percent < ZERO:
        raise ValidationError("Efficiency percentage cannot be negative")
    if not readings:
        raise ValidationError("At least one apartment entry is required")

    seen = set()
    consumptions = []
    for reading in readings:
        if reading.owner_id in seen:
            raise ValidationError(f"Owner {reading.owner_id} appears more than once in the readings")
        seen.add(reading.owner_id)
        current = to_decimal(reading.current_reading, "Current reading")
        previous = to_decimal(
            reading.previous_reading if reading.previous_reading is not None else ZERO, "Previous reading"
        )
        if current < ZERO or previous < ZERO:
            raise ValidationError("Meter readings cannot be negative")
        consumptions.append((reading.owner_id, previous, current, current - previous))

    total_consumption = sum((c for _, _, _, c in consumptions), ZERO)
    if total_consumption <= ZERO:
        raise ValidationError("Total consumption must be greater than zero")

    surcharge = 1 + efficiency_percent / HUNDRED
    allocations = []
    for owner_id, previous, current, consumption in consumptions:
        percentage = consumption / total_consumption * HUNDRED
        subtotal = percentage / HUNDRED * bill_amount
        allocations.append(
            Allocation(
                owner_id=owner_id,
                previous_reading=previous,
                current_reading=current,
                consumption=consumption,
                percentage=percentage,
                subtotal=subtotal,
                total_amount=subtotal * surcharge,
            )
        )
    return allocations


def total_billed(refill: LpgRefill) -> Decimal:
    """Bill amount including the efficiency surcharge."""
    return refill.bill_amount * (1 + refill.efficiency_percentage / HUNDRED)


class LpgService:
    """Service for recording and querying LPG refills."""

    def __init__(self, db: Database, actor: Optional[Actor] = None, audit: Optional[AuditService] = None):
        """Initialize LPG service.

        Args:
            db: Database instance
            actor: Acting identity for mutating operations
            audit: Audit service (defaults to one bound to ``actor``)
        """
        self.db = db
        self.actor = actor
        self.audit = audit or AuditService(db, actor)

    def create_refill(
        self,
        bill_amount: Decimal,
        gallons_refilled: Decimal,
        refill_date: datetime,
        efficiency_percentage: Decimal,
        readings: Iterable[MeterReading],
        tag_id: Optional[int] = None,
    ) -> LpgRefill:
        """Record a refill and every owner's share in one unit of work.

        Readings without a previous value are pre-filled from each owner's
        latest recorded reading (zero for a first refill).

        Returns:
            The stored refill with its entries

        Raises:
            AuthorizationError: If the actor is not an admin
            ValidationError: If the allocation is rejected or gallons is negative
            NotFoundError: If an owner or the tag doesn't exist
        """
        require_admin(self.actor, "create refills")
        gallons_refilled = to_decimal(gallons_refilled, "Gallons refilled")
        if gallons_refilled < ZERO:
            raise ValidationError("Gallons refilled cannot be negative")
        if tag_id is not None and self.db.get_tag(tag_id) is None:
            raise NotFoundError(tag_not_found(tag_id))

        readings = list(readings)
        for reading in readings:
            if self.db.get_owner(reading.owner_id) is None:
                raise NotFoundError(owner_not_found(reading.owner_id))

        previous = self.previous_readings()
        filled = [
            r if r.previous_reading is not None
            else MeterReading(r.owner_id, r.current_reading, previous.get(r.owner_id, ZERO))
            for r in readings
        ]
        allocations = allocate(bill_amount, efficiency_percentage, filled)

        refill_id = self.db.create_refill_with_entries(
            bill_amount=to_decimal(bill_amount, "Bill amount"),
            gallons_refilled=gallons_refilled,
            refill_date=refill_date,
            efficiency_percentage=to_decimal(efficiency_percentage, "Efficiency percentage"),
            allocations=allocations,
            tag_id=tag_id,
        )
        refill = self.get_refill(refill_id)
        logger.info("Recorded LPG refill %d with %d entries", refill_id, len(refill.entries))
        self.audit.log_create(AuditEntityType.LPG_REFILL, refill_id, refill)
        return refill

    def get_refill(self, refill_id: int) -> LpgRefill:
        """Get refill by ID.

        Raises:
            NotFoundError: If refill doesn't exist
        """
        refill = self.db.get_refill(refill_id)
        if refill is None:
            raise NotFoundError(refill_not_found(refill_id))
        return refill

    def list_refills(self) -> list[LpgRefill]:
        """List refills, newest refill date first."""
        return self.db.list_refills()

    def latest_refill(self) -> Optional[LpgRefill]:
        refills = self.db.list_refills()
        return refills[0] if refills else None

    def previous_readings(self) -> dict[int, Decimal]:
        """Map owner ID to the current reading of their most recent refill entry."""
        readings: dict[int, Decimal] = {}
        for refill in self.db.list_refills():
            for entry in refill.entries:
                readings.setdefault(entry.owner_id, entry.current_reading)
        return readings

    def refills_for_owner(self, owner_id: int) -> list[LpgRefillEntry]:
        """An owner's refill entries, newest refill first."""
        if self.db.get_owner(owner_id) is None:
            raise NotFoundError(owner_not_found(owner_id))
        return self.db.list_refill_entries_for_owner(owner_id)

    def delete_refill(self, refill_id: int) -> None:
        """Delete a refill and its entries.

        Raises:
            AuthorizationError: If the actor is not an admin
            NotFoundError: If refill doesn't exist
        """
        require_admin(self.actor, "delete refills")
        refill = self.get_refill(refill_id)
        self.db.delete_refill(refill_id)
        self.audit.log_delete(AuditEntityType.LPG_REFILL, refill_id, refill)
