"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic so the domain entities stay stable
when the database schema changes.
"""

import json
from decimal import Decimal

from condobooks.domain import entities as domain
from condobooks.database.models import (
    Owner as ORMOwner,
    OwnerPattern as ORMOwnerPattern,
    Tag as ORMTag,
    TagPattern as ORMTagPattern,
    Transaction as ORMTransaction,
    TransactionBatch as ORMTransactionBatch,
    LpgRefill as ORMLpgRefill,
    LpgRefillEntry as ORMLpgRefillEntry,
    Attachment as ORMAttachment,
    AuditLog as ORMAuditLog,
)


def _decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def owner_to_domain(orm_owner: ORMOwner) -> domain.Owner:
    """Convert SQLAlchemy Owner model to domain Owner entity."""
    return domain.Owner(
        id=orm_owner.id,
        name=orm_owner.name,
        apartment_id=orm_owner.apartment_id,
        email=orm_owner.email,
        phone=orm_owner.phone,
        is_active=bool(orm_owner.is_active),
        created_at=orm_owner.created_at,
        updated_at=orm_owner.updated_at,
    )


def owner_pattern_to_domain(orm_pattern: ORMOwnerPattern) -> domain.OwnerPattern:
    """Convert SQLAlchemy OwnerPattern model to domain OwnerPattern entity."""
    return domain.OwnerPattern(
        id=orm_pattern.id,
        owner_id=orm_pattern.owner_id,
        pattern=orm_pattern.pattern,
        description=orm_pattern.description,
        is_active=bool(orm_pattern.is_active),
        created_at=orm_pattern.created_at,
    )


def tag_to_domain(orm_tag: ORMTag) -> domain.Tag:
    """Convert SQLAlchemy Tag model to domain Tag entity."""
    return domain.Tag(
        id=orm_tag.id,
        name=orm_tag.name,
        description=orm_tag.description,
        color=orm_tag.color,
        parent_id=orm_tag.parent_id,
        created_at=orm_tag.created_at,
    )


def tag_pattern_to_domain(orm_pattern: ORMTagPattern) -> domain.TagPattern:
    """Convert SQLAlchemy TagPattern model to domain TagPattern entity."""
    return domain.TagPattern(
        id=orm_pattern.id,
        tag_id=orm_pattern.tag_id,
        pattern=orm_pattern.pattern,
        description=orm_pattern.description,
        is_active=bool(orm_pattern.is_active),
        created_at=orm_pattern.created_at,
    )


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model to domain Transaction entity."""
    return domain.Transaction(
        id=orm_transaction.id,
        type=domain.TransactionType(orm_transaction.type),
        amount=_decimal(orm_transaction.amount),
        date=orm_transaction.date,
        description=orm_transaction.description,
        bank_description=orm_transaction.bank_description,
        owner_id=orm_transaction.owner_id,
        reference=orm_transaction.reference,
        serial=orm_transaction.serial,
        category=orm_transaction.category,
        batch_id=orm_transaction.batch_id,
        is_duplicate=bool(orm_transaction.is_duplicate),
        created_at=orm_transaction.created_at,
        updated_at=orm_transaction.updated_at,
        tag_ids=tuple(sorted(link.tag_id for link in orm_transaction.tag_links)),
    )


def batch_to_domain(orm_batch: ORMTransactionBatch) -> domain.TransactionBatch:
    """Convert SQLAlchemy TransactionBatch model to domain TransactionBatch entity."""
    return domain.TransactionBatch(
        id=orm_batch.id,
        filename=orm_batch.filename,
        original_filename=orm_batch.original_filename,
        account_number=orm_batch.account_number,
        processed_at=orm_batch.processed_at,
        total_transactions=orm_batch.total_transactions,
        new_transactions=orm_batch.new_transactions,
        duplicated_transactions=orm_batch.duplicated_transactions,
    )


def refill_entry_to_domain(orm_entry: ORMLpgRefillEntry) -> domain.LpgRefillEntry:
    """Convert SQLAlchemy LpgRefillEntry model to domain LpgRefillEntry entity."""
    return domain.LpgRefillEntry(
        id=orm_entry.id,
        refill_id=orm_entry.refill_id,
        owner_id=orm_entry.owner_id,
        previous_reading=_decimal(orm_entry.previous_reading),
        current_reading=_decimal(orm_entry.current_reading),
        consumption=_decimal(orm_entry.consumption),
        percentage=_decimal(orm_entry.percentage),
        subtotal=_decimal(orm_entry.subtotal),
        total_amount=_decimal(orm_entry.total_amount),
    )


def refill_to_domain(orm_refill: ORMLpgRefill) -> domain.LpgRefill:
    """Convert SQLAlchemy LpgRefill model (with entries) to domain LpgRefill entity."""
    return domain.LpgRefill(
        id=orm_refill.id,
        bill_amount=_decimal(orm_refill.bill_amount),
        gallons_refilled=_decimal(orm_refill.gallons_refilled),
        refill_date=orm_refill.refill_date,
        efficiency_percentage=_decimal(orm_refill.efficiency_percentage),
        tag_id=orm_refill.tag_id,
        created_at=orm_refill.created_at,
        entries=tuple(refill_entry_to_domain(e) for e in orm_refill.entries),
    )


def attachment_to_domain(orm_attachment: ORMAttachment) -> domain.Attachment:
    """Convert SQLAlchemy Attachment model to domain Attachment entity."""
    if orm_attachment.transaction_id is not None:
        kind, entity_id = domain.AttachmentKind.TRANSACTION, orm_attachment.transaction_id
    elif orm_attachment.refill_id is not None:
        kind, entity_id = domain.AttachmentKind.REFILL, orm_attachment.refill_id
    else:
        kind, entity_id = domain.AttachmentKind.REFILL_ENTRY, orm_attachment.refill_entry_id
    return domain.Attachment(
        id=orm_attachment.id,
        kind=kind,
        entity_id=entity_id,
        filename=orm_attachment.filename,
        storage_key=orm_attachment.storage_key,
        size=orm_attachment.size,
        mime_type=orm_attachment.mime_type,
        created_at=orm_attachment.created_at,
    )


def audit_log_to_domain(orm_log: ORMAuditLog) -> domain.AuditLogEntry:
    """Convert SQLAlchemy AuditLog model to domain AuditLogEntry entity."""
    return domain.AuditLogEntry(
        id=orm_log.id,
        event_type=domain.AuditEventType(orm_log.event_type),
        entity_type=domain.AuditEntityType(orm_log.entity_type),
        entity_id=orm_log.entity_id,
        user_id=orm_log.user_id,
        user_email=orm_log.user_email,
        details=json.loads(orm_log.details) if orm_log.details else {},
        is_system_event=bool(orm_log.is_system_event),
        created_at=orm_log.created_at,
    )
