"""Audit trail service.

Services call this after their storage operation succeeds. Writing an audit
record never raises: a storage failure here is logged and dropped so the
primary operation still completes.
"""

import json
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Optional, Union

from condobooks.database.base import Database
from condobooks.domain.entities import (
    Actor,
    AuditEntityType,
    AuditEventType,
    AuditLogEntry,
    AuditLogFilters,
    Page,
)
from condobooks.logging_setup import get_logger

logger = get_logger(__name__)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_payload(value: Any) -> dict[str, Any]:
    """Turn an entity or mapping into a JSON-safe dict for audit details."""
    if is_dataclass(value) and not isinstance(value, type):
        value = asdict(value)
    return json.loads(json.dumps(value, default=_json_default))


def diff_payloads(old: dict[str, Any], new: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Return ``{field: {"old": ..., "new": ...}}`` for fields whose value changed."""
    changes = {}
    for key, new_value in new.items():
        old_value = old.get(key)
        if old_value != new_value:
            changes[key] = {"old": old_value, "new": new_value}
    return changes


class AuditService:
    """Service for writing and reading the audit trail."""

    def __init__(self, db: Database, actor: Optional[Actor] = None):
        """Initialize audit service.

        Args:
            db: Database instance
            actor: Identity recorded on every entry written by this service
        """
        self.db = db
        self.actor = actor

    def log_event(
        self,
        event_type: AuditEventType,
        entity_type: AuditEntityType,
        entity_id: Any = None,
        details: Union[dict[str, Any], Callable[[], dict[str, Any]], None] = None,
        is_system_event: bool = False,
        actor: Optional[Actor] = None,
    ) -> Optional[int]:
        """Append an audit record.

        Args:
            details: Details mapping, or a callable building it; a callable is
                evaluated inside the failure guard

        Returns:
            The new record ID, or None if writing failed
        """
        actor = actor or self.actor
        try:
            if callable(details):
                details = details()
            return self.db.create_audit_log(
                event_type=event_type.value,
                entity_type=entity_type.value,
                entity_id=None if entity_id is None else str(entity_id),
                user_id=actor.user_id if actor else None,
                user_email=actor.email if actor else None,
                details=json.dumps(details or {}, default=_json_default),
                is_system_event=is_system_event,
            )
        except Exception:
            logger.exception(
                "Failed to write audit log %s %s %s", event_type.value, entity_type.value, entity_id
            )
            return None

    def log_create(self, entity_type: AuditEntityType, entity_id: Any, payload: Any) -> Optional[int]:
        return self.log_event(
            AuditEventType.CREATE,
            entity_type,
            entity_id,
            lambda: {"action": "created", "new_values": to_payload(payload)},
        )

    def log_update(self, entity_type: AuditEntityType, entity_id: Any, old: Any, new: Any) -> Optional[int]:
        """Record an update with only the fields that changed."""
        return self.log_event(
            AuditEventType.UPDATE,
            entity_type,
            entity_id,
            lambda: {"action": "updated", "changes": diff_payloads(to_payload(old), to_payload(new))},
        )

    def log_delete(self, entity_type: AuditEntityType, entity_id: Any, payload: Any) -> Optional[int]:
        return self.log_event(
            AuditEventType.DELETE,
            entity_type,
            entity_id,
            lambda: {"action": "deleted", "deleted_values": to_payload(payload)},
        )

    def log_bulk_import(
        self, entity_type: AuditEntityType, entity_id: Any, count: int, filename: Optional[str] = None
    ) -> Optional[int]:
        return self.log_event(
            AuditEventType.BULK_IMPORT,
            entity_type,
            entity_id,
            {"action": "bulk_import", "count": count, "filename": filename},
        )

    def log_bulk_delete(
        self, entity_type: AuditEntityType, entity_id: Any, count: int, criteria: dict[str, Any]
    ) -> Optional[int]:
        return self.log_event(
            AuditEventType.BULK_DELETE,
            entity_type,
            entity_id,
            lambda: {"action": "bulk_delete", "count": count, "criteria": to_payload(criteria)},
        )

    def log_sign_in(self, actor: Actor) -> Optional[int]:
        return self.log_event(
            AuditEventType.SIGN_IN,
            AuditEntityType.SYSTEM,
            details={"action": "user_signed_in", "user_name": actor.user_id},
            is_system_event=True,
            actor=actor,
        )

    def log_sign_out(self, actor: Actor) -> Optional[int]:
        return self.log_event(
            AuditEventType.SIGN_OUT,
            AuditEntityType.SYSTEM,
            details={"action": "user_signed_out", "user_name": actor.user_id},
            is_system_event=True,
            actor=actor,
        )

    def list_entries(
        self,
        filters: Optional[AuditLogFilters] = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[AuditLogEntry], Page]:
        """List audit records newest first.

        Args:
            filters: Optional filters
            page: 1-based page number
            limit: Page size

        Returns:
            Tuple of (entries, pagination)
        """
        page = max(page, 1)
        entries, total = self.db.list_audit_logs(
            filters or AuditLogFilters(), limit=limit, offset=(page - 1) * limit
        )
        return entries, Page.build(total, page, limit)

    def entity_history(self, entity_type: AuditEntityType, entity_id: Any) -> list[AuditLogEntry]:
        """All records about one entity, newest first."""
        entries, _ = self.db.list_audit_logs(
            AuditLogFilters(entity_type=entity_type, entity_id=str(entity_id))
        )
        return entries
