"""Domain layer for condobooks application."""

import importlib

# Services are resolved lazily: the database layer imports domain.entities,
# and the services import the database layer.
_SERVICES = {
    "AttachmentService": "condobooks.domain.attachments",
    "AuditService": "condobooks.domain.audit",
    "BalanceService": "condobooks.domain.balance",
    "BatchImportService": "condobooks.domain.batch_import",
    "LpgService": "condobooks.domain.lpg",
    "OwnerService": "condobooks.domain.owner",
    "PatternService": "condobooks.domain.patterns",
    "PaymentService": "condobooks.domain.payments",
    "TagService": "condobooks.domain.tag",
    "TransactionService": "condobooks.domain.transaction",
}

__all__ = sorted(_SERVICES)


def __getattr__(name):
    if name in _SERVICES:
        return getattr(importlib.import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
