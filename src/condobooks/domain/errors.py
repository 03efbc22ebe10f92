"""Shared domain error messages and error types."""

from enum import Enum


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class DependencyError(DomainError):
    """Operation blocked due to dependent domain data."""


class AuthorizationError(DomainError):
    """Actor lacks the privileges required for a mutating operation."""


class ParseErrorKind(str, Enum):
    """Why a bank statement could not be turned into transactions."""

    FORMAT = "format"
    NO_TRANSACTIONS = "no_transactions"
    IO = "io"


class StatementParseError(DomainError):
    """Bank statement file could not be parsed."""

    def __init__(self, message: str, kind: ParseErrorKind = ParseErrorKind.FORMAT):
        super().__init__(message)
        self.kind = kind


UNRECOGNIZED_FORMAT = (
    "CSV format not recognized. Please upload a valid Popular bank statement CSV file."
)
NO_TRANSACTIONS_FOUND = "No transactions found in the CSV file. Please check the format."


def admin_required(action: str) -> str:
    """Return message for a non-admin attempting a mutating operation."""
    return f"Admin privileges required to {action}"


def owner_not_found(owner_id: int) -> str:
    """Return message for missing owner."""
    return f"Owner {owner_id} not found"


def tag_not_found(tag_id: int) -> str:
    """Return message for missing tag."""
    return f"Tag {tag_id} not found"


def transaction_not_found(transaction_id: int) -> str:
    """Return message for missing transaction."""
    return f"Transaction {transaction_id} not found"


def batch_not_found(batch_id: int) -> str:
    """Return message for missing import batch."""
    return f"Batch {batch_id} not found"


def refill_not_found(refill_id: int) -> str:
    """Return message for missing LPG refill."""
    return f"LPG refill {refill_id} not found"


def pattern_not_found(pattern_id: int) -> str:
    """Return message for missing recognition pattern."""
    return f"Recognition pattern {pattern_id} not found"


def attachment_not_found(attachment_id: int) -> str:
    """Return message for missing attachment."""
    return f"Attachment {attachment_id} not found"


def duplicate_apartment(apartment_id: str) -> str:
    """Return message for an apartment already assigned to an owner."""
    return f"Owner with apartment '{apartment_id}' already exists"


def duplicate_tag_name(name: str) -> str:
    """Return message for a tag name already in use."""
    return f"Tag with name '{name}' already exists"


def tag_cycle(tag_id: int, parent_id: int) -> str:
    """Return message when a parent assignment would create a cycle."""
    if tag_id == parent_id:
        return f"Tag {tag_id} cannot be its own parent"
    return f"Setting parent of tag {tag_id} to {parent_id} would create a cycle"
