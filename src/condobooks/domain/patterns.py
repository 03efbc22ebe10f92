"""Recognition patterns: matching and lifecycle.

Owner patterns attribute a transaction to an apartment owner, first match
wins. Tag patterns label transactions, every match applies. Patterns are
evaluated in creation order (ascending id) with ``re.search`` semantics
against ``description or bank_description``.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Iterable, Optional, Protocol, Sequence, TypeVar, Union

from condobooks.database.base import Database
from condobooks.domain.access import require_admin
from condobooks.domain.audit import AuditService
from condobooks.domain.entities import (
    Actor,
    AuditEntityType,
    OwnerPattern,
    TagPattern,
    Transaction,
)
from condobooks.domain.errors import (
    NotFoundError,
    ValidationError,
    owner_not_found,
    pattern_not_found,
    tag_not_found,
    transaction_not_found,
)
from condobooks.logging_setup import get_logger

logger = get_logger(__name__)

MAX_PATTERN_LENGTH = 500
MAX_MATCH_TEXT_LENGTH = 1000
DEFAULT_CHUNK_SIZE = 200

# A group that contains an unescaped + or * and is itself quantified, e.g. (a+)+
_NESTED_QUANTIFIER = re.compile(r"\((?:[^()\\]|\\.)*[+*](?:[^()\\]|\\.)*\)(?:[+*]|\{\d*,)")
# An unbounded quantifier on a group with alternation, e.g. (a|aa)*
_QUANTIFIED_ALTERNATION = re.compile(r"\((?:[^()\\]|\\.)*\|(?:[^()\\]|\\.)*\)(?:[+*]|\{\d*,)")


class _Pattern(Protocol):
    id: int
    pattern: str
    is_active: bool


P = TypeVar("P", bound=_Pattern)


@lru_cache(maxsize=512)
def _compile(pattern: str) -> re.Pattern:
    return re.compile(pattern)


def validate_pattern(pattern: str) -> str:
    """Check that pattern text is safe to store.

    Args:
        pattern: Regular expression text

    Returns:
        The pattern with surrounding whitespace removed

    Raises:
        ValidationError: If the pattern is empty, too long, does not compile,
            nests quantifiers, or repeats an alternation group
    """
    pattern = (pattern or "").strip()
    if not pattern:
        raise ValidationError("Pattern is required")
    if len(pattern) > MAX_PATTERN_LENGTH:
        raise ValidationError(f"Pattern is too long (maximum {MAX_PATTERN_LENGTH} characters)")
    try:
        re.compile(pattern)
    except re.error as e:
        raise ValidationError(f"Invalid regex pattern: {e}") from e
    if _NESTED_QUANTIFIER.search(pattern):
        raise ValidationError("Pattern is too complex: nested quantifiers are not allowed")
    if _QUANTIFIED_ALTERNATION.search(pattern):
        raise ValidationError("Pattern is too complex: repeated alternation groups are not allowed")
    return pattern


def pattern_matches(pattern: str, text: Optional[str]) -> bool:
    """Return True if ``pattern`` is found anywhere in ``text``.

    A pattern that fails to compile is logged and treated as no match.
    """
    if not text:
        return False
    try:
        compiled = _compile(pattern)
    except re.error:
        logger.warning("Skipping invalid pattern %r", pattern)
        return False
    return compiled.search(text[:MAX_MATCH_TEXT_LENGTH]) is not None


def match_patterns(patterns: Iterable[P], text: Optional[str]) -> list[P]:
    """Return every active pattern that matches ``text``, in input order."""
    return [p for p in patterns if p.is_active and pattern_matches(p.pattern, text)]


def first_match(patterns: Iterable[P], text: Optional[str]) -> Optional[P]:
    """Return the first active pattern that matches ``text``, or None."""
    for p in patterns:
        if p.is_active and pattern_matches(p.pattern, text):
            return p
    return None


@dataclass(frozen=True)
class PatternApplyResult:
    """Outcome of creating a pattern and optionally applying it retroactively.

    ``failed_chunks`` greater than zero means some transactions were left
    unprocessed; re-running the pass is safe.
    """

    pattern: Union[OwnerPattern, TagPattern]
    matched: int = 0
    updated: int = 0
    failed_chunks: int = 0


class PatternService:
    """Service for managing owner and tag recognition patterns."""

    def __init__(
        self,
        db: Database,
        actor: Optional[Actor] = None,
        audit: Optional[AuditService] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        """Initialize pattern service.

        Args:
            db: Database instance
            actor: Acting identity for mutating operations
            audit: Audit service (defaults to one bound to ``actor``)
            chunk_size: Transactions per committed chunk when applying retroactively
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.db = db
        self.actor = actor
        self.audit = audit or AuditService(db, actor)
        self.chunk_size = chunk_size

    # Owner patterns
    def create_owner_pattern(
        self,
        owner_id: int,
        regex_text: str,
        description: Optional[str] = None,
        apply_to_existing: bool = False,
        only_unassigned: bool = False,
    ) -> PatternApplyResult:
        """Create an owner pattern, optionally attributing existing transactions.

        Args:
            owner_id: Owner the pattern attributes to
            regex_text: Regular expression text
            description: Optional note
            apply_to_existing: Scan stored transactions after creating the pattern
            only_unassigned: When applying, skip transactions that already have an owner

        Returns:
            PatternApplyResult with the stored pattern and apply counters

        Raises:
            AuthorizationError: If the actor is not an admin
            ValidationError: If the pattern is rejected
            NotFoundError: If the owner doesn't exist
        """
        require_admin(self.actor, "create owner patterns")
        regex_text = validate_pattern(regex_text)
        if self.db.get_owner(owner_id) is None:
            raise NotFoundError(owner_not_found(owner_id))

        pattern_id = self.db.create_owner_pattern(owner_id, regex_text, description)
        pattern = self.db.get_owner_pattern(pattern_id)
        self.audit.log_create(AuditEntityType.PATTERN, pattern_id, {"kind": "owner", **_pattern_payload(pattern)})

        if not apply_to_existing:
            return PatternApplyResult(pattern=pattern)

        matched, updated, failed = self._apply_in_chunks(
            pattern.pattern,
            only_unowned=only_unassigned,
            only_untagged=False,
            apply=lambda ids: self.db.assign_owner_to_transactions(ids, owner_id),
        )
        logger.info(
            "Owner pattern %d applied: %d matched, %d updated, %d failed chunks",
            pattern_id, matched, updated, failed,
        )
        return PatternApplyResult(pattern=pattern, matched=matched, updated=updated, failed_chunks=failed)

    def get_owner_pattern(self, pattern_id: int) -> OwnerPattern:
        pattern = self.db.get_owner_pattern(pattern_id)
        if pattern is None:
            raise NotFoundError(pattern_not_found(pattern_id))
        return pattern

    def list_owner_patterns(self, owner_id: Optional[int] = None) -> list[OwnerPattern]:
        """List owner patterns in evaluation order."""
        return self.db.list_owner_patterns(owner_id=owner_id)

    def toggle_owner_pattern(self, pattern_id: int) -> OwnerPattern:
        """Flip an owner pattern's active flag."""
        require_admin(self.actor, "update owner patterns")
        old = self.get_owner_pattern(pattern_id)
        self.db.set_owner_pattern_active(pattern_id, not old.is_active)
        new = self.get_owner_pattern(pattern_id)
        self.audit.log_update(AuditEntityType.PATTERN, pattern_id, _pattern_payload(old), _pattern_payload(new))
        return new

    def delete_owner_pattern(self, pattern_id: int) -> None:
        require_admin(self.actor, "delete owner patterns")
        old = self.get_owner_pattern(pattern_id)
        self.db.delete_owner_pattern(pattern_id)
        self.audit.log_delete(AuditEntityType.PATTERN, pattern_id, {"kind": "owner", **_pattern_payload(old)})

    # Tag patterns
    def create_tag_pattern(
        self,
        tag_id: int,
        regex_text: str,
        description: Optional[str] = None,
        apply_to_existing: bool = False,
        only_unassigned: bool = False,
    ) -> PatternApplyResult:
        """Create a tag pattern, optionally tagging existing transactions.

        Args:
            tag_id: Tag the pattern applies
            regex_text: Regular expression text
            description: Optional note
            apply_to_existing: Scan stored transactions after creating the pattern
            only_unassigned: When applying, skip transactions that already carry any tag

        Returns:
            PatternApplyResult with the stored pattern and apply counters

        Raises:
            AuthorizationError: If the actor is not an admin
            ValidationError: If the pattern is rejected
            NotFoundError: If the tag doesn't exist
        """
        require_admin(self.actor, "create tag patterns")
        regex_text = validate_pattern(regex_text)
        if self.db.get_tag(tag_id) is None:
            raise NotFoundError(tag_not_found(tag_id))

        pattern_id = self.db.create_tag_pattern(tag_id, regex_text, description)
        pattern = self.db.get_tag_pattern(pattern_id)
        self.audit.log_create(AuditEntityType.PATTERN, pattern_id, {"kind": "tag", **_pattern_payload(pattern)})

        if not apply_to_existing:
            return PatternApplyResult(pattern=pattern)

        matched, updated, failed = self._apply_in_chunks(
            pattern.pattern,
            only_unowned=False,
            only_untagged=only_unassigned,
            apply=lambda ids: self.db.add_tag_to_transactions(ids, tag_id),
        )
        logger.info(
            "Tag pattern %d applied: %d matched, %d updated, %d failed chunks",
            pattern_id, matched, updated, failed,
        )
        return PatternApplyResult(pattern=pattern, matched=matched, updated=updated, failed_chunks=failed)

    def get_tag_pattern(self, pattern_id: int) -> TagPattern:
        pattern = self.db.get_tag_pattern(pattern_id)
        if pattern is None:
            raise NotFoundError(pattern_not_found(pattern_id))
        return pattern

    def list_tag_patterns(self, tag_id: Optional[int] = None) -> list[TagPattern]:
        """List tag patterns in evaluation order."""
        return self.db.list_tag_patterns(tag_id=tag_id)

    def toggle_tag_pattern(self, pattern_id: int) -> TagPattern:
        """Flip a tag pattern's active flag."""
        require_admin(self.actor, "update tag patterns")
        old = self.get_tag_pattern(pattern_id)
        self.db.set_tag_pattern_active(pattern_id, not old.is_active)
        new = self.get_tag_pattern(pattern_id)
        self.audit.log_update(AuditEntityType.PATTERN, pattern_id, _pattern_payload(old), _pattern_payload(new))
        return new

    def delete_tag_pattern(self, pattern_id: int) -> None:
        require_admin(self.actor, "delete tag patterns")
        old = self.get_tag_pattern(pattern_id)
        self.db.delete_tag_pattern(pattern_id)
        self.audit.log_delete(AuditEntityType.PATTERN, pattern_id, {"kind": "tag", **_pattern_payload(old)})

    # On-demand attribution
    def auto_assign_owner(self, transaction_id: int) -> Optional[int]:
        """Attribute one transaction to the first matching owner pattern.

        Returns:
            The assigned owner ID, or None if no active pattern matched (the
            transaction is left unchanged)

        Raises:
            AuthorizationError: If the actor is not an admin
            NotFoundError: If the transaction doesn't exist
            ValidationError: If the transaction has no text to match
        """
        require_admin(self.actor, "assign owners")
        transaction = self._require_matchable(transaction_id)
        match = first_match(self.db.list_owner_patterns(active_only=True), transaction.match_text)
        if match is None:
            return None
        if match.owner_id != transaction.owner_id:
            self.db.update_transaction(transaction_id, owner_id=match.owner_id)
            self.audit.log_update(
                AuditEntityType.TRANSACTION,
                transaction_id,
                {"owner_id": transaction.owner_id},
                {"owner_id": match.owner_id},
            )
        return match.owner_id

    def auto_assign_tags(self, transaction_id: int) -> list[int]:
        """Add every tag whose active pattern matches one transaction.

        Returns:
            IDs of the matching tags (already-present tags included)

        Raises:
            AuthorizationError: If the actor is not an admin
            NotFoundError: If the transaction doesn't exist
            ValidationError: If the transaction has no text to match
        """
        require_admin(self.actor, "assign tags")
        transaction = self._require_matchable(transaction_id)
        matches = match_patterns(self.db.list_tag_patterns(active_only=True), transaction.match_text)
        tag_ids = list(dict.fromkeys(p.tag_id for p in matches))
        for tag_id in tag_ids:
            if tag_id in transaction.tag_ids:
                continue
            self.db.add_tag_to_transactions([transaction_id], tag_id)
            self.audit.log_create(
                AuditEntityType.TRANSACTION_TAG,
                transaction_id,
                {"transaction_id": transaction_id, "tag_id": tag_id},
            )
        return tag_ids

    def _require_matchable(self, transaction_id: int) -> Transaction:
        transaction = self.db.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        if not transaction.match_text:
            raise ValidationError("Transaction has no description to match")
        return transaction

    def _apply_in_chunks(
        self,
        pattern: str,
        only_unowned: bool,
        only_untagged: bool,
        apply: Callable[[Sequence[int]], int],
    ) -> tuple[int, int, int]:
        """Run ``apply(ids)`` over matching transactions, one commit per chunk.

        Returns:
            Tuple of (matched, updated, failed_chunks)
        """
        matched = updated = failed = 0
        after_id = 0
        while True:
            chunk = self.db.list_transaction_chunk(
                after_id, self.chunk_size, only_unowned=only_unowned, only_untagged=only_untagged
            )
            if not chunk:
                break
            after_id = chunk[-1].id
            ids = [t.id for t in chunk if pattern_matches(pattern, t.match_text)]
            if not ids:
                continue
            matched += len(ids)
            try:
                updated += apply(ids)
            except Exception:
                failed += 1
                logger.exception("Failed to apply pattern to transactions %d..%d", ids[0], ids[-1])
        return matched, updated, failed


def _pattern_payload(pattern: Union[OwnerPattern, TagPattern]) -> dict:
    payload = {"pattern": pattern.pattern, "description": pattern.description, "is_active": pattern.is_active}
    if isinstance(pattern, OwnerPattern):
        payload["owner_id"] = pattern.owner_id
    else:
        payload["tag_id"] = pattern.tag_id
    return payload
