"""Tag domain service."""

from dataclasses import dataclass, field
from typing import Optional

from condobooks.database.base import Database
from condobooks.domain.access import require_admin
from condobooks.domain.audit import AuditService
from condobooks.domain.entities import Actor, AuditEntityType, Tag
from condobooks.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    duplicate_tag_name,
    tag_cycle,
    tag_not_found,
)


@dataclass
class TagNode:
    """A tag with its children, for tree display."""

    tag: Tag
    children: list["TagNode"] = field(default_factory=list)


class TagService:
    """Service for managing tags and their hierarchy."""

    def __init__(self, db: Database, actor: Optional[Actor] = None, audit: Optional[AuditService] = None):
        """Initialize tag service.

        Args:
            db: Database instance
            actor: Acting identity for mutating operations
            audit: Audit service (defaults to one bound to ``actor``)
        """
        self.db = db
        self.actor = actor
        self.audit = audit or AuditService(db, actor)

    def create_tag(
        self,
        name: str,
        description: Optional[str] = None,
        color: Optional[str] = None,
        parent_id: Optional[int] = None,
    ) -> Tag:
        """Create a tag.

        Raises:
            AuthorizationError: If the actor is not an admin
            ValidationError: If name is blank
            ConflictError: If the name is taken
            NotFoundError: If the parent doesn't exist
        """
        require_admin(self.actor, "create tags")
        name = (name or "").strip()
        if not name:
            raise ValidationError("Tag name is required")
        if self.db.get_tag_by_name(name) is not None:
            raise ConflictError(duplicate_tag_name(name))
        if parent_id is not None:
            self.require_tag(parent_id)

        tag_id = self.db.create_tag(name=name, description=description, color=color, parent_id=parent_id)
        tag = self.require_tag(tag_id)
        self.audit.log_create(AuditEntityType.TAG, tag_id, tag)
        return tag

    def get_tag(self, tag_id: int) -> Optional[Tag]:
        return self.db.get_tag(tag_id)

    def require_tag(self, tag_id: int) -> Tag:
        """Get tag by ID or raise NotFoundError."""
        tag = self.db.get_tag(tag_id)
        if tag is None:
            raise NotFoundError(tag_not_found(tag_id))
        return tag

    def get_tag_by_name(self, name: str) -> Optional[Tag]:
        return self.db.get_tag_by_name(name)

    def list_tags(self) -> list[Tag]:
        """List all tags ordered by name."""
        return self.db.list_tags()

    def tree(self) -> list[TagNode]:
        """Tags arranged under their parents; roots and children ordered by name."""
        tags = self.db.list_tags()
        nodes = {tag.id: TagNode(tag) for tag in tags}
        roots = []
        for tag in tags:
            parent = nodes.get(tag.parent_id) if tag.parent_id is not None else None
            if parent is None:
                roots.append(nodes[tag.id])
            else:
                parent.children.append(nodes[tag.id])
        return roots

    def update_tag(
        self,
        tag_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Tag:
        """Update tag details. Arguments left as None are not changed.

        Raises:
            AuthorizationError: If the actor is not an admin
            NotFoundError: If tag doesn't exist
            ConflictError: If the new name is taken
        """
        require_admin(self.actor, "update tags")
        old = self.require_tag(tag_id)
        fields = {}
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Tag name is required")
            other = self.db.get_tag_by_name(name)
            if other is not None and other.id != tag_id:
                raise ConflictError(duplicate_tag_name(name))
            fields["name"] = name
        if description is not None:
            fields["description"] = description or None
        if color is not None:
            fields["color"] = color or None
        if not fields:
            return old

        self.db.update_tag(tag_id, **fields)
        new = self.require_tag(tag_id)
        self.audit.log_update(AuditEntityType.TAG, tag_id, old, new)
        return new

    def would_create_cycle(self, tag_id: int, parent_id: int) -> bool:
        """True if making ``parent_id`` the parent of ``tag_id`` forms a loop."""
        seen = set()
        current: Optional[int] = parent_id
        while current is not None:
            if current == tag_id:
                return True
            if current in seen:
                # Existing data already loops; refuse to extend it.
                return True
            seen.add(current)
            parent = self.db.get_tag(current)
            current = parent.parent_id if parent else None
        return False

    def set_parent(self, tag_id: int, parent_id: Optional[int]) -> Tag:
        """Move a tag under another tag, or to the root with ``parent_id=None``.

        Raises:
            AuthorizationError: If the actor is not an admin
            NotFoundError: If either tag doesn't exist
            ValidationError: If the move would create a cycle
        """
        require_admin(self.actor, "update tags")
        old = self.require_tag(tag_id)
        if parent_id is not None:
            self.require_tag(parent_id)
            if self.would_create_cycle(tag_id, parent_id):
                raise ValidationError(tag_cycle(tag_id, parent_id))

        self.db.update_tag(tag_id, parent_id=parent_id)
        new = self.require_tag(tag_id)
        self.audit.log_update(AuditEntityType.TAG, tag_id, old, new)
        return new

    def delete_tag(self, tag_id: int) -> None:
        """Delete a tag. Its children become roots; its patterns and links go.

        Raises:
            AuthorizationError: If the actor is not an admin
            NotFoundError: If tag doesn't exist
        """
        require_admin(self.actor, "delete tags")
        tag = self.require_tag(tag_id)
        self.db.delete_tag(tag_id)
        self.audit.log_delete(AuditEntityType.TAG, tag_id, tag)

    def expand_tag_filter(self, tag_id: int) -> tuple[int, ...]:
        """The tag plus its direct children (one level, not transitive)."""
        self.require_tag(tag_id)
        return (tag_id, *self.db.list_child_tag_ids(tag_id))
