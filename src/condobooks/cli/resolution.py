"""CLI helpers for resolving owners and tags from user input."""

from __future__ import annotations

import click

from condobooks.database.base import Database
from condobooks.domain.errors import NotFoundError, owner_not_found, tag_not_found
from condobooks.cli.error_handling import handle_domain_error


def resolve_owner(db: Database, owner: str | int) -> int:
    """Resolve an apartment identifier or owner ID to an owner ID.

    The apartment is tried first, so an apartment named "12" wins over owner 12.

    Raises:
        NotFoundError: If no owner matches
    """
    by_apartment = db.get_owner_by_apartment(str(owner).strip())
    if by_apartment is not None:
        return by_apartment.id
    try:
        owner_id = int(owner)
    except ValueError:
        raise NotFoundError(f"Owner '{owner}' not found") from None
    if db.get_owner(owner_id) is None:
        raise NotFoundError(owner_not_found(owner_id))
    return owner_id


def resolve_tag(db: Database, tag: str | int) -> int:
    """Resolve a tag name or ID to a tag ID.

    Raises:
        NotFoundError: If no tag matches
    """
    by_name = db.get_tag_by_name(str(tag).strip())
    if by_name is not None:
        return by_name.id
    try:
        tag_id = int(tag)
    except ValueError:
        raise NotFoundError(f"Tag '{tag}' not found") from None
    if db.get_tag(tag_id) is None:
        raise NotFoundError(tag_not_found(tag_id))
    return tag_id


def resolve_owner_or_exit(ctx: click.Context, owner: str | int) -> int:
    """Resolve owner, or exit with a CLI error."""
    try:
        return resolve_owner(ctx.obj["db"], owner)
    except NotFoundError as exc:
        handle_domain_error(ctx, exc)


def resolve_tag_or_exit(ctx: click.Context, tag: str | int) -> int:
    """Resolve tag, or exit with a CLI error."""
    try:
        return resolve_tag(ctx.obj["db"], tag)
    except NotFoundError as exc:
        handle_domain_error(ctx, exc)
