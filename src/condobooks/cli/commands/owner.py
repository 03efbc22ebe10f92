"""Owner and owner pattern commands."""

import click

from condobooks.cli.error_handling import handle_domain_error
from condobooks.cli.resolution import resolve_owner_or_exit
from condobooks.domain.errors import DomainError
from condobooks.domain.owner import OwnerService
from condobooks.domain.patterns import PatternApplyResult, PatternService


def _service(ctx) -> OwnerService:
    return OwnerService(ctx.obj["db"], ctx.obj["actor"])


def _pattern_service(ctx) -> PatternService:
    return PatternService(ctx.obj["db"], ctx.obj["actor"], chunk_size=ctx.obj["settings"].pattern_chunk_size)


def echo_apply_result(result: PatternApplyResult, noun: str) -> None:
    """Report a pattern creation and its retroactive pass."""
    click.echo(f"Created pattern {result.pattern.id}: {result.pattern.pattern}")
    if result.matched or result.updated or result.failed_chunks:
        click.echo(f"  Matched {result.matched} transaction(s), {noun} {result.updated}")
    if result.failed_chunks:
        click.echo(
            f"  Warning: {result.failed_chunks} chunk(s) failed and were skipped; re-run to finish", err=True
        )


@click.group()
def owner_group():
    """Manage apartment owners."""
    pass


@owner_group.command("create")
@click.argument("name")
@click.argument("apartment")
@click.option("--email", help="Contact email")
@click.option("--phone", help="Contact phone")
@click.pass_context
def create_owner(ctx, name: str, apartment: str, email: str | None, phone: str | None):
    """Create an owner for an apartment.

    Examples:
        condobooks owner create "Ana Pérez" 3B --email ana@example.com
    """
    try:
        owner = _service(ctx).create_owner(name=name, apartment_id=apartment, email=email, phone=phone)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created owner '{owner.name}' for apartment {owner.apartment_id} (ID: {owner.id})")


@owner_group.command("list")
@click.option("--all", "include_inactive", is_flag=True, help="Include inactive owners")
@click.pass_context
def list_owners(ctx, include_inactive: bool):
    """List owners ordered by apartment."""
    owners = _service(ctx).list_owners(include_inactive=include_inactive)
    if not owners:
        click.echo("No owners found.")
        return

    click.echo(f"{'ID':<5} {'Apt':<8} {'Name':<30} {'Email':<30} Status")
    click.echo("-" * 85)
    for o in owners:
        status = "active" if o.is_active else "inactive"
        click.echo(f"{o.id:<5} {o.apartment_id:<8} {o.name:<30} {(o.email or ''):<30} {status}")


@owner_group.command("show")
@click.argument("owner")
@click.pass_context
def show_owner(ctx, owner: str):
    """Show an owner with their patterns. OWNER is an apartment or ID."""
    owner_id = resolve_owner_or_exit(ctx, owner)
    o = _service(ctx).require_owner(owner_id)
    click.echo(f"Owner {o.id}: {o.name}")
    click.echo(f"  Apartment: {o.apartment_id}")
    click.echo(f"  Email: {o.email or ''}")
    click.echo(f"  Phone: {o.phone or ''}")
    click.echo(f"  Status: {'active' if o.is_active else 'inactive'}")

    patterns = _pattern_service(ctx).list_owner_patterns(owner_id=owner_id)
    if patterns:
        click.echo("  Patterns:")
        for p in patterns:
            click.echo(f"    [{p.id}] {p.pattern}{'' if p.is_active else ' (inactive)'}")


@owner_group.command("update")
@click.argument("owner")
@click.option("--name", help="New name")
@click.option("--apartment", help="New apartment")
@click.option("--email", help="New email (empty string to clear)")
@click.option("--phone", help="New phone (empty string to clear)")
@click.pass_context
def update_owner(ctx, owner: str, name, apartment, email, phone):
    """Update owner details."""
    owner_id = resolve_owner_or_exit(ctx, owner)
    try:
        updated = _service(ctx).update_owner(
            owner_id, name=name, apartment_id=apartment, email=email, phone=phone
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Updated owner {updated.id}")


@owner_group.command("deactivate")
@click.argument("owner")
@click.pass_context
def deactivate_owner(ctx, owner: str):
    """Mark an owner inactive."""
    owner_id = resolve_owner_or_exit(ctx, owner)
    try:
        _service(ctx).set_active(owner_id, False)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deactivated owner {owner_id}")


@owner_group.command("activate")
@click.argument("owner")
@click.pass_context
def activate_owner(ctx, owner: str):
    """Mark an owner active."""
    owner_id = resolve_owner_or_exit(ctx, owner)
    try:
        _service(ctx).set_active(owner_id, True)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Activated owner {owner_id}")


@owner_group.command("delete")
@click.argument("owner")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_owner(ctx, owner: str, yes: bool):
    """Delete an owner. Their transactions are kept and become unassigned."""
    owner_id = resolve_owner_or_exit(ctx, owner)
    if not yes and not click.confirm(f"Are you sure you want to delete owner {owner_id}?"):
        click.echo("Deletion cancelled.")
        return
    try:
        _service(ctx).delete_owner(owner_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted owner {owner_id}")


@owner_group.group("pattern")
def pattern_group():
    """Manage owner recognition patterns."""
    pass


@pattern_group.command("add")
@click.argument("owner")
@click.argument("regex")
@click.option("--description", help="What the pattern recognizes")
@click.option("--apply", "apply_to_existing", is_flag=True, help="Also attribute existing transactions")
@click.option("--only-unassigned", is_flag=True, help="With --apply, leave already attributed rows alone")
@click.pass_context
def add_pattern(ctx, owner: str, regex: str, description, apply_to_existing: bool, only_unassigned: bool):
    """Add a regex that attributes matching transactions to OWNER.

    Examples:
        condobooks owner pattern add 3B "TRANSF.*PEREZ" --apply --only-unassigned
    """
    owner_id = resolve_owner_or_exit(ctx, owner)
    try:
        result = _pattern_service(ctx).create_owner_pattern(
            owner_id,
            regex,
            description=description,
            apply_to_existing=apply_to_existing,
            only_unassigned=only_unassigned,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    echo_apply_result(result, "attributed")


@pattern_group.command("list")
@click.option("--owner", help="Only patterns of this owner (apartment or ID)")
@click.pass_context
def list_patterns(ctx, owner: str | None):
    """List owner patterns."""
    owner_id = resolve_owner_or_exit(ctx, owner) if owner else None
    patterns = _pattern_service(ctx).list_owner_patterns(owner_id=owner_id)
    if not patterns:
        click.echo("No patterns found.")
        return
    for p in patterns:
        status = "active" if p.is_active else "inactive"
        click.echo(f"{p.id:<5} owner {p.owner_id:<5} {status:<9} {p.pattern}  {p.description or ''}")


@pattern_group.command("toggle")
@click.argument("pattern_id", type=int)
@click.pass_context
def toggle_pattern(ctx, pattern_id: int):
    """Activate or deactivate an owner pattern."""
    try:
        pattern = _pattern_service(ctx).toggle_owner_pattern(pattern_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Pattern {pattern_id} is now {'active' if pattern.is_active else 'inactive'}")


@pattern_group.command("delete")
@click.argument("pattern_id", type=int)
@click.pass_context
def delete_pattern(ctx, pattern_id: int):
    """Delete an owner pattern."""
    try:
        _pattern_service(ctx).delete_owner_pattern(pattern_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted pattern {pattern_id}")


def register_commands(cli):
    """Register owner commands with main CLI."""
    cli.add_command(owner_group, name="owner")
