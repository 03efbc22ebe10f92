"""Audit trail commands."""

import json

import click

from condobooks.cli.date_filters import resolve_cli_date_range
from condobooks.domain.audit import AuditService
from condobooks.domain.entities import AuditEntityType, AuditEventType, AuditLogEntry, AuditLogFilters

EVENT_TYPES = [e.value for e in AuditEventType]
ENTITY_TYPES = [e.value for e in AuditEntityType]


def _service(ctx) -> AuditService:
    return AuditService(ctx.obj["db"], ctx.obj["actor"])


def _echo_entry(entry: AuditLogEntry, verbose: bool) -> None:
    who = entry.user_email or entry.user_id or "-"
    target = f"{entry.entity_type.value} {entry.entity_id}" if entry.entity_id else entry.entity_type.value
    click.echo(f"{entry.id:<6} {entry.created_at:%Y-%m-%d %H:%M:%S}  {entry.event_type.value:<12} {target:<24} {who}")
    if verbose and entry.details:
        click.echo("       " + json.dumps(entry.details, sort_keys=True, ensure_ascii=False))


@click.group()
def audit_group():
    """Inspect the audit trail."""
    pass


@audit_group.command("list")
@click.option("--event", type=click.Choice(EVENT_TYPES, case_sensitive=False), help="Event type")
@click.option("--entity", type=click.Choice(ENTITY_TYPES, case_sensitive=False), help="Entity type")
@click.option("--entity-id", help="Entity ID (use with --entity)")
@click.option("--user-email", help="Only actions by this email")
@click.option("--system/--no-system", "is_system_event", default=None, help="Only (or no) system events")
@click.option("--start-date", help="Start date")
@click.option("--end-date", help="End date, inclusive")
@click.option("--page", type=click.IntRange(min=1), default=1, show_default=True)
@click.option("--limit", type=click.IntRange(min=1), default=50, show_default=True)
@click.option("--verbose", "-v", is_flag=True, help="Show event details")
@click.pass_context
def list_audit(ctx, event, entity, entity_id, user_email, is_system_event, start_date, end_date, page, limit, verbose):
    """List audit records, newest first."""
    start, end = resolve_cli_date_range(ctx, start_date=start_date, end_date=end_date)
    filters = AuditLogFilters(
        event_type=AuditEventType(event.upper()) if event else None,
        entity_type=AuditEntityType(entity.upper()) if entity else None,
        entity_id=entity_id,
        user_email=user_email,
        is_system_event=is_system_event,
        date_from=start,
        date_to=end,
    )
    entries, pagination = _service(ctx).list_entries(filters, page=page, limit=limit)
    if not entries:
        click.echo("No audit records found.")
        return
    click.echo(f"{pagination.total_count} record(s), page {pagination.current_page} of {pagination.page_count}")
    for entry in entries:
        _echo_entry(entry, verbose)


@audit_group.command("history")
@click.argument("entity", type=click.Choice(ENTITY_TYPES, case_sensitive=False))
@click.argument("entity_id")
@click.pass_context
def history(ctx, entity: str, entity_id: str):
    """Every record about one entity, e.g. 'audit history OWNER 3'."""
    entries = _service(ctx).entity_history(AuditEntityType(entity.upper()), entity_id)
    if not entries:
        click.echo("No audit records found.")
        return
    for entry in entries:
        _echo_entry(entry, verbose=True)


@audit_group.command("sign-in")
@click.pass_context
def sign_in(ctx):
    """Record the start of an operator session."""
    actor = ctx.obj["actor"]
    _service(ctx).log_sign_in(actor)
    click.echo(f"Signed in as {actor.user_id}")


@audit_group.command("sign-out")
@click.pass_context
def sign_out(ctx):
    """Record the end of an operator session."""
    actor = ctx.obj["actor"]
    _service(ctx).log_sign_out(actor)
    click.echo(f"Signed out {actor.user_id}")


def register_commands(cli):
    """Register audit commands with main CLI."""
    cli.add_command(audit_group, name="audit")
