"""LPG refill commands."""

from decimal import Decimal

import click

from condobooks.cli.date_filters import parse_date_option
from condobooks.cli.error_handling import EXIT_FAILURE, handle_domain_error
from condobooks.cli.resolution import resolve_owner_or_exit, resolve_tag_or_exit
from condobooks.domain.entities import LpgRefill, MeterReading
from condobooks.domain.errors import DomainError
from condobooks.domain.lpg import LpgService, allocate, total_billed
from condobooks.utils.amount_parser import parse_amount
from condobooks.utils.money import format_currency


def _service(ctx) -> LpgService:
    return LpgService(ctx.obj["db"], ctx.obj["actor"])


def _decimal_or_exit(ctx, value: str, label: str) -> Decimal:
    try:
        return parse_amount(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(EXIT_FAILURE)


def parse_readings(ctx, values: tuple[str, ...]) -> list[MeterReading]:
    """Parse ``OWNER=CURRENT`` or ``OWNER=PREVIOUS:CURRENT`` reading options."""
    readings = []
    for value in values:
        owner, sep, numbers = value.partition("=")
        if not sep or not owner.strip() or not numbers.strip():
            click.echo(f"Error: Invalid reading '{value}', expected OWNER=CURRENT or OWNER=PREVIOUS:CURRENT", err=True)
            ctx.exit(EXIT_FAILURE)
        previous_text, colon, current_text = numbers.rpartition(":")
        previous = _decimal_or_exit(ctx, previous_text, "previous reading") if colon else None
        current = _decimal_or_exit(ctx, current_text, "current reading")
        readings.append(MeterReading(resolve_owner_or_exit(ctx, owner.strip()), current, previous))
    return readings


def _echo_refill(refill: LpgRefill, apartments: dict[int, str]) -> None:
    click.echo(f"Refill {refill.id} on {refill.refill_date:%Y-%m-%d}")
    click.echo(f"  Bill: {format_currency(refill.bill_amount)}")
    click.echo(f"  Gallons: {refill.gallons_refilled}")
    click.echo(f"  Efficiency: {refill.efficiency_percentage}%")
    click.echo(f"  Total billed: {format_currency(total_billed(refill))}")
    if refill.tag_id is not None:
        click.echo(f"  Payment tag: {refill.tag_id}")
    click.echo(f"\n  {'Apt':<8} {'Previous':>10} {'Current':>10} {'Used':>10} {'Share':>8} {'Owed':>14}")
    for e in refill.entries:
        apartment = apartments.get(e.owner_id, str(e.owner_id))
        click.echo(
            f"  {apartment:<8} {e.previous_reading:>10} {e.current_reading:>10} {e.consumption:>10} "
            f"{e.percentage:>7.2f}% {format_currency(e.total_amount):>14}"
        )


def _apartments(ctx) -> dict[int, str]:
    return {o.id: o.apartment_id for o in ctx.obj["db"].list_owners()}


@click.group()
def lpg_group():
    """Record LPG tank refills and split the bill."""
    pass


@lpg_group.command("preview")
@click.option("--bill", required=True, help="Bill amount")
@click.option("--efficiency", default="0", show_default=True, help="Surcharge percentage")
@click.option("--reading", "readings", multiple=True, required=True, help="OWNER=CURRENT or OWNER=PREVIOUS:CURRENT")
@click.pass_context
def preview_refill(ctx, bill: str, efficiency: str, readings: tuple[str, ...]):
    """Show how a bill would be split without recording anything."""
    bill_amount = _decimal_or_exit(ctx, bill, "bill amount")
    efficiency_percent = _decimal_or_exit(ctx, efficiency, "efficiency")
    meter_readings = parse_readings(ctx, readings)
    previous = _service(ctx).previous_readings()
    meter_readings = [
        r if r.previous_reading is not None else MeterReading(r.owner_id, r.current_reading, previous.get(r.owner_id))
        for r in meter_readings
    ]
    try:
        allocations = allocate(bill_amount, efficiency_percent, meter_readings)
    except DomainError as e:
        handle_domain_error(ctx, e)

    apartments = _apartments(ctx)
    for a in allocations:
        click.echo(
            f"{apartments.get(a.owner_id, a.owner_id):<8} used {a.consumption:>10} "
            f"{a.percentage:>7.2f}%  {format_currency(a.total_amount):>14}"
        )
    click.echo(f"Total: {format_currency(sum(a.total_amount for a in allocations))}")


@lpg_group.command("refill")
@click.option("--bill", required=True, help="Bill amount")
@click.option("--gallons", required=True, help="Gallons delivered")
@click.option("--date", "date_", default="today", show_default=True, help="Refill date")
@click.option("--efficiency", default="0", show_default=True, help="Surcharge percentage")
@click.option("--tag", help="Tag that payments for this refill will carry")
@click.option("--reading", "readings", multiple=True, required=True, help="OWNER=CURRENT or OWNER=PREVIOUS:CURRENT")
@click.pass_context
def create_refill(ctx, bill, gallons, date_, efficiency, tag, readings):
    """Record a refill and each apartment's share.

    A reading without a previous value continues from the owner's last
    recorded reading.

    Examples:
        condobooks lpg refill --bill 12000 --gallons 100 --efficiency 5 \\
            --tag "LPG March" --reading 1A=1520 --reading 2B=980
    """
    refill_date = parse_date_option(ctx, date_, "date")
    tag_id = resolve_tag_or_exit(ctx, tag) if tag else None
    try:
        refill = _service(ctx).create_refill(
            bill_amount=_decimal_or_exit(ctx, bill, "bill amount"),
            gallons_refilled=_decimal_or_exit(ctx, gallons, "gallons"),
            refill_date=refill_date,
            efficiency_percentage=_decimal_or_exit(ctx, efficiency, "efficiency"),
            readings=parse_readings(ctx, readings),
            tag_id=tag_id,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Recorded refill {refill.id}")
    _echo_refill(refill, _apartments(ctx))


@lpg_group.command("list")
@click.pass_context
def list_refills(ctx):
    """List refills, newest first."""
    refills = _service(ctx).list_refills()
    if not refills:
        click.echo("No refills found.")
        return
    for r in refills:
        click.echo(
            f"{r.id:<5} {r.refill_date:%Y-%m-%d}  {format_currency(r.bill_amount):>14}  "
            f"{r.gallons_refilled:>8} gal  {len(r.entries)} apartments"
        )


@lpg_group.command("show")
@click.argument("refill_id", type=int)
@click.pass_context
def show_refill(ctx, refill_id: int):
    """Show a refill with every apartment's share."""
    try:
        refill = _service(ctx).get_refill(refill_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    _echo_refill(refill, _apartments(ctx))


@lpg_group.command("history")
@click.argument("owner")
@click.pass_context
def owner_history(ctx, owner: str):
    """Show an owner's share of every refill."""
    owner_id = resolve_owner_or_exit(ctx, owner)
    entries = _service(ctx).refills_for_owner(owner_id)
    if not entries:
        click.echo("No refills found.")
        return
    for e in entries:
        click.echo(
            f"Refill {e.refill_id:<5} used {e.consumption:>10}  {e.percentage:>7.2f}%  "
            f"{format_currency(e.total_amount):>14}"
        )


@lpg_group.command("delete")
@click.argument("refill_id", type=int)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_refill(ctx, refill_id: int, yes: bool):
    """Delete a refill and its entries."""
    if not yes and not click.confirm(f"Are you sure you want to delete refill {refill_id}?"):
        click.echo("Deletion cancelled.")
        return
    try:
        _service(ctx).delete_refill(refill_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted refill {refill_id}")


def register_commands(cli):
    """Register LPG commands with main CLI."""
    cli.add_command(lpg_group, name="lpg")
