"""LPG payment tracking commands."""

import click

from condobooks.cli.error_handling import handle_domain_error
from condobooks.cli.resolution import resolve_tag_or_exit
from condobooks.domain.errors import DomainError
from condobooks.domain.payments import PaymentService
from condobooks.utils.money import format_currency


@click.group()
def payments_group():
    """Track who has paid their LPG share."""
    pass


@payments_group.command("pending")
@click.option("--refill", "refill_id", type=int, help="Only this refill (default: all refills combined)")
@click.option("--all", "show_paid", is_flag=True, help="Also list owners who are paid up")
@click.pass_context
def pending(ctx, refill_id: int | None, show_paid: bool):
    """Amount owed, paid and remaining per owner.

    Payments are money-in transactions attributed to the owner and carrying
    the refill's tag.
    """
    db = ctx.obj["db"]
    service = PaymentService(db)
    try:
        if refill_id is not None:
            rows = service.pending_payments_for_refill(refill_id)
        else:
            rows = service.all_pending_payments()
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not show_paid:
        rows = [r for r in rows if r.remaining_balance > 0]
    if not rows:
        click.echo("No pending payments.")
        return

    apartments = {o.id: o.apartment_id for o in db.list_owners()}
    click.echo(f"{'Apt':<8} {'Owed':>14} {'Paid':>14} {'Remaining':>14}  Status")
    click.echo("-" * 65)
    for r in rows:
        click.echo(
            f"{apartments.get(r.owner_id, str(r.owner_id)):<8} {format_currency(r.amount_owed):>14} "
            f"{format_currency(r.amount_paid):>14} {format_currency(r.remaining_balance):>14}  {r.status.value}"
        )
    click.echo("-" * 65)
    click.echo(f"Outstanding: {format_currency(sum(max(r.remaining_balance, 0) for r in rows))}")


@payments_group.command("by-tag")
@click.argument("tags", nargs=-1, required=True)
@click.pass_context
def by_tag(ctx, tags: tuple[str, ...]):
    """What every active owner paid under the given tags."""
    db = ctx.obj["db"]
    tag_ids = [resolve_tag_or_exit(ctx, t) for t in tags]
    try:
        rows = PaymentService(db).tag_payment_breakdown(tag_ids)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not rows:
        click.echo("No active owners.")
        return
    apartments = {o.id: o.apartment_id for o in db.list_owners()}
    for r in rows:
        last = f"{r.last_payment_date:%Y-%m-%d}" if r.last_payment_date else "-"
        click.echo(
            f"{apartments.get(r.owner_id, str(r.owner_id)):<8} {format_currency(r.amount_paid):>14} "
            f"{r.payment_count:>3} payment(s)  last {last:<10}  {r.status.value}"
        )


def register_commands(cli):
    """Register payment commands with main CLI."""
    cli.add_command(payments_group, name="payments")
