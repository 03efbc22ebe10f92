"""Account balance commands."""

import click

from condobooks.cli.date_filters import parse_date_option
from condobooks.cli.error_handling import EXIT_FAILURE, handle_domain_error
from condobooks.domain.balance import BalanceService
from condobooks.domain.errors import DomainError
from condobooks.utils.amount_parser import parse_amount
from condobooks.utils.money import format_currency


def _service(ctx) -> BalanceService:
    return BalanceService(ctx.obj["db"], ctx.obj["actor"])


@click.group()
def balance_group():
    """Estimated bank balance from a known checkpoint."""
    pass


@balance_group.command("show")
@click.pass_context
def show_balance(ctx):
    """Checkpoint balance plus money in minus money out since its date."""
    estimate = _service(ctx).estimate_balance()
    if estimate.checkpoint_balance is None:
        click.echo("No balance checkpoint set. Use 'condobooks balance set'.")
        return
    click.echo(f"Checkpoint: {format_currency(estimate.checkpoint_balance)} on {estimate.checkpoint_date:%Y-%m-%d}")
    click.echo(f"Transactions since: {estimate.transaction_count_since}")
    click.echo(f"Estimated balance: {format_currency(estimate.estimated_balance)}")


@balance_group.command("set")
@click.argument("amount")
@click.option("--date", "date_", default="today", show_default=True, help="Date the balance was read")
@click.pass_context
def set_balance(ctx, amount: str, date_: str):
    """Record the bank balance as of a date.

    Examples:
        condobooks balance set 152300.75 --date 01/03/2024
    """
    try:
        balance = parse_amount(amount)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(EXIT_FAILURE)
    checkpoint_date = parse_date_option(ctx, date_, "date")
    try:
        checkpoint = _service(ctx).set_checkpoint(balance, checkpoint_date)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Balance set to {format_currency(checkpoint.balance)} on {checkpoint.date:%Y-%m-%d}")


@balance_group.command("clear")
@click.pass_context
def clear_balance(ctx):
    """Remove the balance checkpoint."""
    try:
        _service(ctx).clear_checkpoint()
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo("Balance checkpoint cleared")


def register_commands(cli):
    """Register balance commands with main CLI."""
    cli.add_command(balance_group, name="balance")
