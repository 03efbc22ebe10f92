"""Transaction management commands."""

from typing import Iterable

import click

from condobooks.cli.date_filters import parse_date_option, resolve_cli_date_range
from condobooks.cli.error_handling import EXIT_FAILURE, handle_domain_error
from condobooks.cli.resolution import resolve_owner_or_exit, resolve_tag_or_exit
from condobooks.domain.entities import Transaction, TransactionFilters, TransactionType
from condobooks.domain.errors import DomainError
from condobooks.domain.patterns import PatternService
from condobooks.domain.transaction import DEFAULT_PAGE_SIZE, TransactionService
from condobooks.utils.amount_parser import parse_amount
from condobooks.utils.money import format_currency

TYPE_CHOICES = {"in": TransactionType.MONEY_IN, "out": TransactionType.MONEY_OUT}


def _service(ctx) -> TransactionService:
    return TransactionService(ctx.obj["db"], ctx.obj["actor"])


def echo_transaction_table(transactions: Iterable[Transaction], show_duplicates: bool = False) -> None:
    """Print transactions as a compact table."""
    click.echo("-" * 100)
    click.echo(f"{'ID':<6} {'Date':<12} {'Amount':>14} {'Owner':<6} {'Description':<50}")
    click.echo("-" * 100)
    for txn in transactions:
        amount = format_currency(txn.signed_amount)
        owner = str(txn.owner_id) if txn.owner_id is not None else ""
        description = (txn.description or txn.bank_description or "")[:50]
        marker = " (dup)" if show_duplicates and txn.is_duplicate else ""
        click.echo(f"{txn.id:<6} {txn.date:%Y-%m-%d}   {amount:>14} {owner:<6} {description}{marker}")


def echo_transaction_detail(txn: Transaction) -> None:
    click.echo(f"\nTransaction ID: {txn.id}")
    click.echo(f"  Date: {txn.date:%Y-%m-%d}")
    click.echo(f"  Type: {'money in' if txn.type is TransactionType.MONEY_IN else 'money out'}")
    click.echo(f"  Amount: {format_currency(txn.amount)}")
    click.echo(f"  Description: {txn.description or ''}")
    if txn.bank_description:
        click.echo(f"  Bank description: {txn.bank_description}")
    click.echo(f"  Owner: {txn.owner_id if txn.owner_id is not None else 'Unassigned'}")
    if txn.category:
        click.echo(f"  Category: {txn.category}")
    if txn.reference:
        click.echo(f"  Reference: {txn.reference}")
    if txn.serial:
        click.echo(f"  Serial: {txn.serial}")
    if txn.tag_ids:
        click.echo(f"  Tags: {', '.join(str(t) for t in txn.tag_ids)}")
    if txn.batch_id is not None:
        click.echo(f"  Batch: {txn.batch_id}{' (duplicate)' if txn.is_duplicate else ''}")


@click.group()
def transaction_group():
    """Manage transactions."""
    pass


@transaction_group.command("add")
@click.option("--type", "type_", type=click.Choice(sorted(TYPE_CHOICES)), required=True, help="Money in or out")
@click.option("--amount", required=True, help="Amount (e.g., 1500 or RD$1,500.00)")
@click.option("--date", "date_", default="today", show_default=True, help="Transaction date")
@click.option("--description", help="Description")
@click.option("--owner", help="Owner apartment or ID")
@click.option("--reference", help="Bank reference")
@click.option("--category", help="Free-text category")
@click.option("--tag", "tags", multiple=True, help="Tag name or ID (repeatable)")
@click.pass_context
def add_transaction(ctx, type_, amount, date_, description, owner, reference, category, tags):
    """Record a transaction by hand.

    Examples:
        condobooks transaction add --type in --amount 2500 --owner 3B --tag "LPG March"
    """
    txn_date = parse_date_option(ctx, date_, "date")
    try:
        txn_amount = parse_amount(amount)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(EXIT_FAILURE)

    owner_id = resolve_owner_or_exit(ctx, owner) if owner else None
    tag_ids = [resolve_tag_or_exit(ctx, t) for t in tags]
    try:
        txn = _service(ctx).create_transaction(
            type=TYPE_CHOICES[type_],
            amount=txn_amount,
            date=txn_date,
            description=description,
            owner_id=owner_id,
            reference=reference,
            category=category,
            tag_ids=tag_ids,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created transaction {txn.id}")


@transaction_group.command("list")
@click.option("--start-date", help="Start date (DD/MM/YYYY, YYYY-MM-DD, 'today', 'yesterday')")
@click.option("--end-date", help="End date, inclusive")
@click.option("--owner", help="Owner apartment or ID")
@click.option("--unassigned", is_flag=True, help="Only transactions without an owner")
@click.option("--type", "type_", type=click.Choice(sorted(TYPE_CHOICES)), help="Money in or out")
@click.option("--tag", help="Tag name or ID; also matches its direct children")
@click.option("--untagged", is_flag=True, help="Only transactions without tags")
@click.option("--search", help="Text to look for in descriptions, reference and serial")
@click.option("--page", type=click.IntRange(min=1), default=1, show_default=True)
@click.option("--limit", type=click.IntRange(min=1), default=DEFAULT_PAGE_SIZE, show_default=True)
@click.option("--verbose", "-v", is_flag=True, help="Show every field")
@click.pass_context
def list_transactions(
    ctx, start_date, end_date, owner, unassigned, type_, tag, untagged, search, page, limit, verbose
):
    """View transactions with optional filters, newest first.

    Duplicate rows from re-imported statements are never listed.
    """
    start, end = resolve_cli_date_range(ctx, start_date=start_date, end_date=end_date)
    owner_id = resolve_owner_or_exit(ctx, owner) if owner else None
    tag_id = resolve_tag_or_exit(ctx, tag) if tag else None

    filters = TransactionFilters(
        owner_id=owner_id,
        no_owner=unassigned,
        type=TYPE_CHOICES[type_] if type_ else None,
        no_tags=untagged,
        start_date=start,
        end_date=end,
        search=search,
    )
    try:
        result = _service(ctx).list_transactions(filters, page=page, limit=limit, tag_id=tag_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not result.transactions:
        click.echo("No transactions found.")
        return

    p = result.pagination
    click.echo(f"\nFound {p.total_count} transaction(s), page {p.current_page} of {p.page_count}:")
    if verbose:
        for txn in result.transactions:
            echo_transaction_detail(txn)
    else:
        echo_transaction_table(result.transactions)

    money_in = sum(t.amount for t in result.transactions if t.type is TransactionType.MONEY_IN)
    money_out = sum(t.amount for t in result.transactions if t.type is TransactionType.MONEY_OUT)
    click.echo("-" * 100)
    click.echo(f"Page totals: in {format_currency(money_in)} | out {format_currency(money_out)}")


@transaction_group.command("show")
@click.argument("transaction_id", type=int)
@click.pass_context
def show_transaction(ctx, transaction_id: int):
    """Show one transaction."""
    try:
        txn = _service(ctx).require_transaction(transaction_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    echo_transaction_detail(txn)


@transaction_group.command("update")
@click.argument("transaction_id", type=int)
@click.option("--description", help="New description, or empty string to clear")
@click.option("--owner", help="Owner apartment or ID, or empty string to unassign")
@click.option("--category", help="Category, or empty string to clear")
@click.pass_context
def update_transaction(ctx, transaction_id: int, description, owner, category):
    """Update description, owner or category.

    The bank description recorded at import is never changed.

    Examples:
        condobooks transaction update 12 --owner 3B
        condobooks transaction update 12 --owner ""   # Unassign
    """
    if description is None and owner is None and category is None:
        click.echo("Error: Nothing to update.", err=True)
        ctx.exit(EXIT_FAILURE)

    service = _service(ctx)
    try:
        if description is not None:
            service.update_description(transaction_id, description)
        if owner is not None:
            owner_id = resolve_owner_or_exit(ctx, owner) if owner else None
            service.set_owner(transaction_id, owner_id)
        if category is not None:
            service.set_category(transaction_id, category)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Updated transaction {transaction_id}")


@transaction_group.command("tag")
@click.argument("transaction_id", type=int)
@click.argument("tag")
@click.option("--remove", is_flag=True, help="Remove the tag instead of adding it")
@click.pass_context
def tag_transaction(ctx, transaction_id: int, tag: str, remove: bool):
    """Add or remove a tag on a transaction."""
    tag_id = resolve_tag_or_exit(ctx, tag)
    service = _service(ctx)
    try:
        if remove:
            changed = service.remove_tag(transaction_id, tag_id)
        else:
            changed = service.add_tag(transaction_id, tag_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if remove:
        click.echo(f"Removed tag {tag_id}" if changed else f"Transaction {transaction_id} does not have tag {tag_id}")
    else:
        click.echo(f"Added tag {tag_id}" if changed else f"Transaction {transaction_id} already has tag {tag_id}")


@transaction_group.command("auto-assign")
@click.argument("transaction_id", type=int)
@click.pass_context
def auto_assign(ctx, transaction_id: int):
    """Run the active owner and tag patterns against one transaction."""
    service = PatternService(ctx.obj["db"], ctx.obj["actor"], chunk_size=ctx.obj["settings"].pattern_chunk_size)
    try:
        owner_id = service.auto_assign_owner(transaction_id)
        tag_ids = service.auto_assign_tags(transaction_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Owner: {owner_id if owner_id is not None else 'no pattern matched'}")
    click.echo(f"Tags: {', '.join(str(t) for t in tag_ids) if tag_ids else 'no pattern matched'}")


def register_commands(cli):
    """Register transaction commands with main CLI."""
    cli.add_command(transaction_group, name="transaction")
