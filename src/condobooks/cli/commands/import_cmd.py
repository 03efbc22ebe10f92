"""Statement import and batch management commands."""

from pathlib import Path

import click

from condobooks.cli.commands.transaction import echo_transaction_table
from condobooks.cli.error_handling import EXIT_FAILURE, handle_domain_error
from condobooks.domain.batch_import import BatchImportService
from condobooks.domain.errors import DomainError


def _service(ctx) -> BatchImportService:
    return BatchImportService(ctx.obj["db"], ctx.obj["actor"])


@click.command("import")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--no-patterns", is_flag=True, help="Do not attribute new rows to owners with owner patterns")
@click.pass_context
def import_statement(ctx, csv_file: str, no_patterns: bool):
    """Import a Banco Popular statement export.

    Rows already stored (same date, amount, type and serial) are kept as
    duplicates and inherit the stored row's description, owner and category.

    Examples:
        condobooks import ~/Downloads/estado-marzo.csv
    """
    service = _service(ctx)
    path = Path(csv_file)
    try:
        result = service.import_batch(path.read_bytes(), path.name, use_pattern_matching=not no_patterns)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not result.success:
        click.echo(f"Error: {result.error}", err=True)
        ctx.exit(EXIT_FAILURE)

    click.echo("\nImport complete:")
    click.echo(f"  Batch: {result.batch_id}")
    click.echo(f"  Rows: {result.total_count}")
    click.echo(f"  New: {result.new_count}")
    click.echo(f"  Duplicates: {result.duplicate_count}")


@click.group()
def batch_group():
    """Inspect and delete import batches."""
    pass


@batch_group.command("list")
@click.pass_context
def list_batches(ctx):
    """List import batches, newest first."""
    batches = _service(ctx).list_batches()
    if not batches:
        click.echo("No batches found.")
        return

    click.echo(f"{'ID':<6} {'Processed':<20} {'Rows':>6} {'New':>6} {'Dup':>6}  File")
    click.echo("-" * 80)
    for b in batches:
        click.echo(
            f"{b.id:<6} {b.processed_at:%Y-%m-%d %H:%M:%S}  {b.total_transactions:>6} "
            f"{b.new_transactions:>6} {b.duplicated_transactions:>6}  {b.original_filename}"
        )


@batch_group.command("show")
@click.argument("batch_id", type=int)
@click.pass_context
def show_batch(ctx, batch_id: int):
    """Show a batch and every row it produced, duplicates included."""
    service = _service(ctx)
    try:
        batch = service.get_batch(batch_id)
        rows = service.batch_transactions(batch_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Batch {batch.id}: {batch.original_filename}")
    click.echo(f"  Stored as: {batch.filename}")
    if batch.account_number:
        click.echo(f"  Account: {batch.account_number}")
    click.echo(
        f"  Rows: {batch.total_transactions} ({batch.new_transactions} new, "
        f"{batch.duplicated_transactions} duplicates)"
    )
    echo_transaction_table(rows, show_duplicates=True)


@batch_group.command("delete")
@click.argument("batch_id", type=int)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_batch(ctx, batch_id: int, yes: bool):
    """Delete a batch and all of its transactions."""
    service = _service(ctx)
    try:
        batch = service.get_batch(batch_id)
        if not yes and not click.confirm(
            f"Delete batch {batch_id} ({batch.original_filename}) and its {batch.total_transactions} transactions?"
        ):
            click.echo("Deletion cancelled.")
            return
        deleted = service.delete_batch(batch_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted batch {batch_id} ({deleted} transactions)")


@batch_group.command("check")
@click.pass_context
def check_batches(ctx):
    """Report batches whose counts don't match their stored rows."""
    problems = _service(ctx).find_inconsistent_batches()
    if not problems:
        click.echo("All batches are consistent.")
        return
    for p in problems:
        b = p.batch
        click.echo(
            f"Batch {b.id} ({b.original_filename}): recorded {b.total_transactions} rows "
            f"({b.new_transactions} new + {b.duplicated_transactions} duplicates), stored {p.stored_rows}"
        )
    ctx.exit(EXIT_FAILURE)


def register_commands(cli):
    """Register import and batch commands with main CLI."""
    cli.add_command(import_statement)
    cli.add_command(batch_group, name="batch")
