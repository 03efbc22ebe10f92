"""Main CLI entry point."""

import click

from condobooks.config import Settings
from condobooks.database.factories import create_sqlite_database
from condobooks.logging_setup import configure_logging

# Import and register all commands at module level
from condobooks.cli.commands import (
    attachment,
    audit,
    balance,
    import_cmd,
    lpg,
    owner,
    payments,
    tag,
    transaction,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides CONDOBOOKS_DB_PATH environment variable)",
    envvar="CONDOBOOKS_DB_PATH",
)
@click.option("--user", help="Acting user (overrides CONDOBOOKS_USER, defaults to $USER)")
@click.option("--log-level", help="Log level, e.g. DEBUG or WARNING (overrides CONDOBOOKS_LOG_LEVEL)")
@click.pass_context
def cli(ctx, db_path: str | None, user: str | None, log_level: str | None):
    """Condobooks - building back office.

    Import bank statements, attribute payments to apartment owners, split
    LPG refill bills by metered consumption and track who still owes.
    """
    ctx.ensure_object(dict)
    try:
        settings = Settings.from_env()
    except ValueError as e:
        raise click.UsageError(str(e))
    configure_logging(log_level or settings.log_level)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=db_path or settings.db_path)
        db.connect()
        db.initialize_schema()
        ctx.call_on_close(db.disconnect)
        ctx.obj["db"] = db
        ctx.obj["settings"] = settings
        ctx.obj["actor"] = settings.actor_for(user)


# Register all commands
import_cmd.register_commands(cli)
owner.register_commands(cli)
tag.register_commands(cli)
transaction.register_commands(cli)
lpg.register_commands(cli)
payments.register_commands(cli)
balance.register_commands(cli)
attachment.register_commands(cli)
audit.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
