"""CLI helpers for date options."""

from datetime import datetime

import click

from condobooks.cli.error_handling import EXIT_FAILURE
from condobooks.utils.date_parser import end_of_day, parse_date, start_of_day


def parse_date_option(ctx, value: str | None, label: str) -> datetime | None:
    """Parse a date option to midnight of that day, or exit with a CLI error."""
    if not value:
        return None
    try:
        return start_of_day(parse_date(value))
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(EXIT_FAILURE)


def resolve_cli_date_range(
    ctx,
    *,
    start_date: str | None,
    end_date: str | None,
) -> tuple[datetime | None, datetime | None]:
    """Resolve --start-date/--end-date; the end date includes its whole day."""
    start = parse_date_option(ctx, start_date, "start date")
    end = parse_date_option(ctx, end_date, "end date")
    if end is not None:
        end = end_of_day(end)

    if start is not None and end is not None and start > end:
        click.echo("Error: Start date must be on or before end date.", err=True)
        ctx.exit(EXIT_FAILURE)

    return start, end
