"""CLI error handling helpers."""

import click

from condobooks.domain.errors import (
    AuthorizationError,
    DomainError,
    NotFoundError,
)

EXIT_FAILURE = 1
EXIT_NOT_FOUND = 3
EXIT_FORBIDDEN = 4


def exit_code_for(error: Exception) -> int:
    if isinstance(error, AuthorizationError):
        return EXIT_FORBIDDEN
    if isinstance(error, NotFoundError):
        return EXIT_NOT_FOUND
    return EXIT_FAILURE


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit.

    Authorization failures exit with 4, missing entities with 3 and every
    other validation, conflict or parse error with 1.
    """
    click.echo(f"Error: {error}", err=True)
    ctx.exit(exit_code_for(error))
