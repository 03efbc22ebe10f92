"""Attachment commands."""

import click

from condobooks.cli.error_handling import handle_domain_error
from condobooks.domain.attachments import AttachmentService, LocalBlobStore
from condobooks.domain.entities import AttachmentKind
from condobooks.domain.errors import DomainError

KIND_CHOICES = [k.value for k in AttachmentKind]


def _service(ctx) -> AttachmentService:
    settings = ctx.obj["settings"]
    store = LocalBlobStore(settings.resolved_attachments_dir(), settings.signing_key, settings.url_ttl)
    return AttachmentService(ctx.obj["db"], store, ctx.obj["actor"])


@click.group()
def attachment_group():
    """Manage supporting documents."""
    pass


@attachment_group.command("add")
@click.argument("entity_id", type=int)
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--kind", type=click.Choice(KIND_CHOICES), default=AttachmentKind.TRANSACTION.value, show_default=True)
@click.option("--name", help="Display name (defaults to the file name)")
@click.pass_context
def add_attachment(ctx, entity_id: int, file: str, kind: str, name: str | None):
    """Attach FILE to a transaction, refill or refill entry.

    Examples:
        condobooks attachment add 42 receipt.pdf
        condobooks attachment add 3 invoice.pdf --kind refill
    """
    try:
        attachment = _service(ctx).upload_attachment(entity_id, file, filename=name, entity_kind=AttachmentKind(kind))
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Added attachment {attachment.id}: {attachment.filename} ({attachment.size} bytes)")


@attachment_group.command("list")
@click.argument("entity_id", type=int)
@click.option("--kind", type=click.Choice(KIND_CHOICES), default=AttachmentKind.TRANSACTION.value, show_default=True)
@click.pass_context
def list_attachments(ctx, entity_id: int, kind: str):
    """List attachments of one entity."""
    attachments = _service(ctx).list_attachments(AttachmentKind(kind), entity_id)
    if not attachments:
        click.echo("No attachments found.")
        return
    for a in attachments:
        click.echo(f"{a.id:<5} {a.filename:<40} {a.mime_type:<28} {a.size:>10} bytes")


@attachment_group.command("url")
@click.argument("attachment_id", type=int)
@click.option("--ttl", type=click.IntRange(min=1), help="Lifetime in seconds (default: CONDOBOOKS_URL_TTL)")
@click.pass_context
def attachment_url(ctx, attachment_id: int, ttl: int | None):
    """Print a time-limited download URL."""
    try:
        url = _service(ctx).get_presigned_url(attachment_id, ttl)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(url)


@attachment_group.command("delete")
@click.argument("attachment_id", type=int)
@click.pass_context
def delete_attachment(ctx, attachment_id: int):
    """Delete an attachment and its stored file."""
    try:
        _service(ctx).delete_attachment(attachment_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted attachment {attachment_id}")


def register_commands(cli):
    """Register attachment commands with main CLI."""
    cli.add_command(attachment_group, name="attachment")
