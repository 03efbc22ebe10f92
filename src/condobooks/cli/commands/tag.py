"""Tag and tag pattern commands."""

import click

from condobooks.cli.commands.owner import echo_apply_result
from condobooks.cli.error_handling import handle_domain_error
from condobooks.cli.resolution import resolve_tag_or_exit
from condobooks.domain.errors import DomainError
from condobooks.domain.patterns import PatternService
from condobooks.domain.tag import TagNode, TagService


def _service(ctx) -> TagService:
    return TagService(ctx.obj["db"], ctx.obj["actor"])


def _pattern_service(ctx) -> PatternService:
    return PatternService(ctx.obj["db"], ctx.obj["actor"], chunk_size=ctx.obj["settings"].pattern_chunk_size)


def _echo_tree(nodes: list[TagNode], depth: int = 0) -> None:
    for node in nodes:
        tag = node.tag
        suffix = f"  - {tag.description}" if tag.description else ""
        click.echo(f"{'  ' * depth}{tag.name} (ID: {tag.id}){suffix}")
        _echo_tree(node.children, depth + 1)


@click.group()
def tag_group():
    """Manage tags."""
    pass


@tag_group.command("create")
@click.argument("name")
@click.option("--description", help="Tag description")
@click.option("--color", help="Display color, e.g. #ff8800")
@click.option("--parent", help="Parent tag name or ID")
@click.pass_context
def create_tag(ctx, name: str, description, color, parent):
    """Create a tag, optionally under a parent.

    Examples:
        condobooks tag create "LPG"
        condobooks tag create "LPG March" --parent "LPG"
    """
    parent_id = resolve_tag_or_exit(ctx, parent) if parent else None
    try:
        tag = _service(ctx).create_tag(name=name, description=description, color=color, parent_id=parent_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created tag '{tag.name}' (ID: {tag.id})")


@tag_group.command("list")
@click.pass_context
def list_tags(ctx):
    """Show tags as a tree."""
    roots = _service(ctx).tree()
    if not roots:
        click.echo("No tags found.")
        return
    _echo_tree(roots)


@tag_group.command("update")
@click.argument("tag")
@click.option("--name", help="New name")
@click.option("--description", help="New description (empty string to clear)")
@click.option("--color", help="New color (empty string to clear)")
@click.pass_context
def update_tag(ctx, tag: str, name, description, color):
    """Update tag details."""
    tag_id = resolve_tag_or_exit(ctx, tag)
    try:
        _service(ctx).update_tag(tag_id, name=name, description=description, color=color)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Updated tag {tag_id}")


@tag_group.command("move")
@click.argument("tag")
@click.option("--parent", help="New parent tag name or ID; omit to make it a root tag")
@click.pass_context
def move_tag(ctx, tag: str, parent: str | None):
    """Move a tag under another tag. Cycles are rejected."""
    tag_id = resolve_tag_or_exit(ctx, tag)
    parent_id = resolve_tag_or_exit(ctx, parent) if parent else None
    try:
        _service(ctx).set_parent(tag_id, parent_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Moved tag {tag_id} to {'parent ' + str(parent_id) if parent_id else 'the root'}")


@tag_group.command("delete")
@click.argument("tag")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_tag(ctx, tag: str, yes: bool):
    """Delete a tag. Its children become root tags."""
    tag_id = resolve_tag_or_exit(ctx, tag)
    if not yes and not click.confirm(f"Are you sure you want to delete tag {tag_id}?"):
        click.echo("Deletion cancelled.")
        return
    try:
        _service(ctx).delete_tag(tag_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted tag {tag_id}")


@tag_group.group("pattern")
def pattern_group():
    """Manage tag recognition patterns."""
    pass


@pattern_group.command("add")
@click.argument("tag")
@click.argument("regex")
@click.option("--description", help="What the pattern recognizes")
@click.option("--apply", "apply_to_existing", is_flag=True, help="Also tag existing transactions")
@click.option("--only-untagged", is_flag=True, help="With --apply, only touch transactions without tags")
@click.pass_context
def add_pattern(ctx, tag: str, regex: str, description, apply_to_existing: bool, only_untagged: bool):
    """Add a regex that tags matching transactions. Matching is case-sensitive."""
    tag_id = resolve_tag_or_exit(ctx, tag)
    try:
        result = _pattern_service(ctx).create_tag_pattern(
            tag_id,
            regex,
            description=description,
            apply_to_existing=apply_to_existing,
            only_unassigned=only_untagged,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    echo_apply_result(result, "tagged")


@pattern_group.command("list")
@click.option("--tag", help="Only patterns of this tag (name or ID)")
@click.pass_context
def list_patterns(ctx, tag: str | None):
    """List tag patterns."""
    tag_id = resolve_tag_or_exit(ctx, tag) if tag else None
    patterns = _pattern_service(ctx).list_tag_patterns(tag_id=tag_id)
    if not patterns:
        click.echo("No patterns found.")
        return
    for p in patterns:
        status = "active" if p.is_active else "inactive"
        click.echo(f"{p.id:<5} tag {p.tag_id:<5} {status:<9} {p.pattern}  {p.description or ''}")


@pattern_group.command("toggle")
@click.argument("pattern_id", type=int)
@click.pass_context
def toggle_pattern(ctx, pattern_id: int):
    """Activate or deactivate a tag pattern."""
    try:
        pattern = _pattern_service(ctx).toggle_tag_pattern(pattern_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Pattern {pattern_id} is now {'active' if pattern.is_active else 'inactive'}")


@pattern_group.command("delete")
@click.argument("pattern_id", type=int)
@click.pass_context
def delete_pattern(ctx, pattern_id: int):
    """Delete a tag pattern."""
    try:
        _pattern_service(ctx).delete_tag_pattern(pattern_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted pattern {pattern_id}")


def register_commands(cli):
    """Register tag commands with main CLI."""
    cli.add_command(tag_group, name="tag")
