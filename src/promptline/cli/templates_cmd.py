"""CLI commands: pl templates list, pl templates show."""

from __future__ import annotations

from pathlib import Path

import click

from promptline.core.config import Settings, resolve_home
from promptline.templates import TemplateStore, template_placeholders

_home_option = click.option(
    "--home",
    type=click.Path(path_type=Path),
    default=None,
    help="Override PROMPTLINE_HOME path.",
)


def _load_store(home: Path | None) -> TemplateStore:
    home_path = home or resolve_home()
    settings = Settings.load(home_path)
    return TemplateStore.load(settings.templates_dir(home_path))


@click.group("templates")
def templates_group() -> None:
    """Inspect prompt templates."""


@templates_group.command("list")
@_home_option
def list_cmd(home: Path | None) -> None:
    """List available templates."""
    store = _load_store(home)
    width = max((len(n) for n in store.names()), default=0)
    for template in store.list():
        marker = "*" if template.requires_selection else " "
        click.echo(f"{template.name:<{width}} {marker} {template.description}")
    click.echo("\n* requires a selection (--lines)")


@templates_group.command("show")
@click.argument("name")
@_home_option
def show_cmd(name: str, home: Path | None) -> None:
    """Show a template's system text, prompt and placeholders."""
    store = _load_store(home)
    if name not in store:
        click.echo(f"Template not found: {name}")
        return
    template = store.get(name)
    click.echo(f"Name:       {template.name}")
    if template.description:
        click.echo(f"About:      {template.description}")
    click.echo(f"Selection:  {'required' if template.requires_selection else 'optional'}")
    names = template_placeholders(template)
    click.echo(f"Uses:       {', '.join(names) or '(none)'}")
    if template.system:
        click.echo(f"\n--- system ---\n{template.system}")
    click.echo(f"\n--- prompt ---\n{template.prompt}")
