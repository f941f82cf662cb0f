"""CLI command: pl run — render a template, send it, apply the response."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from promptline.core.config import Settings, resolve_home
from promptline.core.models import Outcome
from promptline.dispatch.actions import Action, build_context
from promptline.providers import list_services


@click.command("run")
@click.argument("template_name", metavar="TEMPLATE")
@click.argument(
    "file",
    required=False,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option("--prompt", "-p", "user_prompt", default=None, help="Text for the {{prompt}} placeholder.")
@click.option("--lines", "-l", default=None, help="Select lines START:END (1-based, inclusive).")
@click.option(
    "--action",
    "-a",
    type=click.Choice([a.value for a in Action]),
    default=Action.DISPLAY.value,
    show_default=True,
    help="What to do with the response.",
)
@click.option("--at", "at_line", type=int, default=None, help="Cursor line for --action insert.")
@click.option("--service", "-s", type=click.Choice(list_services()), default=None, help="Override the active service.")
@click.option("--model", "-m", default=None, help="Override the active model.")
@click.option("--yes", "-y", is_flag=True, help="Apply rewrites without confirmation.")
@click.option("--no-stream", is_flag=True, help="Wait for the full response instead of streaming.")
@click.option(
    "--home",
    type=click.Path(path_type=Path),
    default=None,
    help="Override PROMPTLINE_HOME path.",
)
def run_cmd(
    template_name: str,
    file: Path | None,
    user_prompt: str | None,
    lines: str | None,
    action: str,
    at_line: int | None,
    service: str | None,
    model: str | None,
    yes: bool,
    no_stream: bool,
    home: Path | None,
) -> None:
    """Run TEMPLATE against FILE (or stdin) and apply the response.

    With --lines the given range is the selection; otherwise the whole
    buffer is used. Actions: display prints the response, replace rewrites
    the selection, insert adds the response at the cursor, raw prints it
    unformatted for piping.
    """
    from promptline.cli.host import FileEditor, parse_line_range
    from promptline.dispatch.dispatcher import Dispatcher
    from promptline.templates import TemplateStore, template_placeholders

    home_path = home or resolve_home()
    settings = Settings.load(home_path)
    if service:
        settings.set_service(service)
    if model:
        settings.set_model(model)
    if yes:
        settings.set_confirm_rewrite(False)
    if no_stream:
        settings.set_stream(False)

    store = TemplateStore.load(settings.templates_dir(home_path))
    if template_name not in store:
        click.echo(f"Error: Unknown template '{template_name}'.")
        click.echo(f"Available: {', '.join(store.names())}")
        sys.exit(1)
    template = store.get(template_name)

    chosen = Action(action)
    if chosen in (Action.REPLACE_SELECTION, Action.INSERT_AT_CURSOR) and file is None:
        click.echo(f"Error: --action {chosen.value} needs a FILE to edit.")
        sys.exit(1)

    if file is not None:
        editor = FileEditor.open(file, lines=parse_line_range(lines), at_line=at_line)
    else:
        if lines:
            click.echo("Error: --lines needs a FILE.")
            sys.exit(1)
        editor = FileEditor.from_text(click.get_text_stream("stdin").read())

    if user_prompt is None and "prompt" in template_placeholders(template):
        user_prompt = click.prompt("Prompt")

    dispatcher = Dispatcher(settings, editor, templates=store)
    result = dispatcher.execute(template, build_context(editor, user_prompt or ""), chosen)

    if result.outcome == Outcome.COMPLETED:
        if chosen == Action.DISPLAY:
            editor.end_surface()
        elif chosen == Action.RETURN_RAW:
            click.echo(result.text, nl=False)
        elif result.diff or chosen == Action.INSERT_AT_CURSOR:
            click.echo(f"Updated {file.name}.", err=True)
        if result.log_path:
            click.echo(f"Logged to {result.log_path}", err=True)
    elif result.outcome == Outcome.DECLINED:
        click.echo("No changes made.", err=True)
    else:
        sys.exit(1)
