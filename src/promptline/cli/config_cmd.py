"""CLI commands for configuration: pl config ..., pl models."""

from __future__ import annotations

from pathlib import Path

import click
import yaml

from promptline.core.config import Settings, resolve_home
from promptline.providers import list_services

_home_option = click.option(
    "--home",
    type=click.Path(path_type=Path),
    default=None,
    help="Override PROMPTLINE_HOME path.",
)


def _list_models(settings: Settings, service: str | None) -> list[str]:
    from promptline.cli.host import FileEditor
    from promptline.dispatch.dispatcher import Dispatcher

    # The editor only receives the failure notice, if any
    dispatcher = Dispatcher(settings, FileEditor.from_text(""))
    return dispatcher.list_models(service)


@click.command("models")
@click.option("--service", "-s", type=click.Choice(list_services()), default=None, help="Service to query (default: active).")
@_home_option
def models_cmd(service: str | None, home: Path | None) -> None:
    """List models offered by a service."""
    settings = Settings.load(home or resolve_home())
    models = _list_models(settings, service)
    if not models:
        click.echo("No models found.")
        return
    active = settings.model if not service or service == settings.service.value else None
    for name in models:
        click.echo(f"{'*' if name == active else ' '} {name}")


@click.group("config")
def config_group() -> None:
    """Show and change settings."""


@config_group.command("show")
@_home_option
def show_cmd(home: Path | None) -> None:
    """Print the effective configuration (API keys masked)."""
    settings = Settings.load(home or resolve_home())
    click.echo(f"# {settings.path}")
    click.echo(yaml.safe_dump(settings.as_dict(), sort_keys=False).rstrip())


@config_group.command("set-service")
@click.argument("service", type=click.Choice(list_services()))
@_home_option
def set_service_cmd(service: str, home: Path | None) -> None:
    """Switch the active service (model resets to the service default)."""
    settings = Settings.load(home or resolve_home())
    settings.set_service(service)
    settings.save()
    click.echo(f"Service: {settings.service.value}, model: {settings.model}")


@config_group.command("set-model")
@click.argument("model")
@_home_option
def set_model_cmd(model: str, home: Path | None) -> None:
    """Set the active model."""
    settings = Settings.load(home or resolve_home())
    settings.set_model(model)
    settings.save()
    click.echo(f"Model: {settings.model}")


@config_group.command("set-key")
@click.argument("service", type=click.Choice(list_services()))
@_home_option
def set_key_cmd(service: str, home: Path | None) -> None:
    """Store an API key for SERVICE in the system keyring."""
    import keyring.errors

    settings = Settings.load(home or resolve_home())
    api_key = click.prompt(f"{service} API key", hide_input=True).strip()
    if not api_key:
        click.echo("Error: empty key.")
        return
    try:
        settings.set_api_key(service, api_key, persist=True)
    except keyring.errors.KeyringError as e:
        click.echo(f"Error: could not store key in keyring: {e}")
        return
    settings.save()
    click.echo(f"API key stored for {service}.")


@config_group.command("set-log-dir")
@click.argument("path", required=False, type=click.Path(file_okay=False, path_type=Path))
@click.option("--off", is_flag=True, help="Disable session logging.")
@_home_option
def set_log_dir_cmd(path: Path | None, off: bool, home: Path | None) -> None:
    """Log every exchange as JSON under PATH."""
    if not off and path is None:
        raise click.UsageError("Give a PATH or --off")
    settings = Settings.load(home or resolve_home())
    settings.set_log_dir(None if off else path.expanduser().resolve())
    settings.save()
    click.echo(f"Session logging: {settings.log_dir or 'off'}")


@config_group.command("set-threshold")
@click.argument("chars", type=click.IntRange(min=0))
@_home_option
def set_threshold_cmd(chars: int, home: Path | None) -> None:
    """Stream responses live once they exceed CHARS characters."""
    settings = Settings.load(home or resolve_home())
    settings.set_stream_threshold(chars)
    settings.save()
    click.echo(f"Stream threshold: {settings.stream_threshold}")


@config_group.command("set-confirm")
@click.argument("state", type=click.Choice(["on", "off"]))
@_home_option
def set_confirm_cmd(state: str, home: Path | None) -> None:
    """Toggle the diff confirmation before rewrites."""
    settings = Settings.load(home or resolve_home())
    settings.set_confirm_rewrite(state == "on")
    settings.save()
    click.echo(f"Confirm before rewrite: {state}")


@config_group.command("use")
@_home_option
def use_cmd(home: Path | None) -> None:
    """Pick the service and model from interactive menus."""
    settings = Settings.load(home or resolve_home())
    service = click.prompt(
        "Service",
        type=click.Choice(list_services()),
        default=settings.service.value,
    )
    settings.set_service(service)

    models = _list_models(settings, service)
    if models:
        for i, name in enumerate(models, 1):
            click.echo(f"  {i:>2}. {name}")
        index = click.prompt("Model number", type=click.IntRange(1, len(models)), default=1)
        settings.set_model(models[index - 1])
    else:
        model = click.prompt("Model", default=settings.model)
        settings.set_model(model)

    settings.save()
    click.echo(f"Using {settings.service.value} / {settings.model}")
