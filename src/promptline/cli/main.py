"""CLI entry point for promptline (pl command)."""

import logging

import click

from promptline import __version__
from promptline.cli.config_cmd import config_group, models_cmd
from promptline.cli.run_cmd import run_cmd
from promptline.cli.templates_cmd import templates_group


@click.group()
@click.version_option(version=__version__, prog_name="promptline")
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr.")
def cli(verbose: bool) -> None:
    """promptline — run LLM prompt templates against your text."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


cli.add_command(run_cmd)
cli.add_command(templates_group)
cli.add_command(models_cmd)
cli.add_command(config_group)


if __name__ == "__main__":
    cli()
