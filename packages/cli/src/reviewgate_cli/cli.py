"""CLI entry point for reviewgate.

Commands:
  plan     open a plan for review in the browser and wait for the verdict
  review   review the working tree's git diff in the browser
  share    build a share link for a plan (and optional annotations)
  inspect  decode a share link and show what it carries
  init     interactive setup wizard that writes .reviewgate.yml
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from reviewgate_cli.commands.init import init_cmd
from reviewgate_cli.commands.plan import plan_cmd
from reviewgate_cli.commands.review import review_cmd
from reviewgate_cli.commands.share import inspect_cmd, share_cmd

console = Console(stderr=True)


def _build_store(config: dict):
    """Instantiate the asset store from .reviewgate.yml settings.

      uploads_enabled: false → NoOpAssetStore (uploads refused)
      remote: true           → LocalAssetStore serving only its upload_dir
      (default)              → LocalAssetStore under upload_dir

    This factory lives in cli.py so neither reviewgate_core nor
    reviewgate_store know about the CLI config format.
    """
    if not config.get("uploads_enabled", True):
        from reviewgate_store.noop import NoOpAssetStore

        return NoOpAssetStore()

    from reviewgate_core.config import is_remote_session
    from reviewgate_store.local import LocalAssetStore

    # Remote sessions listen on all interfaces: serve uploads only.
    return LocalAssetStore(config.get("upload_dir"), allow_external=not is_remote_session(config))


def _configure_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
            force=True,
        )
    else:
        logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")


@click.group()
@click.version_option(
    version=importlib.metadata.version("reviewgate"),
    prog_name="reviewgate",
)
@click.option(
    "--config",
    "config_path",
    default=".reviewgate.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="REVIEWGATE_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Browser-based review gate for AI-generated plans and code diffs."""
    from reviewgate_core.config import load_config

    _configure_logging(verbose)
    ctx.ensure_object(dict)

    try:
        config = load_config(config_path)
    except ValueError as e:
        raise click.UsageError(str(e))

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path
    ctx.call_on_close(store.close)


main.add_command(plan_cmd)
main.add_command(review_cmd)
main.add_command(share_cmd)
main.add_command(inspect_cmd)
main.add_command(init_cmd)
