"""init: interactive setup wizard.

Writes .reviewgate.yml so every later `reviewgate plan` / `reviewgate review`
in this checkout picks the same port, sharing and upload settings.
"""

from __future__ import annotations

from pathlib import Path

import click
import yaml
from rich.console import Console

from reviewgate_core.config import REMOTE_DEFAULT_PORT
from reviewgate_core.models import DiffType

console = Console()


@click.command("init")
@click.option("--remote/--local", default=None, help="Configure for remote or local sessions without prompting.")
@click.pass_context
def init_cmd(ctx, remote: bool | None):
    """Set up reviewgate for this repository.

    Creates (or updates) .reviewgate.yml in the current directory.
    """
    config_path = Path(ctx.obj.get("config_path", ".reviewgate.yml")) if ctx.obj else Path(".reviewgate.yml")
    console.print("\n[bold cyan]reviewgate init[/bold cyan] setup wizard\n")

    # --- Remote or local ---
    if remote is None:
        remote = click.confirm(
            "Will reviews run on a remote machine (SSH, devcontainer, Codespaces)?",
            default=False,
        )

    config: dict = {"remote": remote}

    if remote:
        port = click.prompt("Fixed port to forward", type=int, default=REMOTE_DEFAULT_PORT)
        config["port"] = port
        console.print(f"[dim]Forward port {port} to your machine to reach the review page.[/dim]")
    else:
        config["open_browser"] = click.confirm("Open the browser automatically?", default=True)

    # --- Sharing ---
    config["sharing_enabled"] = click.confirm(
        "Allow reviewers to create and import share links?",
        default=True,
    )

    # --- Uploads ---
    config["uploads_enabled"] = click.confirm("Allow image uploads during review?", default=True)

    # --- Diff review ---
    config["default_diff_type"] = click.prompt(
        "Default diff for `reviewgate review`",
        type=click.Choice([t.value for t in DiffType if t != DiffType.BRANCH]),
        default=DiffType.UNCOMMITTED.value,
    )

    _write_config(config_path, config)
    console.print(f"[green]Created {config_path}[/green]")

    console.print("\n[bold green]Setup complete![/bold green]")
    console.print("Review a plan with: [bold]reviewgate plan PLAN.md[/bold]")


def _write_config(path: Path, config: dict) -> None:
    """Write or update the config file, preserving any existing keys."""
    existing: dict = {}
    if path.exists():
        existing = yaml.safe_load(path.read_text()) or {}
    existing.update(config)
    path.write_text(yaml.dump(existing, default_flow_style=False, sort_keys=False))
