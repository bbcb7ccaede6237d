"""share and inspect: create and read share links offline."""

from __future__ import annotations

import json

import click
from rich.console import Console
from rich.table import Table

from reviewgate_core.errors import DecodeError
from reviewgate_core.feedback import export_plan_feedback
from reviewgate_core.models import Annotation
from reviewgate_core.sharing.annotations import from_shareable
from reviewgate_core.sharing.merge import extract_title, extract_token
from reviewgate_core.sharing.payload import decode, format_url_size, generate_share_url

console = Console()

_PREVIEW_WIDTH = 60


def _load_annotations(path: str | None) -> list[Annotation]:
    if path is None:
        return []
    try:
        with open(path, encoding="utf-8") as f:
            items = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise click.BadParameter(f"Could not read annotations from {path}: {e}", param_hint="--annotations")
    if not isinstance(items, list):
        raise click.BadParameter("Annotations file must contain a JSON list.", param_hint="--annotations")
    try:
        return [Annotation.from_dict(item) for item in items]
    except DecodeError as e:
        raise click.BadParameter(str(e), param_hint="--annotations")


def _preview(text: str | None) -> str:
    if not text:
        return ""
    text = " ".join(text.split())
    return text if len(text) <= _PREVIEW_WIDTH else text[: _PREVIEW_WIDTH - 1] + "…"


@click.command("share")
@click.argument("plan_file", type=click.File("r", encoding="utf-8"))
@click.option(
    "--annotations",
    "annotations_path",
    default=None,
    help="JSON file with a list of annotations to embed in the link.",
)
@click.option("--base-url", default=None, help="Share host. Overrides share_base_url in config.")
@click.pass_context
def share_cmd(ctx, plan_file, annotations_path: str | None, base_url: str | None):
    """Print a share link for PLAN_FILE.

    The whole plan travels in the URL fragment, so the link works without
    any server-side storage.
    """
    config = ctx.obj["config"]
    document = plan_file.read()
    annotations = _load_annotations(annotations_path)

    url = generate_share_url(document, annotations, base_url=base_url or config["share_base_url"])
    click.echo(url)
    console.print(f"[dim]{len(annotations)} annotation(s), {format_url_size(url)}[/dim]", highlight=False)


@click.command("inspect")
@click.argument("url_or_token")
@click.option("--feedback", "as_feedback", is_flag=True, help="Print the annotations as exported plan feedback.")
def inspect_cmd(url_or_token: str, as_feedback: bool):
    """Decode a share link and show the plan title and annotations."""
    try:
        payload = decode(extract_token(url_or_token))
        annotations = from_shareable(payload.annotations)
    except DecodeError as e:
        raise click.ClickException(f"Could not decode share link: {e}")

    if as_feedback:
        click.echo(export_plan_feedback(annotations))
        return

    console.print(f"\n[bold]{extract_title(payload.document)}[/bold]")
    console.print(f"[dim]{len(payload.document)} characters, {len(payload.attachments)} attachment(s)[/dim]\n")

    if not annotations:
        console.print("[yellow]No annotations in this link.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Kind")
    table.add_column("Original")
    table.add_column("Text")
    table.add_column("Author", style="dim")
    for i, ann in enumerate(annotations, start=1):
        table.add_row(str(i), ann.kind.value, _preview(ann.original_text), _preview(ann.text), ann.author or "")
    console.print(table)

    for path in payload.attachments:
        console.print(f"  [dim]attachment:[/dim] {path}")
