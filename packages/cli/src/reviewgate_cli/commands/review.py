"""review: review the working tree's git diff in the browser."""

from __future__ import annotations

import click

from reviewgate_cli.session import apply_session_options, console, emit_result, run_session
from reviewgate_core.diff_session import DiffSessionManager
from reviewgate_core.errors import DiffSwitchFailed, InvalidDiffType
from reviewgate_core.feedback import NO_REVIEW_FEEDBACK
from reviewgate_core.git.diff import get_git_context, parse_diff_type, run_git_diff
from reviewgate_core.git.repo import get_repo_info
from reviewgate_core.models import Decision, DiffType
from reviewgate_core.server import SessionServer


def format_review_result(decision: Decision | None) -> str:
    if decision is None:
        return "No review feedback was submitted before the session timed out."
    if decision.approved and not decision.feedback:
        return "Code review approved. No changes requested."
    return decision.feedback or NO_REVIEW_FEEDBACK


@click.command("review")
@click.option(
    "--diff-type",
    type=click.Choice([t.value for t in DiffType]),
    default=None,
    help="Initial diff to show. Overrides default_diff_type in config.",
)
@click.option("--json", "as_json", is_flag=True, help="Print the decision as JSON instead of the feedback text.")
@click.option("--no-browser", is_flag=True, help="Print the session URL instead of opening a browser.")
@click.option("--port", type=int, default=None, help="Port to listen on. Overrides config and REVIEWGATE_PORT.")
@click.pass_context
def review_cmd(ctx, diff_type: str | None, as_json: bool, no_browser: bool, port: int | None):
    """Review local git changes and print the reviewer's feedback.

    The reviewer can switch between uncommitted, staged, unstaged, last-commit
    and branch diffs from the browser. Exit codes match ``reviewgate plan``.
    """
    config = apply_session_options(ctx.obj["config"], no_browser, port)

    git_context = get_git_context()
    try:
        initial_type = parse_diff_type(diff_type or config.get("default_diff_type", DiffType.UNCOMMITTED.value))
        initial = run_git_diff(initial_type, git_context.default_branch)
    except (InvalidDiffType, DiffSwitchFailed) as e:
        raise click.ClickException(str(e))

    if not initial.raw_patch.strip():
        console.print(f"[yellow]{initial.label}: no changes to review.[/yellow]")

    diff_session = DiffSessionManager(
        initial,
        default_branch=git_context.default_branch,
        differ=run_git_diff,
        git_context=git_context,
    )
    server = SessionServer(
        initial.raw_patch,
        config,
        mode="review",
        diff_session=diff_session,
        repo_info=get_repo_info(),
        store=ctx.obj["store"],
    )
    decision = run_session(server, config)
    emit_result(ctx, decision, format_review_result, as_json)
