"""plan: gate an agent's implementation plan on a human verdict."""

from __future__ import annotations

import click

from reviewgate_cli.session import apply_session_options, emit_result, run_session
from reviewgate_core.models import Decision
from reviewgate_core.server import SessionServer

_APPROVED_WITH_NOTES = """\
Plan approved with notes!

## Implementation Notes

The user approved your plan but added the following notes to consider during implementation:

{feedback}

Proceed with implementation, incorporating these notes where applicable."""

_NEEDS_REVISION = """\
Plan needs revision.

The user has requested changes to your plan. Please review their feedback below and revise your plan accordingly.

## User Feedback

{feedback}

---

Please revise your plan based on this feedback and submit it again when ready."""

_TIMED_OUT = "No decision was made before the review timed out. The plan was neither approved nor rejected."


def format_plan_result(decision: Decision | None) -> str:
    if decision is None:
        return _TIMED_OUT
    if decision.approved:
        if decision.feedback:
            return _APPROVED_WITH_NOTES.format(feedback=decision.feedback)
        return "Plan approved!"
    return _NEEDS_REVISION.format(feedback=decision.feedback or "")


@click.command("plan")
@click.argument("plan_file", type=click.File("r", encoding="utf-8"), default="-")
@click.option("--json", "as_json", is_flag=True, help="Print the decision as JSON instead of agent-facing text.")
@click.option("--no-browser", is_flag=True, help="Print the session URL instead of opening a browser.")
@click.option("--port", type=int, default=None, help="Port to listen on. Overrides config and REVIEWGATE_PORT.")
@click.pass_context
def plan_cmd(ctx, plan_file, as_json: bool, no_browser: bool, port: int | None):
    """Open PLAN_FILE (default: stdin) for review and wait for the verdict.

    \b
    Exit codes:
      0  approved
      1  changes requested
      2  timed out (see decision_timeout in .reviewgate.yml)
    """
    document = plan_file.read()
    if not document.strip():
        raise click.UsageError("The plan is empty.")

    config = apply_session_options(ctx.obj["config"], no_browser, port)
    server = SessionServer(document, config, mode="plan", store=ctx.obj["store"])
    decision = run_session(server, config)
    emit_result(ctx, decision, format_plan_result, as_json)
