"""Run one review session from the command line and report its outcome.

Shared by the ``plan`` and ``review`` commands: start the server, point the
reviewer at it, block until they decide, and always stop the server again.
"""

from __future__ import annotations

import json
from collections.abc import Callable

import click
from rich.console import Console

from reviewgate_core.browser import handle_server_ready
from reviewgate_core.errors import PortExhausted
from reviewgate_core.models import Decision
from reviewgate_core.server import SessionServer

console = Console(stderr=True)

EXIT_APPROVED = 0
EXIT_DENIED = 1
EXIT_TIMEOUT = 2


def apply_session_options(config: dict, no_browser: bool, port: int | None) -> dict:
    """Return a copy of ``config`` with per-command flags applied."""
    config = dict(config)
    if no_browser:
        config["open_browser"] = False
    if port is not None:
        config["port"] = port
    return config


def _announce(server: SessionServer, config: dict) -> None:
    if server.is_remote:
        console.print(f"[bold]Review session ready on port {server.port}.[/bold]")
        console.print(f"Forward the port and open [cyan]{server.url}[/cyan] in your local browser.")
        return

    opened = handle_server_ready(server.url, is_remote=False, should_open=bool(config.get("open_browser", True)))
    if opened:
        console.print(f"[dim]Opened {server.url} in your browser.[/dim]")
    else:
        console.print(f"Open [cyan]{server.url}[/cyan] to review.")


def run_session(server: SessionServer, config: dict) -> Decision | None:
    """Start ``server``, wait for the verdict, stop. Returns None on timeout."""
    try:
        server.start()
    except PortExhausted as e:
        raise click.ClickException(str(e))
    except FileNotFoundError as e:
        raise click.ClickException(str(e))
    except OSError as e:
        raise click.ClickException(f"Could not start the review server: {e}")

    try:
        _announce(server, config)
        console.print("[dim]Waiting for a decision...[/dim]")
        return server.wait_for_decision(config.get("decision_timeout"))
    finally:
        server.stop()


def exit_code_for(decision: Decision | None) -> int:
    if decision is None:
        return EXIT_TIMEOUT
    return EXIT_APPROVED if decision.approved else EXIT_DENIED


def emit_result(
    ctx: click.Context,
    decision: Decision | None,
    render: Callable[[Decision | None], str],
    as_json: bool,
) -> None:
    """Print the agent-facing outcome on stdout and exit with its code."""
    if as_json:
        if decision is None:
            body = {"status": "timeout"}
        else:
            body = {"status": "approved" if decision.approved else "denied", **decision.to_dict()}
        click.echo(json.dumps(body, indent=2))
    else:
        click.echo(render(decision))
    ctx.exit(exit_code_for(decision))
