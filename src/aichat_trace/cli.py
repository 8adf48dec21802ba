"""CLI entry point for aichat-trace."""

import json
import sys
from pathlib import Path

import click

from .config import get_log_file, get_state_file, is_debug_enabled
from .hook import run_hook
from .logs import setup_logging
from .state import StateStore


def read_hook_payload(stream) -> dict:
    """Parse the JSON payload Claude Code pipes into hook commands."""
    if stream is None or stream.isatty():
        return {}
    data = stream.read()
    if not data.strip():
        return {}
    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        return {}
    return payload if isinstance(payload, dict) else {}


@click.group()
def main():
    """Trace Claude Code sessions to Langfuse, one trace per turn."""
    pass


@main.command()
@click.option("--session-id", default=None, help="Session to process.")
@click.option(
    "--transcript",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Transcript file of the session (defaults to the latest one).",
)
@click.option("--verbose", is_flag=True, help="Also log to stderr.")
def hook(session_id: str | None, transcript: Path | None, verbose: bool):
    """Process new turns of a session (run as a Stop hook)."""
    setup_logging(get_log_file(), debug=is_debug_enabled() or verbose, echo=verbose)

    if session_id is None and transcript is None:
        payload = read_hook_payload(sys.stdin)
        session_id = payload.get("session_id") or payload.get("sessionId")
        raw_path = payload.get("transcript_path") or payload.get("transcriptPath")
        if raw_path:
            transcript = Path(raw_path).expanduser()

    sys.exit(run_hook(session_id=session_id, transcript_path=transcript))


@main.command()
@click.option("--session-id", default=None, help="Show only this session.")
def status(session_id: str | None):
    """Show the recorded resume cursors."""
    state = StateStore(get_state_file()).load()
    if session_id is not None:
        state = {k: v for k, v in state.items() if k == session_id}

    if not state:
        click.echo("No sessions recorded.")
        return

    for sid, ss in sorted(state.items(), key=lambda item: item[1].updated, reverse=True):
        click.echo(f"{sid}  last_line={ss.last_line}  turns={ss.turn_count}  updated={ss.updated}")


@main.command()
@click.argument("session_id")
def reset(session_id: str):
    """Forget a session's cursor so it is traced again from the start."""
    store = StateStore(get_state_file())
    state = store.load()
    if session_id not in state:
        raise click.ClickException(f"No cursor recorded for session {session_id}")
    del state[session_id]
    store.save(state)
    click.echo(f"Reset session {session_id}")
