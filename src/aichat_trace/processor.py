"""Run the transcript -> turns -> traces pipeline for a session."""

import logging
from pathlib import Path
from typing import Callable, Optional

from .content import get_session_metadata
from .core import ProcessResult, Turn
from .exporter import TraceExporter
from .parser import group_turns
from .state import State, compute_updated_state, get_session_state
from .tracer import create_trace
from .transcript import find_previous_session, parse_new_messages

logger = logging.getLogger(__name__)


def create_session_traces(
    exporter: TraceExporter,
    session_id: str,
    turns: list[Turn],
    starting_turn_count: int,
) -> None:
    """Submit a batch of turns, numbering them after the ones already sent."""
    if not turns:
        return

    session_metadata = get_session_metadata(turns[0].user)
    for i, turn in enumerate(turns):
        create_trace(
            exporter,
            session_id,
            starting_turn_count + i + 1,
            turn,
            session_metadata if i == 0 else None,
        )


def process_transcript(
    exporter: TraceExporter,
    session_id: str,
    transcript_path: Path,
    state: State,
) -> ProcessResult:
    """Trace the complete turns written since the session's cursor.

    Returns the number of turns submitted and a state mapping with the
    session's cursor advanced. ``state`` itself is left untouched, so a
    failure part-way leaves the caller's state as it was.
    """
    session_state = get_session_state(state, session_id)

    parsed = parse_new_messages(transcript_path, session_state.last_line)
    if parsed is None:
        return ProcessResult(turns=0, state=state)

    logger.debug("Processing %d new messages for session %s", len(parsed.messages), session_id)

    grouped = group_turns(parsed.messages)
    if not grouped.turns:
        return ProcessResult(turns=0, state=state)

    create_session_traces(exporter, session_id, grouped.turns, session_state.turn_count)

    updated_state = compute_updated_state(
        state,
        session_id,
        session_state.turn_count,
        len(grouped.turns),
        grouped.consumed,
        parsed.line_offsets,
        session_state.last_line,
    )
    return ProcessResult(turns=len(grouped.turns), state=updated_state)


def process_with_recovery(
    exporter: TraceExporter,
    session_id: str,
    transcript_path: Path,
    state: State,
    checkpoint: Optional[Callable[[State], None]] = None,
) -> ProcessResult:
    """Process an orphaned predecessor session first, then the current one.

    The predecessor is run through the same pipeline with its own cursor, so
    its turns are attributed to its own session id. When it produced turns,
    ``checkpoint`` receives the state with its cursor advanced before the
    current session is touched.
    """
    recovered_turns = 0

    previous = find_previous_session(transcript_path, session_id)
    if previous is not None:
        logger.info(
            "Recovering previous session %s from %s",
            previous.session_id, previous.transcript_path,
        )
        try:
            recovered = process_transcript(
                exporter, previous.session_id, previous.transcript_path, state,
            )
            if checkpoint is not None and recovered.turns:
                checkpoint(recovered.state)
        except Exception as e:  # noqa: BLE001
            logger.error("Failed to recover previous session %s: %s", previous.session_id, e)
        else:
            recovered_turns = recovered.turns
            state = recovered.state

    current = process_transcript(exporter, session_id, transcript_path, state)
    return ProcessResult(turns=recovered_turns + current.turns, state=current.state)
