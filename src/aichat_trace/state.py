"""Persisted resume cursors, one per session.

The state file is a single JSON object keyed by session id::

    {"<session-id>": {"last_line": 12, "turn_count": 4, "updated": "..."}}

It is read wholesale at the start of a run and written wholesale at the end.
There is no locking; two hooks racing on the same session may replay a turn.
"""

import dataclasses
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from .core import SessionState

logger = logging.getLogger(__name__)

State = dict[str, SessionState]


class StateStore:
    """JSON file holding every session's cursor."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> State:
        """Load all cursors. A missing or corrupt file means "start over"."""
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.debug("Failed to load state from %s: %s", self.path, e)
            return {}

        if not isinstance(data, dict):
            logger.debug("Ignoring state file %s: not a JSON object", self.path)
            return {}

        state: State = {}
        for session_id, entry in data.items():
            session_state = _session_state_from_dict(entry)
            if session_state is not None:
                state[session_id] = session_state
        return state

    def save(self, state: State) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {sid: dataclasses.asdict(ss) for sid, ss in state.items()}
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)


def _session_state_from_dict(entry) -> SessionState | None:
    if not isinstance(entry, dict):
        return None
    last_line = entry.get("last_line", 0)
    turn_count = entry.get("turn_count", 0)
    if not _is_count(last_line) or not _is_count(turn_count):
        return None
    updated = entry.get("updated", "")
    return SessionState(
        last_line=max(last_line, 0),
        turn_count=max(turn_count, 0),
        updated=updated if isinstance(updated, str) else "",
    )


def _is_count(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def get_session_state(state: State, session_id: str) -> SessionState:
    return state.get(session_id) or SessionState()


def compute_updated_state(
    state: State,
    session_id: str,
    turn_count: int,
    new_turns: int,
    consumed: int,
    line_offsets: list[int],
    last_line: int,
) -> State:
    """Return a copy of ``state`` with the session's cursor advanced.

    The cursor moves to the source line of the last consumed message, so
    messages of an unfinished turn are read again next time.
    """
    new_last_line = line_offsets[consumed - 1] if consumed > 0 else last_line
    updated = dict(state)
    updated[session_id] = SessionState(
        last_line=new_last_line,
        turn_count=turn_count + new_turns,
        updated=datetime.now(timezone.utc).isoformat(),
    )
    return updated
