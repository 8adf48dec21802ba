"""Read Claude Code transcripts incrementally and locate them on disk.

Transcripts live at ``<projects>/<project-dir>/<session-uuid>.jsonl`` and are
only ever appended to, so a 1-based line number is a stable resume cursor.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from .content import classify_message
from .core import ParsedLines, PreviousSession

logger = logging.getLogger(__name__)


def read_lines(path: Path) -> list[str]:
    # Undecodable bytes become U+FFFD so the damaged line fails JSON parsing alone
    return path.read_text(encoding="utf-8", errors="replace").strip().split("\n")


def parse_new_messages(path: Path, last_line: int) -> Optional[ParsedLines]:
    """Classify the lines after ``last_line`` and remember where each came from.

    Malformed and unrecognised lines are dropped, so ``line_offsets[i]`` holds
    the 1-based source line of ``messages[i]``. Returns None when there is
    nothing new to process.
    """
    lines = read_lines(path)
    total = len(lines)

    if last_line >= total:
        logger.debug("No new lines to process (last: %d, total: %d)", last_line, total)
        return None

    messages = []
    line_offsets = []
    for line_num in range(last_line + 1, total + 1):
        raw_line = lines[line_num - 1]
        try:
            record = json.loads(raw_line)
        except json.JSONDecodeError as e:
            # Expected for a line still being written
            logger.debug("Skipping line %d of %s: %s", line_num, path, e)
            continue

        msg = classify_message(record)
        if msg is None:
            continue
        messages.append(msg)
        line_offsets.append(line_num)

    if not messages:
        logger.debug("No usable messages after line %d in %s", last_line, path)
        return None
    return ParsedLines(messages=messages, line_offsets=line_offsets)


def find_previous_session(path: Path, current_session_id: str) -> Optional[PreviousSession]:
    """Detect a predecessor session whose tail was carried into this transcript.

    Some session transitions (``/clear``, resuming into a fresh file) start
    the new transcript with records from the old session without the old
    session ever being flushed. The first line tells which session that was.
    """
    try:
        with path.open(encoding="utf-8", errors="replace") as f:
            first_line = f.readline().strip()
        if not first_line:
            return None
        record = json.loads(first_line)
    except (OSError, json.JSONDecodeError) as e:
        logger.debug("Failed to detect previous session from %s: %s", path, e)
        return None

    if not isinstance(record, dict):
        return None
    session_id = record.get("sessionId")
    if not isinstance(session_id, str) or not session_id or session_id == current_session_id:
        return None

    previous_path = path.parent / f"{session_id}.jsonl"
    if not previous_path.exists():
        return None

    return PreviousSession(session_id=session_id, transcript_path=previous_path)


def find_latest_transcript(projects_dir: Path) -> Optional[tuple[str, Path]]:
    """Return ``(session_id, path)`` for the most recently modified transcript."""
    if not projects_dir.is_dir():
        logger.debug("Projects directory not found: %s", projects_dir)
        return None

    latest_file = None
    latest_mtime = 0.0
    for project_dir in projects_dir.iterdir():
        if not project_dir.is_dir():
            continue
        for jsonl_file in project_dir.glob("*.jsonl"):
            try:
                mtime = jsonl_file.stat().st_mtime
            except OSError:
                continue
            if mtime > latest_mtime:
                latest_mtime = mtime
                latest_file = jsonl_file

    if latest_file is None:
        logger.debug("No transcript files found under %s", projects_dir)
        return None

    # The file is named after its session. Its first line may belong to a
    # predecessor session, see find_previous_session().
    session_id = latest_file.stem
    logger.debug("Found transcript: %s, session: %s", latest_file, session_id)
    return session_id, latest_file
