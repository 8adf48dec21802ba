"""Entry point run by the Claude Code Stop hook."""

import logging
import time
from pathlib import Path
from typing import Callable, Optional

from .backends import create_exporter
from .config import (
    HOOK_WARNING_THRESHOLD_SECONDS,
    LangfuseSettings,
    get_claude_projects_path,
    get_state_file,
    is_tracing_enabled,
    load_langfuse_settings,
)
from .errors import ConfigurationError, ExportError
from .exporter import TraceExporter
from .processor import process_with_recovery
from .state import StateStore
from .transcript import find_latest_transcript

logger = logging.getLogger(__name__)

ExporterFactory = Callable[[LangfuseSettings], TraceExporter]


def resolve_session(
    session_id: Optional[str],
    transcript_path: Optional[Path],
    projects_dir: Path,
) -> Optional[tuple[str, Path]]:
    """Use the session named by the caller, else the latest transcript on disk."""
    if transcript_path is not None:
        if not transcript_path.is_file():
            logger.debug("Transcript path does not exist: %s", transcript_path)
            return None
        return session_id or transcript_path.stem, transcript_path
    return find_latest_transcript(projects_dir)


def run_hook(
    session_id: Optional[str] = None,
    transcript_path: Optional[Path] = None,
    *,
    exporter_factory: ExporterFactory = create_exporter,
    state_file: Optional[Path] = None,
    projects_dir: Optional[Path] = None,
) -> int:
    """Trace the new turns of one session. Returns a process exit code.

    Disabled tracing and missing credentials are not failures: the hook must
    never get in the way of the session it observes.
    """
    started = time.monotonic()
    logger.debug("Hook started")

    if not is_tracing_enabled():
        logger.debug("Tracing disabled (TRACE_TO_LANGFUSE != true)")
        return 0

    try:
        settings = load_langfuse_settings()
    except ConfigurationError as e:
        logger.error("%s", e)
        return 0

    try:
        exporter = exporter_factory(settings)
    except ExportError as e:
        logger.error("%s", e)
        return 1

    try:
        target = resolve_session(
            session_id, transcript_path, projects_dir or get_claude_projects_path(),
        )
        if target is None:
            logger.debug("No transcript file found")
            return 0

        session_id, transcript_path = target
        logger.debug("Processing session: %s", session_id)

        store = StateStore(state_file or get_state_file())
        state = store.load()

        def commit(new_state):
            exporter.flush()
            store.save(new_state)

        try:
            result = process_with_recovery(
                exporter, session_id, transcript_path, state, checkpoint=commit,
            )
            commit(result.state)
        except Exception as e:  # noqa: BLE001
            logger.error("Failed to process transcript: %s", e)
            _flush_quietly(exporter)
            return 1

        duration = time.monotonic() - started
        logger.info("Processed %d turns in %.1fs", result.turns, duration)
        if duration > HOOK_WARNING_THRESHOLD_SECONDS:
            logger.warning("Hook took %.1fs (>3min), consider optimizing", duration)
        return 0
    finally:
        exporter.shutdown()


def _flush_quietly(exporter: TraceExporter) -> None:
    """Deliver whatever was submitted before a failure."""
    try:
        exporter.flush()
    except ExportError as e:
        logger.warning("Flush after failure did not complete: %s", e)
