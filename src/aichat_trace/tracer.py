"""Project turns onto trace span trees.

Each turn becomes::

    Turn <n>                 outer span, carries the trace attributes
    └── Turn <n>             agent span for the whole turn
        ├── <model>          generation per (merged) assistant message
        │   └── <tool name>  tool span per tool call of that message
        └── <model>          ...

Timing comes from transcript timestamps whenever they exist; spans without a
known time fall back to the backend's clock.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from .content import get_text_content, get_timestamp, get_tool_calls, get_usage
from .core import AssistantMessage, Message, SessionMetadata, Turn
from .exporter import TraceExporter
from .parser import match_tool_results

logger = logging.getLogger(__name__)

TRACE_SOURCE = "claude-code"


def compute_trace_end(turn: Turn, trace_start: Optional[datetime]) -> Optional[datetime]:
    """End of the turn: start + reported duration, else the latest timestamp."""
    if trace_start is not None and turn.duration_ms is not None:
        return trace_start + timedelta(milliseconds=turn.duration_ms)
    return _latest_timestamp([*turn.assistants, *turn.tool_results])


def _latest_timestamp(messages: list[Message]) -> Optional[datetime]:
    latest = None
    for msg in messages:
        ts = get_timestamp(msg)
        if ts is not None and (latest is None or ts > latest):
            latest = ts
    return latest


def _user_payload(text: str) -> dict[str, str]:
    return {"role": "user", "content": text}


def _assistant_payload(text: str) -> dict[str, str]:
    return {"role": "assistant", "content": text}


def create_trace(
    exporter: TraceExporter,
    session_id: str,
    turn_num: int,
    turn: Turn,
    session_metadata: Optional[SessionMetadata] = None,
) -> None:
    """Submit one turn as a trace."""
    name = f"Turn {turn_num}"
    user_text = get_text_content(turn.user)
    last_assistant_text = get_text_content(turn.assistants[-1]) if turn.assistants else ""
    trace_start = get_timestamp(turn.user)
    trace_end = compute_trace_end(turn, trace_start)

    metadata: dict[str, Any] = {
        "source": TRACE_SOURCE,
        "turn_number": turn_num,
        "session_id": session_id,
    }
    if session_metadata is not None:
        metadata.update(session_metadata.to_dict())

    outer = exporter.start_span(
        name,
        start_time=trace_start,
        input=_user_payload(user_text),
        output=_assistant_payload(last_assistant_text),
    )
    try:
        exporter.update_trace(
            outer,
            name=name,
            session_id=session_id,
            input=_user_payload(user_text),
            output=_assistant_payload(last_assistant_text),
            metadata=metadata,
        )

        agent = exporter.start_span(
            name,
            parent=outer,
            as_type="agent",
            start_time=trace_start,
            input=_user_payload(user_text),
            output=_assistant_payload(last_assistant_text),
        )
        try:
            _create_generations(exporter, agent, turn, user_text)
        finally:
            exporter.end_span(agent, trace_end)
    finally:
        exporter.end_span(outer, trace_end)

    logger.debug("Created trace for turn %d", turn_num)


def _create_generations(
    exporter: TraceExporter, parent: Any, turn: Turn, user_text: str,
) -> None:
    for index, assistant in enumerate(turn.assistants):
        next_start = None
        if index + 1 < len(turn.assistants):
            next_start = get_timestamp(turn.assistants[index + 1])
        gen_end = next_start or datetime.now(timezone.utc)

        _create_generation(
            exporter,
            parent,
            assistant,
            turn,
            # Later generations continue after tool results, not the prompt
            user_text if index == 0 else None,
            gen_end,
        )


def _create_generation(
    exporter: TraceExporter,
    parent: Any,
    assistant: AssistantMessage,
    turn: Turn,
    user_text: Optional[str],
    gen_end: datetime,
) -> None:
    tool_calls = match_tool_results(get_tool_calls(assistant), turn.tool_results)
    gen_start = get_timestamp(assistant)

    generation = exporter.start_span(
        assistant.model,
        parent=parent,
        as_type="generation",
        start_time=gen_start,
        input=_user_payload(user_text) if user_text is not None else None,
        output=_assistant_payload(get_text_content(assistant)),
        metadata={"tool_count": len(tool_calls)},
        model=assistant.model,
        usage_details=get_usage(assistant),
    )
    try:
        tool_start = gen_start
        for call in tool_calls:
            tool = exporter.start_span(
                call.name,
                parent=generation,
                as_type="tool",
                start_time=tool_start,
                input=call.input,
                output=call.output,
                metadata={"tool_name": call.name, "tool_id": call.id},
                level="ERROR" if call.is_error else "DEFAULT",
            )
            exporter.end_span(tool, call.timestamp)
            if call.timestamp is not None:
                tool_start = call.timestamp
            logger.debug("Created tool observation for: %s", call.name)
    finally:
        exporter.end_span(generation, gen_end)
