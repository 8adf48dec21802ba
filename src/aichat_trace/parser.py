"""Fold classified messages into turns and resolve their tool calls."""

import dataclasses
import logging
from typing import Optional

from .content import TURN_DURATION_SUBTYPE, get_timestamp, is_tool_result, tool_call_from_block
from .core import (
    AssistantMessage,
    ContentBlock,
    GroupTurnsResult,
    Message,
    SystemMessage,
    ToolCall,
    Turn,
    UserMessage,
)

logger = logging.getLogger(__name__)


def merge_assistant_parts(parts: list[AssistantMessage]) -> AssistantMessage:
    """Merge the streamed parts of one response into a single message.

    Content blocks are concatenated in arrival order. Id, model and timestamp
    come from the first part. Usage comes from the last part, falling back to
    the first when the last one has none.
    """
    if not parts:
        raise ValueError("cannot merge an empty list of assistant parts")

    merged_content: list[ContentBlock] = []
    for part in parts:
        content = part.content
        if isinstance(content, list):
            merged_content.extend(content)
        elif content is not None:
            merged_content.append({"type": "text", "text": str(content)})

    first, last = parts[0], parts[-1]
    return dataclasses.replace(
        first,
        content=merged_content,
        usage=last.usage if last.usage is not None else first.usage,
    )


class _PartAccumulator:
    """Open group of assistant parts sharing one merge key."""

    def __init__(self) -> None:
        self.parts: list[AssistantMessage] = []
        self.merge_key: Optional[str] = None

    def add(self, msg: AssistantMessage, flush_into: list[AssistantMessage]) -> None:
        key = msg.id or None
        if key is not None and key != self.merge_key:
            self.flush(flush_into)
            self.merge_key = key
        self.parts.append(msg)

    def flush(self, into: list[AssistantMessage]) -> None:
        if self.parts:
            into.append(merge_assistant_parts(self.parts))
        self.reset()

    def reset(self) -> None:
        self.parts = []
        self.merge_key = None


class _TurnBuilder:
    def __init__(self) -> None:
        self.turns: list[Turn] = []
        self.consumed = 0
        self.current_user: Optional[UserMessage] = None
        self.current_assistants: list[AssistantMessage] = []
        self.current_tool_results: list[UserMessage] = []
        self.pending_duration_ms: Optional[float] = None
        self.accumulator = _PartAccumulator()

    def feed(self, index: int, msg: Message) -> None:
        if isinstance(msg, SystemMessage):
            if msg.subtype == TURN_DURATION_SUBTYPE and msg.duration_ms is not None:
                self.pending_duration_ms = msg.duration_ms
        elif isinstance(msg, UserMessage):
            if is_tool_result(msg):
                self.current_tool_results.append(msg)
                return
            self.finalize(boundary=index)
            self._reset(msg)
        elif isinstance(msg, AssistantMessage):
            self.accumulator.add(msg, self.current_assistants)

    def finalize(self, boundary: int) -> None:
        self.accumulator.flush(self.current_assistants)
        if self.current_user is None or not self.current_assistants:
            return
        self.turns.append(
            Turn(
                user=self.current_user,
                assistants=self.current_assistants,
                tool_results=self.current_tool_results,
                duration_ms=self.pending_duration_ms,
            )
        )
        self.consumed = boundary

    def _reset(self, user: UserMessage) -> None:
        self.current_user = user
        self.current_assistants = []
        self.current_tool_results = []
        self.pending_duration_ms = None
        self.accumulator.reset()


def group_turns(messages: list[Message]) -> GroupTurnsResult:
    """Group a message sequence into complete turns.

    ``consumed`` counts the leading messages that ended up inside an emitted
    turn. Anything after it (typically a prompt still waiting for its answer)
    must be fed again on the next run.
    """
    builder = _TurnBuilder()
    for index, msg in enumerate(messages):
        builder.feed(index, msg)
    builder.finalize(boundary=len(messages))

    logger.debug(
        "Grouped %d messages into %d turns (consumed %d)",
        len(messages), len(builder.turns), builder.consumed,
    )
    return GroupTurnsResult(turns=builder.turns, consumed=builder.consumed)


def match_tool_results(
    tool_use_blocks: list[ContentBlock],
    tool_results: list[UserMessage],
) -> list[ToolCall]:
    """Pair each tool_use block with the first tool_result answering it.

    Results are only looked up inside the same turn; an unmatched call keeps
    ``output=None`` and ``is_error=False``.
    """
    calls = []
    for block in tool_use_blocks:
        call = tool_call_from_block(block)
        for result_msg in tool_results:
            matched = _find_result_block(result_msg, call.id)
            if matched is None:
                continue
            call.output = matched.get("content")
            call.is_error = matched.get("is_error") is True
            call.timestamp = get_timestamp(result_msg)
            break
        calls.append(call)
    return calls


def _find_result_block(msg: UserMessage, tool_use_id: str) -> Optional[ContentBlock]:
    for item in msg.content:
        if (
            isinstance(item, dict)
            and item.get("type") == "tool_result"
            and item.get("tool_use_id") == tool_use_id
        ):
            return item
    return None
