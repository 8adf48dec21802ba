"""Classify raw transcript records and read their content.

Claude Code writes one JSON object per line. Shapes that matter here:

- ``{"type": "user", "message": {"role": "user", "content": ...}, ...}``:
  a user prompt, or a tool-result carrier when its content holds
  ``tool_result`` blocks. Older transcripts put ``content`` at the top level.
- ``{"type": "assistant", "message": {"id", "model", "content", "usage"}}``:
  one part of a model response. Parts of the same response share ``message.id``.
- ``{"type": "system", "subtype": "turn_duration", "durationMs": ...}``:
  written once a turn has finished.

Anything flagged ``isMeta`` was injected by the framework, not typed by the
user, and is dropped along with every shape not listed above.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from .core import (
    AssistantMessage,
    ContentBlock,
    Message,
    SessionMetadata,
    SystemMessage,
    ToolCall,
    UserMessage,
)

logger = logging.getLogger(__name__)

TURN_DURATION_SUBTYPE = "turn_duration"


def classify_message(record: Any) -> Optional[Message]:
    """Turn one raw record into a typed message, or None to discard it."""
    if not isinstance(record, dict):
        return None
    if record.get("isMeta") is True:
        return None

    envelope = record.get("message")
    if not isinstance(envelope, dict):
        envelope = None

    record_type = record.get("type")
    content = _resolve_content(record, envelope)
    timestamp = _resolve_timestamp(record, envelope)

    if record_type == "user":
        return UserMessage(
            content=content,
            timestamp=timestamp,
            session_id=_str_or_none(record.get("sessionId")),
            version=_str_or_none(record.get("version")),
            slug=_str_or_none(record.get("slug")),
            cwd=_str_or_none(record.get("cwd")),
            git_branch=_str_or_none(record.get("gitBranch")),
        )

    if record_type == "system":
        duration = record.get("durationMs")
        return SystemMessage(
            subtype=_str_or_none(record.get("subtype")),
            duration_ms=duration if _is_number(duration) else None,
            timestamp=timestamp,
        )

    if envelope is not None:
        usage = envelope.get("usage")
        return AssistantMessage(
            id=_str_or_none(envelope.get("id")) or "",
            model=_str_or_none(envelope.get("model")) or "unknown",
            content=content,
            usage=usage if isinstance(usage, dict) else None,
            timestamp=timestamp,
        )

    return None


def _resolve_content(record: dict, envelope: Optional[dict]) -> list[ContentBlock]:
    raw = envelope.get("content") if envelope is not None else record.get("content")
    if isinstance(raw, str):
        return [{"type": "text", "text": raw}]
    if isinstance(raw, list):
        return raw
    return []


def _resolve_timestamp(record: dict, envelope: Optional[dict]) -> Optional[str]:
    ts = record.get("timestamp")
    if ts is None and envelope is not None:
        ts = envelope.get("timestamp")
    return ts if isinstance(ts, str) else None


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# ── Content helpers ──────────────────────────────────────────────


def _is_block(item: Any, block_type: str) -> bool:
    return isinstance(item, dict) and item.get("type") == block_type


def is_tool_result(msg: Message) -> bool:
    """True when the message content carries at least one tool_result block."""
    return any(_is_block(item, "tool_result") for item in getattr(msg, "content", []))


def get_tool_calls(msg: Message) -> list[ContentBlock]:
    """Return the tool_use blocks of a message, in order."""
    return [item for item in getattr(msg, "content", []) if _is_block(item, "tool_use")]


def get_text_content(msg: Message) -> str:
    """Join the text blocks of a message with newlines."""
    parts = []
    for item in getattr(msg, "content", []):
        if _is_block(item, "text"):
            text = item.get("text")
            parts.append(text if isinstance(text, str) else "")
    return "\n".join(parts)


def get_timestamp(msg: Message) -> Optional[datetime]:
    return _parse_iso(msg.timestamp)


def get_session_id(msg: Message) -> Optional[str]:
    return getattr(msg, "session_id", None)


def get_usage(msg: AssistantMessage) -> Optional[dict[str, int]]:
    """Map the response's token usage onto backend usage-detail keys.

    Returns None when the response carries no numeric counter at all.
    """
    usage = msg.usage
    if not usage:
        return None

    input_tokens = usage.get("input_tokens")
    output_tokens = usage.get("output_tokens")

    details: dict[str, int] = {}
    if _is_number(input_tokens):
        details["input"] = input_tokens
    if _is_number(output_tokens):
        details["output"] = output_tokens
    if _is_number(input_tokens) and _is_number(output_tokens):
        details["total"] = input_tokens + output_tokens
    for key in ("cache_read_input_tokens", "cache_creation_input_tokens"):
        if _is_number(usage.get(key)):
            details[key] = usage[key]

    return details or None


def get_session_metadata(msg: UserMessage) -> Optional[SessionMetadata]:
    metadata = SessionMetadata(
        version=msg.version,
        slug=msg.slug,
        cwd=msg.cwd,
        git_branch=msg.git_branch,
    )
    if not metadata.to_dict():
        return None
    return metadata


def tool_call_from_block(block: ContentBlock) -> ToolCall:
    return ToolCall(
        id=str(block.get("id", "")),
        name=str(block.get("name", "unknown")),
        input=block.get("input"),
    )


def _parse_iso(value: str | None) -> datetime | None:
    """Parse an ISO 8601 datetime string."""
    if not value:
        return None
    try:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        parsed = datetime.fromisoformat(value)
    except (ValueError, TypeError):
        logger.debug("Unparseable timestamp: %r", value)
        return None
    # Naive timestamps are taken as UTC so they compare with aware ones
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
