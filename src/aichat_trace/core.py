"""Core data models for aichat-trace."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

# Raw JSON block: {"type": "text" | "tool_use" | "tool_result" | ..., ...}
ContentBlock = dict[str, Any]


@dataclass
class UserMessage:
    """A user prompt, or a carrier for tool results."""

    content: list[ContentBlock] = field(default_factory=list)
    timestamp: Optional[str] = None
    session_id: Optional[str] = None
    version: Optional[str] = None
    slug: Optional[str] = None
    cwd: Optional[str] = None
    git_branch: Optional[str] = None
    role: str = field(default="user", init=False)


@dataclass
class AssistantMessage:
    """One model response (or one part of it, before merging)."""

    id: str  # merge key shared by all parts of one response; "" when absent
    model: str = "unknown"
    content: list[ContentBlock] = field(default_factory=list)
    usage: Optional[dict[str, Any]] = None
    timestamp: Optional[str] = None
    role: str = field(default="assistant", init=False)


@dataclass
class SystemMessage:
    """A framework event such as the end-of-turn duration marker."""

    subtype: Optional[str] = None
    duration_ms: Optional[float] = None
    timestamp: Optional[str] = None
    role: str = field(default="system", init=False)


Message = Union[UserMessage, AssistantMessage, SystemMessage]


@dataclass
class Turn:
    """One user request plus everything that answered it."""

    user: UserMessage
    assistants: list[AssistantMessage]
    tool_results: list[UserMessage] = field(default_factory=list)
    duration_ms: Optional[float] = None


@dataclass
class ToolCall:
    """A tool_use block resolved against the turn's tool results."""

    id: str
    name: str
    input: Any
    output: Any = None
    timestamp: Optional[datetime] = None
    is_error: bool = False


@dataclass
class SessionMetadata:
    """Session facts captured from the first user message of a batch."""

    version: Optional[str] = None
    slug: Optional[str] = None
    cwd: Optional[str] = None
    git_branch: Optional[str] = None

    def to_dict(self) -> dict[str, str]:
        data = {
            "version": self.version,
            "slug": self.slug,
            "cwd": self.cwd,
            "git_branch": self.git_branch,
        }
        return {k: v for k, v in data.items() if v is not None}


@dataclass
class SessionState:
    """Persisted resume cursor for one session."""

    last_line: int = 0  # 1-based; 0 means nothing processed yet
    turn_count: int = 0
    updated: str = ""


@dataclass
class GroupTurnsResult:
    turns: list[Turn]
    consumed: int


@dataclass
class ParsedLines:
    """Messages read after a cursor, with their 1-based source line numbers."""

    messages: list[Message]
    line_offsets: list[int]


@dataclass
class PreviousSession:
    session_id: str
    transcript_path: Path


@dataclass
class ProcessResult:
    turns: int
    state: dict[str, SessionState]
