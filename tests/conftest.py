"""Shared test fixtures for aichat-trace."""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from aichat_trace.backends.langfuse import LangfuseExporter
from aichat_trace.exporter import TraceExporter
from aichat_trace.logs import PACKAGE_LOGGER

ENV_KEYS = [
    "TRACE_TO_LANGFUSE",
    "CC_LANGFUSE_PUBLIC_KEY",
    "CC_LANGFUSE_SECRET_KEY",
    "CC_LANGFUSE_BASE_URL",
    "CC_LANGFUSE_HOST",
    "CC_LANGFUSE_DEBUG",
    "LANGFUSE_PUBLIC_KEY",
    "LANGFUSE_SECRET_KEY",
    "LANGFUSE_BASE_URL",
    "LANGFUSE_HOST",
]


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep tests away from the host's credentials and ~/.claude."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("AICHAT_TRACE_STATE_DIR", str(tmp_path / "state"))
    monkeypatch.setenv("AICHAT_CLAUDE_PATH", str(tmp_path / "projects"))


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo setup_logging() so caplog keeps seeing package records."""
    yield
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def tracing_env(monkeypatch):
    """Enable tracing with dummy credentials."""
    monkeypatch.setenv("TRACE_TO_LANGFUSE", "true")
    monkeypatch.setenv("CC_LANGFUSE_PUBLIC_KEY", "pk-test")
    monkeypatch.setenv("CC_LANGFUSE_SECRET_KEY", "sk-test")


@pytest.fixture
def project_dir(tmp_path):
    path = tmp_path / "projects" / "-Users-testuser-dev-myapp"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def write_transcript(project_dir):
    """Write records as a JSONL transcript named after the session."""

    def _write(session_id: str, records: list, raw_lines: Optional[dict[int, str]] = None):
        lines = [json.dumps(r) for r in records]
        # raw_lines lets a test splice malformed text in at a 0-based position
        for index, text in sorted((raw_lines or {}).items()):
            lines.insert(index, text)
        path = project_dir / f"{session_id}.jsonl"
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def write_raw_transcript(project_dir):
    """Write a transcript from raw byte lines, records given as dicts are JSON-encoded."""

    def _write(session_id: str, lines: list):
        encoded = [line if isinstance(line, bytes) else json.dumps(line).encode("utf-8") for line in lines]
        path = project_dir / f"{session_id}.jsonl"
        path.write_bytes(b"\n".join(encoded) + b"\n")
        return path

    return _write


@pytest.fixture
def append_transcript():
    def _append(path, records: list):
        with path.open("a", encoding="utf-8") as f:
            for record in records:
                f.write(json.dumps(record) + "\n")

    return _append


# ── Recording backend ────────────────────────────────────────────


@dataclass
class RecordedSpan:
    name: str
    as_type: str
    parent: Optional["RecordedSpan"]
    start_time: Optional[datetime]
    attrs: dict[str, Any]
    end_time: Optional[datetime] = None
    ended: bool = False
    trace: dict[str, Any] = field(default_factory=dict)


class RecordingExporter(TraceExporter):
    """In-memory TraceExporter that keeps every call for assertions."""

    name = "recording"

    def __init__(self, fail_on_span: Optional[str] = None):
        self.spans: list[RecordedSpan] = []
        self.flushed = 0
        self.shut_down = False
        self.fail_on_span = fail_on_span

    def start_span(self, name, *, parent=None, as_type="span", start_time=None, **attrs):
        if self.fail_on_span is not None and name == self.fail_on_span:
            raise RuntimeError(f"backend rejected span {name}")
        span = RecordedSpan(
            name=name,
            as_type=as_type,
            parent=parent,
            start_time=start_time,
            attrs={k: v for k, v in attrs.items() if v is not None},
        )
        self.spans.append(span)
        return span

    def end_span(self, span, end_time=None):
        span.end_time = end_time
        span.ended = True

    def update_trace(self, span, *, name, session_id, input=None, output=None, metadata=None):
        span.trace = {
            "name": name,
            "session_id": session_id,
            "input": input,
            "output": output,
            "metadata": metadata,
        }

    def flush(self):
        self.flushed += 1

    def shutdown(self):
        self.shut_down = True

    def of_type(self, as_type: str) -> list[RecordedSpan]:
        return [s for s in self.spans if s.as_type == as_type]

    @property
    def roots(self) -> list[RecordedSpan]:
        return [s for s in self.spans if s.parent is None]


@pytest.fixture
def recorder():
    return RecordingExporter()


@pytest.fixture
def make_recorder():
    return RecordingExporter


@pytest.fixture
def memory_spans():
    """A LangfuseExporter whose spans land in memory instead of on the wire."""
    span_exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    exporter = LangfuseExporter(provider)
    yield exporter, span_exporter
    provider.shutdown()
