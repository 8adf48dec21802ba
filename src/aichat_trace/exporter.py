"""Abstract base class for observability backends."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional


class TraceExporter(ABC):
    """Base class for trace backends.

    The projector in ``tracer.py`` only talks to this interface: it opens
    spans (optionally under a parent, with an explicit start time), ends them
    with an explicit end time, and tags the root span with trace-level
    attributes. Spans may be buffered until ``flush()``.
    """

    name: str  # "langfuse"

    @abstractmethod
    def start_span(
        self,
        name: str,
        *,
        parent: Any = None,
        as_type: str = "span",
        start_time: Optional[datetime] = None,
        input: Any = None,
        output: Any = None,
        metadata: Optional[dict[str, Any]] = None,
        model: Optional[str] = None,
        usage_details: Optional[dict[str, int]] = None,
        level: Optional[str] = None,
    ) -> Any:
        """Open a span and return an opaque handle for it.

        ``as_type`` is one of "span", "agent", "generation" or "tool".
        """
        ...

    @abstractmethod
    def end_span(self, span: Any, end_time: Optional[datetime] = None) -> None:
        """Close a span; without ``end_time`` the backend uses the current time."""
        ...

    @abstractmethod
    def update_trace(
        self,
        span: Any,
        *,
        name: str,
        session_id: str,
        input: Any = None,
        output: Any = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        """Attach trace-level attributes through the trace's root span."""
        ...

    @abstractmethod
    def flush(self) -> None:
        """Deliver every buffered span. Raises ExportError on failure."""
        ...

    @abstractmethod
    def shutdown(self) -> None:
        ...
