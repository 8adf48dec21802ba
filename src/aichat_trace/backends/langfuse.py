"""Langfuse backend.

Spans are emitted with the OpenTelemetry SDK and shipped over OTLP/HTTP to
Langfuse's ingestion endpoint (``<base_url>/api/public/otel/v1/traces``).
Langfuse reads its own data model from ``langfuse.*`` span attributes:

- ``langfuse.observation.type``: span | agent | generation | tool
- ``langfuse.observation.input`` / ``.output``: JSON strings
- ``langfuse.observation.model.name``, ``langfuse.observation.usage_details``
- ``langfuse.observation.level``: DEFAULT | ERROR
- ``langfuse.observation.metadata.<key>`` / ``langfuse.trace.metadata.<key>``
- ``langfuse.trace.name``, ``langfuse.session.id``,
  ``langfuse.trace.input`` / ``.output``

Going through OpenTelemetry directly (rather than an SDK decorator layer) is
what allows explicit start and end times taken from the transcript.
"""

import base64
import json
import logging
from datetime import datetime
from typing import Any, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Status, StatusCode

from ..config import LangfuseSettings
from ..errors import ExportError
from ..exporter import TraceExporter

logger = logging.getLogger(__name__)

OTEL_TRACES_PATH = "/api/public/otel/v1/traces"
TRACER_NAME = "aichat-trace"
EXPORT_TIMEOUT_SECONDS = 10
FLUSH_TIMEOUT_MILLIS = 30_000


class LangfuseExporter(TraceExporter):
    """Trace backend writing Langfuse-flavoured OpenTelemetry spans."""

    name = "langfuse"

    def __init__(self, tracer_provider: TracerProvider):
        self._provider = tracer_provider
        self._tracer = tracer_provider.get_tracer(TRACER_NAME)

    @classmethod
    def from_settings(cls, settings: LangfuseSettings) -> "LangfuseExporter":
        """Build an exporter that ships spans to the configured Langfuse host."""
        credentials = base64.b64encode(
            f"{settings.public_key}:{settings.secret_key}".encode("utf-8")
        ).decode("ascii")
        endpoint = settings.base_url.rstrip("/") + OTEL_TRACES_PATH

        try:
            span_exporter = OTLPSpanExporter(
                endpoint=endpoint,
                headers={"Authorization": f"Basic {credentials}"},
                timeout=EXPORT_TIMEOUT_SECONDS,
            )
            provider = TracerProvider(
                resource=Resource.create({"service.name": "aichat-trace"})
            )
            provider.add_span_processor(BatchSpanProcessor(span_exporter))
        except Exception as e:  # noqa: BLE001
            raise ExportError(f"Failed to initialize Langfuse exporter: {e}") from e

        logger.debug("Langfuse exporter initialized (endpoint=%s)", endpoint)
        return cls(provider)

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
    ) -> trace.Span:
        context = trace.set_span_in_context(parent) if parent is not None else None
        span = self._tracer.start_span(
            name,
            context=context,
            start_time=_to_ns(start_time),
        )

        attributes: dict[str, Any] = {"langfuse.observation.type": as_type}
        if input is not None:
            attributes["langfuse.observation.input"] = _serialize(input)
        if output is not None:
            attributes["langfuse.observation.output"] = _serialize(output)
        if model:
            attributes["langfuse.observation.model.name"] = model
        if usage_details:
            attributes["langfuse.observation.usage_details"] = _serialize(usage_details)
        if level:
            attributes["langfuse.observation.level"] = level
        attributes.update(_flatten_metadata("langfuse.observation.metadata", metadata))
        span.set_attributes(attributes)

        if level == "ERROR":
            span.set_status(Status(StatusCode.ERROR))
        return span

    def end_span(self, span: trace.Span, end_time: Optional[datetime] = None) -> None:
        span.end(end_time=_to_ns(end_time))

    def update_trace(
        self,
        span: trace.Span,
        *,
        name: str,
        session_id: str,
        input: Any = None,
        output: Any = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        attributes: dict[str, Any] = {
            "langfuse.trace.name": name,
            "langfuse.session.id": session_id,
        }
        if input is not None:
            attributes["langfuse.trace.input"] = _serialize(input)
        if output is not None:
            attributes["langfuse.trace.output"] = _serialize(output)
        attributes.update(_flatten_metadata("langfuse.trace.metadata", metadata))
        span.set_attributes(attributes)

    def flush(self) -> None:
        if not self._provider.force_flush(FLUSH_TIMEOUT_MILLIS):
            raise ExportError("Timed out flushing spans to Langfuse")

    def shutdown(self) -> None:
        self._provider.shutdown()


def _to_ns(value: Optional[datetime]) -> Optional[int]:
    if value is None:
        return None
    return int(value.timestamp() * 1_000_000_000)


def _serialize(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


def _flatten_metadata(prefix: str, metadata: Optional[dict[str, Any]]) -> dict[str, Any]:
    """Expand metadata into one attribute per key, as Langfuse expects."""
    if not metadata:
        return {}
    flat = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, (str, bool, int, float)):
            flat[f"{prefix}.{key}"] = value
        else:
            flat[f"{prefix}.{key}"] = _serialize(value)
    return flat
