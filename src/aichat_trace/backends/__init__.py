"""Observability backends that traces can be submitted to."""

from ..config import LangfuseSettings
from ..exporter import TraceExporter
from .langfuse import LangfuseExporter


def create_exporter(settings: LangfuseSettings) -> TraceExporter:
    """Build the backend for the given settings.

    Raises:
        ExportError: if the backend cannot be initialised.
    """
    return LangfuseExporter.from_settings(settings)
