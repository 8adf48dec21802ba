"""Exception types raised by aichat-trace."""


class TraceError(Exception):
    """Base class for aichat-trace errors."""


class ConfigurationError(TraceError):
    """Tracing is enabled but its configuration is missing or invalid."""


class ExportError(TraceError):
    """The observability backend could not be initialised or reached."""
