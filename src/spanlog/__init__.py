"""
spanlog

Structured JSON logging with W3C trace correlation, exported in batches to a
remote log ingest endpoint without ever blocking or breaking the caller.
"""

from .batch import BatchManager
from .config import LoggerConfig, LogLevel
from .errors import (
  ConfigurationError,
  ExportError,
  FormattingError,
  ParseError,
  ParseErrorKind,
  SpanlogError,
  TraceContextError,
)
from .logger import Logger, SpanlogHandler, init, setup_logging
from .trace_context import (
  TraceContext,
  derive_child,
  extract_trace_context,
  format_traceparent,
  generate_trace_context,
  inject_trace_context,
  parse_traceparent,
)

__version__ = "0.1.0"

__all__ = [
  "BatchManager",
  "ConfigurationError",
  "ExportError",
  "FormattingError",
  "Logger",
  "LoggerConfig",
  "LogLevel",
  "ParseError",
  "ParseErrorKind",
  "SpanlogError",
  "SpanlogHandler",
  "TraceContext",
  "TraceContextError",
  "derive_child",
  "extract_trace_context",
  "format_traceparent",
  "generate_trace_context",
  "init",
  "inject_trace_context",
  "parse_traceparent",
  "setup_logging",
]
