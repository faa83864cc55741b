from __future__ import annotations

from enum import Enum
from typing import Optional


class SpanlogError(Exception):
  """Base class for every error raised by spanlog."""


class ConfigurationError(SpanlogError):
  """The logger cannot be built from the given configuration."""


class TraceContextError(SpanlogError):
  """A trace context header could not be understood."""


class ParseErrorKind(str, Enum):
  INVALID_FORMAT = "invalid_format"
  UNSUPPORTED_VERSION = "unsupported_version"
  INVALID_TRACE_ID = "invalid_trace_id"
  INVALID_SPAN_ID = "invalid_span_id"
  INVALID_FLAGS = "invalid_flags"


class ParseError(TraceContextError):
  """
  A `traceparent` header value could not be parsed.

  `kind` tells which part of the header was rejected.
  """

  def __init__(self, kind: ParseErrorKind, header_value: str) -> None:
    super().__init__(f"Invalid traceparent header ({kind.value}): {header_value!r}")
    self.kind = kind
    self.header_value = header_value


class FormattingError(SpanlogError):
  """A log record could not be serialized to JSON."""


class ExportError(SpanlogError):
  """
  Delivering a payload to the ingest endpoint failed.

  `status_code` is set when the endpoint answered with a non-success status,
  and is None for transport-level faults.
  """

  def __init__(self, message: str, status_code: Optional[int] = None) -> None:
    super().__init__(message)
    self.status_code = status_code
