"""
W3C trace context helpers.

Only the `traceparent` header is understood, and only version `00` is ever
produced:

    00-<32 hex trace id>-<16 hex span id>-<2 hex flags>
"""

from __future__ import annotations

import os
import string
from dataclasses import dataclass, replace
from typing import Dict, Mapping, Optional, Sequence, Union

from .errors import ParseError, ParseErrorKind

TRACEPARENT_HEADER = "traceparent"
TRACESTATE_HEADER = "tracestate"

TRACEPARENT_VERSION = "00"
DEFAULT_TRACE_FLAGS = "01"

HeaderValue = Union[str, Sequence[str]]

_HEX_DIGITS = frozenset(string.hexdigits)


@dataclass(frozen=True)
class TraceContext:
  trace_id: str
  span_id: str
  trace_flags: str = DEFAULT_TRACE_FLAGS
  trace_state: Optional[str] = None


def _random_hex(num_bytes: int) -> str:
  return os.urandom(num_bytes).hex()


def generate_trace_context() -> TraceContext:
  """Start a new trace with a fresh trace id and span id."""
  return TraceContext(trace_id=_random_hex(16), span_id=_random_hex(8))


def derive_child(parent: TraceContext) -> TraceContext:
  """
  Return a context for a child span of `parent`.

  The trace id, flags and trace state are kept; only the span id changes.
  """
  return replace(parent, span_id=_random_hex(8))


def format_traceparent(ctx: TraceContext) -> str:
  return f"{TRACEPARENT_VERSION}-{ctx.trace_id}-{ctx.span_id}-{ctx.trace_flags}"


def _is_hex(value: str, length: int) -> bool:
  return len(value) == length and all(ch in _HEX_DIGITS for ch in value)


def parse_traceparent(header_value: str) -> TraceContext:
  """
  Parse a `traceparent` header value.

  Raises ParseError describing the first segment that fails validation.
  Upper-case hex digits are accepted and normalised to lower case.
  """
  parts = header_value.split("-")
  if len(parts) != 4:
    raise ParseError(ParseErrorKind.INVALID_FORMAT, header_value)

  version, trace_id, span_id, flags = parts
  if version != TRACEPARENT_VERSION:
    raise ParseError(ParseErrorKind.UNSUPPORTED_VERSION, header_value)
  if not _is_hex(trace_id, 32):
    raise ParseError(ParseErrorKind.INVALID_TRACE_ID, header_value)
  if not _is_hex(span_id, 16):
    raise ParseError(ParseErrorKind.INVALID_SPAN_ID, header_value)
  if not _is_hex(flags, 2):
    raise ParseError(ParseErrorKind.INVALID_FLAGS, header_value)

  return TraceContext(
    trace_id=trace_id.lower(),
    span_id=span_id.lower(),
    trace_flags=flags.lower(),
  )


def extract_trace_context(headers: Mapping[str, HeaderValue]) -> TraceContext:
  """
  Read the trace context carried by inbound request headers.

  A missing `traceparent` header starts a new trace. A malformed one raises
  ParseError so the caller can decide how to react.
  """
  normalized = {str(name).lower(): value for name, value in headers.items()}
  raw = normalized.get(TRACEPARENT_HEADER)

  if isinstance(raw, (list, tuple)):
    raw = raw[0] if raw else None

  if raw is None:
    return generate_trace_context()

  return parse_traceparent(raw)


def inject_trace_context(headers: Mapping[str, str], ctx: TraceContext) -> Dict[str, str]:
  """Return a copy of `headers` carrying `ctx` for an outbound request."""
  result = dict(headers)
  result[TRACEPARENT_HEADER] = format_traceparent(ctx)
  if ctx.trace_state:
    result[TRACESTATE_HEADER] = ctx.trace_state
  return result
