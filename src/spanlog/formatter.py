from __future__ import annotations

import json
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from .config import LoggerConfig, LogLevel
from .errors import FormattingError
from .trace_context import TraceContext

MASK = "***MASKED***"

SENSITIVE_KEYS = ("password", "token", "secret", "apiKey", "apikey", "api_key")
_SENSITIVE_KEYS_LOWER = tuple(key.lower() for key in SENSITIVE_KEYS)

RESERVED_FIELDS = frozenset(
  {
    "timestamp",
    "level",
    "message",
    "service.name",
    "trace.id",
    "span.id",
    "environment",
    "host",
    "version",
    "app.name",
    "error.type",
    "error.message",
    "error.stack",
  }
)


def _is_sensitive(key: str) -> bool:
  lowered = key.lower()
  return any(marker in lowered for marker in _SENSITIVE_KEYS_LOWER)


def mask_sensitive_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
  """
  Return a copy of `fields` with sensitive values replaced by MASK.

  Keys are matched case-insensitively by substring. Nested mappings are masked
  recursively; lists are passed through untouched.
  """
  masked: Dict[str, Any] = {}
  for key, value in fields.items():
    if _is_sensitive(str(key)):
      masked[key] = MASK
    elif isinstance(value, Mapping):
      masked[key] = mask_sensitive_fields(value)
    else:
      masked[key] = value
  return masked


def _timestamp() -> str:
  return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def _error_fields(err: BaseException) -> Dict[str, str]:
  stack = ""
  if err.__traceback__ is not None:
    stack = "".join(traceback.format_exception(type(err), err, err.__traceback__))
  return {
    "error.type": type(err).__name__,
    "error.message": str(err),
    "error.stack": stack,
  }


def format_record(
  config: LoggerConfig,
  level: LogLevel,
  message: str,
  context: TraceContext,
  fields: Optional[Mapping[str, Any]] = None,
  err: Optional[BaseException] = None,
) -> str:
  """
  Build the JSON line for one log call.

  Reserved fields come first; caller fields are masked and merged last and can
  never replace a reserved field. Raises FormattingError when the record
  cannot be encoded as JSON.
  """
  record: Dict[str, Any] = {
    "timestamp": _timestamp(),
    "level": level.name,
    "message": message,
    "service.name": config.service_name,
    "trace.id": context.trace_id,
    "span.id": context.span_id,
  }

  if config.environment:
    record["environment"] = config.environment
  if config.host:
    record["host"] = config.host
  if config.version:
    record["version"] = config.version
  if config.app_name:
    record["app.name"] = config.app_name

  if err is not None:
    record.update(_error_fields(err))

  if fields:
    for key, value in mask_sensitive_fields(fields).items():
      if key in RESERVED_FIELDS:
        continue
      record[key] = value

  try:
    return json.dumps(record, separators=(",", ":"), allow_nan=False)
  except (TypeError, ValueError) as exc:
    raise FormattingError(f"Could not serialize log record: {exc}") from exc
