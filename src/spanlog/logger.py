from __future__ import annotations

import logging
import sys
import threading
from logging import Handler, LogRecord
from typing import Any, Dict, Mapping, Optional, TextIO

from .batch import BatchManager, send_single
from .config import LoggerConfig, LogLevel, resolve_endpoint, should_log
from .errors import ConfigurationError
from .formatter import format_record
from .trace_context import TraceContext, derive_child, generate_trace_context
from .transport import HttpTransport, Transport

_logger = logging.getLogger("spanlog")


class Logger:
  """
  Structured logger that stamps every line with trace correlation fields.

  Each line is written to stdout and, when a transport is wired, exported to
  the ingest endpoint through the batch manager (or sent on its own when no
  batch manager is present). Nothing raised while emitting a line ever
  reaches the caller.
  """

  def __init__(
    self,
    config: LoggerConfig,
    transport: Optional[Transport] = None,
    batch_manager: Optional[BatchManager] = None,
    stream: Optional[TextIO] = None,
  ) -> None:
    self.config = config
    self._transport = transport
    self._batch_manager = batch_manager
    self._stream = stream
    self._default_context = generate_trace_context()
    self._closed = False
    self._state_lock = threading.Lock()

  @property
  def trace_context(self) -> TraceContext:
    return self._default_context

  def child_context(self, parent: Optional[TraceContext] = None) -> TraceContext:
    return derive_child(parent or self._default_context)

  def should_log(self, level: LogLevel) -> bool:
    return should_log(self.config.log_level, level)

  def log(
    self,
    level: LogLevel,
    message: str,
    fields: Optional[Mapping[str, Any]] = None,
    context: Optional[TraceContext] = None,
    err: Optional[BaseException] = None,
  ) -> None:
    if not self.should_log(level):
      return

    try:
      line = format_record(
        self.config,
        level,
        message,
        context or self._default_context,
        fields,
        err,
      )
      self._echo(line)
      self._route(line)
    except Exception as exc:
      # Never break the application because of logging.
      _logger.warning("Dropping log record %r: %s", message, exc)

  def debug(self, message: str, fields: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> None:
    self.log(LogLevel.DEBUG, message, fields, **kwargs)

  def info(self, message: str, fields: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> None:
    self.log(LogLevel.INFO, message, fields, **kwargs)

  def warn(self, message: str, fields: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> None:
    self.log(LogLevel.WARN, message, fields, **kwargs)

  warning = warn

  def error(self, message: str, fields: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> None:
    self.log(LogLevel.ERROR, message, fields, **kwargs)

  def flush(self) -> None:
    if self._batch_manager is not None:
      self._batch_manager.flush()

  def shutdown(self) -> None:
    """
    Stop exporting and drain buffered records once. Safe to call twice.

    The transport stays open so sends already running on background threads
    can finish; call `close()` to release it.
    """
    with self._state_lock:
      if self._closed:
        return
      self._closed = True

    if self._batch_manager is not None:
      self._batch_manager.shutdown()

  def close(self) -> None:
    """Release the transport. Sends still in flight will fail."""
    close = getattr(self._transport, "close", None)
    if close is not None:
      try:
        close()
      except Exception as exc:
        _logger.warning("Failed to close log transport: %s", exc)

  def _echo(self, line: str) -> None:
    stream = self._stream or sys.stdout
    stream.write(line + "\n")

  def _route(self, line: str) -> None:
    # Unlocked read: a record racing shutdown() is still rejected by the
    # batch manager's own flag.
    if self._closed:
      return
    if self._batch_manager is not None:
      self._batch_manager.enqueue(line)
    elif self._transport is not None:
      threading.Thread(
        target=send_single, args=(self._transport, line), name="spanlog-send", daemon=True
      ).start()


def init(config: LoggerConfig, stream: Optional[TextIO] = None) -> Logger:
  """
  Build a Logger from `config`.

  Unset fields are filled from the environment. When remote export is enabled
  and a credential is available an HTTP transport is created; batching is
  wired in front of it unless disabled. Raises ConfigurationError when the
  transport cannot be built.
  """
  if not isinstance(config, LoggerConfig):
    raise ConfigurationError("init() expects a LoggerConfig")

  config = config.with_env_defaults()

  transport: Optional[Transport] = None
  batch_manager: Optional[BatchManager] = None

  if config.enable_remote_export and config.export_credential:
    endpoint = resolve_endpoint(config.export_credential, config.export_endpoint)
    try:
      transport = HttpTransport(
        endpoint=endpoint,
        credential=config.export_credential,
        timeout=config.request_timeout_seconds,
      )
    except Exception as exc:
      raise ConfigurationError(f"Could not create log transport for {endpoint}: {exc}") from exc

    if config.enable_batching:
      batch_manager = BatchManager.from_config(config, transport)
      batch_manager.start()
  elif config.enable_remote_export:
    _logger.debug("No export credential configured; logging to stdout only")

  return Logger(config, transport=transport, batch_manager=batch_manager, stream=stream)


class SpanlogHandler(Handler):
  """
  Logging handler that forwards standard library records to a spanlog Logger.

  A TraceContext passed as `extra={"trace_context": ctx}` is used for the
  record; otherwise the logger's default context applies.
  """

  def __init__(self, spanlog_logger: Logger) -> None:
    super().__init__()
    self._spanlog_logger = spanlog_logger

  def emit(self, record: LogRecord) -> None:
    # spanlog's own diagnostics would loop back into the exporter.
    if record.name == "spanlog" or record.name.startswith("spanlog."):
      return

    try:
      fields: Dict[str, Any] = {"logger.name": record.name}

      if getattr(record, "pathname", None):
        fields["file.path"] = record.pathname
      if getattr(record, "lineno", None) is not None:
        fields["line.no"] = record.lineno

      err: Optional[BaseException] = None
      if record.exc_info and record.exc_info[1] is not None:
        err = record.exc_info[1]

      context = getattr(record, "trace_context", None)
      if not isinstance(context, TraceContext):
        context = None

      self._spanlog_logger.log(
        LogLevel.from_logging_level(record.levelno),
        record.getMessage(),
        fields,
        context=context,
        err=err,
      )
    except Exception:
      self.handleError(record)


def setup_logging(spanlog_logger: Logger, logger: Optional[logging.Logger] = None) -> SpanlogHandler:
  """
  Attach a SpanlogHandler to a standard library logger (the root by default).

  Existing handlers are kept. Returns the attached handler, or the one already
  present when called twice for the same logger.
  """
  target_logger = logger or logging.getLogger()

  for existing in target_logger.handlers:
    if isinstance(existing, SpanlogHandler):
      return existing

  handler = SpanlogHandler(spanlog_logger)
  target_logger.addHandler(handler)
  return handler
