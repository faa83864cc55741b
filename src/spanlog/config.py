from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Optional
from urllib.parse import urlparse

from .errors import ConfigurationError

DEFAULT_ENDPOINT = "https://log-api.newrelic.com/log/v1"
EU_ENDPOINT = "https://log-api.eu.newrelic.com/log/v1"

DEFAULT_BATCH_SIZE = 100
DEFAULT_FLUSH_INTERVAL_MS = 5000
DEFAULT_REQUEST_TIMEOUT_SECONDS = 5.0


class LogLevel(IntEnum):
  """Severity levels, ordered so that comparison follows rank."""

  DEBUG = 0
  INFO = 1
  WARN = 2
  ERROR = 3

  @classmethod
  def parse(cls, value: str) -> "LogLevel":
    """
    Parse a level name such as "info" or "WARN".

    "warning" is accepted as an alias for WARN.
    """
    name = value.strip().upper()
    if name == "WARNING":
      name = "WARN"
    try:
      return cls[name]
    except KeyError:
      valid = ", ".join(level.name.lower() for level in cls)
      raise ConfigurationError(
        f"Invalid log level '{value}'. Must be one of: {valid}"
      ) from None

  @classmethod
  def from_logging_level(cls, levelno: int) -> "LogLevel":
    """Map a standard `logging` level number onto a LogLevel."""
    if levelno >= logging.ERROR:
      return cls.ERROR
    if levelno >= logging.WARNING:
      return cls.WARN
    if levelno >= logging.INFO:
      return cls.INFO
    return cls.DEBUG


def should_log(configured: LogLevel, level: LogLevel) -> bool:
  return level >= configured


@dataclass(frozen=True)
class LoggerConfig:
  """
  Configuration for a spanlog Logger.

  Instances are validated on construction and never change afterwards;
  `with_env_defaults()` returns a new, enriched copy.
  """

  service_name: str
  environment: Optional[str] = None
  log_level: LogLevel = LogLevel.INFO
  host: Optional[str] = None
  version: Optional[str] = None
  enable_remote_export: bool = True
  export_credential: Optional[str] = None
  export_endpoint: Optional[str] = None
  batch_size: int = DEFAULT_BATCH_SIZE
  flush_interval_ms: int = DEFAULT_FLUSH_INTERVAL_MS
  enable_batching: bool = True
  app_name: Optional[str] = None
  request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS

  def __post_init__(self) -> None:
    if not isinstance(self.service_name, str) or not self.service_name.strip():
      raise ConfigurationError("service_name must be a non-empty string")
    if isinstance(self.log_level, str):
      object.__setattr__(self, "log_level", LogLevel.parse(self.log_level))
    if self.batch_size < 1:
      raise ConfigurationError("batch_size must be >= 1")
    if self.flush_interval_ms <= 0:
      raise ConfigurationError("flush_interval_ms must be > 0")
    if self.request_timeout_seconds <= 0:
      raise ConfigurationError("request_timeout_seconds must be > 0")

  def with_env_defaults(self) -> "LoggerConfig":
    """
    Fill unset fields from environment variables.

    Explicit values always win over the environment:
      - SPANLOG_ENVIRONMENT (falls back to PYTHON_ENV)
      - SPANLOG_VERSION
      - SPANLOG_API_KEY
      - SPANLOG_ENDPOINT
      - SPANLOG_APP_NAME (falls back to service_name)
    """
    environment = self.environment or os.getenv("SPANLOG_ENVIRONMENT") or os.getenv("PYTHON_ENV")
    version = self.version or os.getenv("SPANLOG_VERSION")
    credential = self.export_credential or os.getenv("SPANLOG_API_KEY")
    endpoint = self.export_endpoint or os.getenv("SPANLOG_ENDPOINT")
    app_name = self.app_name or os.getenv("SPANLOG_APP_NAME") or self.service_name

    return replace(
      self,
      environment=environment or None,
      version=version or None,
      export_credential=credential or None,
      export_endpoint=endpoint or None,
      app_name=app_name,
    )


def resolve_endpoint(credential: Optional[str], endpoint: Optional[str] = None) -> str:
  """
  Pick the ingest endpoint for a credential.

  An explicitly configured endpoint always wins. Otherwise credentials from the
  EU region (prefixed "eu") go to the EU endpoint and everything else to the
  default one.
  """
  if endpoint:
    url = endpoint
  elif credential and credential.startswith("eu"):
    url = EU_ENDPOINT
  else:
    url = DEFAULT_ENDPOINT
  _validate_endpoint_url(url)
  return url


def _validate_endpoint_url(url: str) -> None:
  parsed = urlparse(url)
  if parsed.scheme not in ("http", "https") or not parsed.netloc:
    raise ConfigurationError(
      f"Invalid export endpoint '{url}'. "
      "Expected an http(s) URL like https://log-api.newrelic.com/log/v1."
    )

