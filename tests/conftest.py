import threading
import time

import pytest

from spanlog.errors import ExportError

SPANLOG_ENV_VARS = (
  "SPANLOG_ENVIRONMENT",
  "SPANLOG_VERSION",
  "SPANLOG_API_KEY",
  "SPANLOG_ENDPOINT",
  "SPANLOG_APP_NAME",
  "SPANLOG_REMOTE_EXPORT",
  "SPANLOG_LOG_LEVEL",
  "PYTHON_ENV",
)


@pytest.fixture(autouse=True)
def clean_spanlog_env(monkeypatch):
  for name in SPANLOG_ENV_VARS:
    monkeypatch.delenv(name, raising=False)


class RecordingTransport:
  """Transport double that keeps every payload it is asked to send."""

  def __init__(self, fail: bool = False) -> None:
    self.payloads = []
    self.fail = fail
    self.closed = False
    self._lock = threading.Lock()

  def send(self, payload: str) -> None:
    with self._lock:
      self.payloads.append(payload)
    if self.fail:
      raise ExportError("ingest endpoint answered with HTTP 503", status_code=503)

  def close(self) -> None:
    self.closed = True

  def snapshot(self):
    with self._lock:
      return list(self.payloads)


def wait_for(predicate, timeout: float = 2.0) -> bool:
  deadline = time.monotonic() + timeout
  while time.monotonic() < deadline:
    if predicate():
      return True
    time.sleep(0.01)
  return predicate()
