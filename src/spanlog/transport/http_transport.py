from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..errors import ExportError

CREDENTIAL_HEADER = "Api-Key"

_logger = logging.getLogger("spanlog.transport")


class HttpTransport:
  """
  Posts pre-serialized JSON payloads to the log ingest endpoint.

  The transport makes exactly one attempt per payload. Non-success statuses
  (>= 300) and connection faults are raised as ExportError; deciding what to
  do with the failed payload is left to the caller.
  """

  def __init__(
    self,
    endpoint: str,
    credential: str,
    timeout: float = 5.0,
    client: Optional[httpx.Client] = None,
  ) -> None:
    self.endpoint = endpoint
    self._headers = {
      CREDENTIAL_HEADER: credential,
      "Content-Type": "application/json",
    }
    self._client = client or httpx.Client(timeout=timeout)

  def send(self, payload: str) -> None:
    try:
      response = self._client.post(
        self.endpoint,
        content=payload.encode("utf-8"),
        headers=self._headers,
      )
    except httpx.HTTPError as exc:
      raise ExportError(f"Failed to reach {self.endpoint}: {exc}") from exc

    if response.status_code >= 300:
      raise ExportError(
        f"Ingest endpoint {self.endpoint} answered with HTTP {response.status_code}",
        status_code=response.status_code,
      )
    _logger.debug("Delivered %d bytes to %s", len(payload), self.endpoint)

  def close(self) -> None:
    self._client.close()
