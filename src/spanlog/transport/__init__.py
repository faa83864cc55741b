from typing import Protocol

from .http_transport import CREDENTIAL_HEADER, HttpTransport


class Transport(Protocol):
  """Anything that can deliver one text payload or raise ExportError."""

  def send(self, payload: str) -> None:
    ...


__all__ = ["CREDENTIAL_HEADER", "HttpTransport", "Transport"]
