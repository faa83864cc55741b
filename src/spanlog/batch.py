from __future__ import annotations

import logging
import os
import threading
import time
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Sequence

if TYPE_CHECKING:
  from .config import LoggerConfig
  from .transport import Transport

_logger = logging.getLogger("spanlog.batch")


def send_batch(transport: "Transport", batch: Sequence[str]) -> bool:
  """
  Deliver already-formatted records as one JSON array.

  The records are joined as-is, never re-parsed. Returns False when the batch
  was dropped because delivery failed.
  """
  if not batch:
    return True
  payload = "[" + ",".join(batch) + "]"
  return _deliver(transport, payload, len(batch))


def send_single(transport: "Transport", record: str) -> bool:
  """Deliver one already-formatted record as a bare JSON object."""
  return _deliver(transport, record, 1)


def _deliver(transport: "Transport", payload: str, count: int) -> bool:
  try:
    transport.send(payload)
  except Exception as exc:
    # At-most-once: failed payloads are reported and dropped, never retried.
    _logger.warning("Dropping %d log record(s) after failed export: %s", count, exc)
    return False
  return True


class BatchManager:
  """
  Buffers formatted log lines and ships them in batches.

  A flush is triggered when the buffer reaches `batch_size`, by a periodic
  timer every `flush_interval_ms`, or by an explicit `flush()`/`shutdown()`.
  The buffer, the last flush time and the shutdown flag are guarded by one
  lock. A flush swaps the buffer for an empty one under the lock and sends
  the captured batch after releasing it, so records are never sent twice and
  a failed send loses only its own batch.

  Size- and timer-triggered flushes run on their own daemon threads; the
  explicit `flush()` sends in the calling thread.

  The manager is fork-aware: a child process starts its own timer thread on
  first use and does not inherit the parent's pending records.
  """

  def __init__(
    self,
    transport: "Transport",
    batch_size: int = 100,
    flush_interval_ms: int = 5000,
    enable_batching: bool = True,
  ) -> None:
    self._transport = transport
    self._batch_size = batch_size
    self._flush_interval = flush_interval_ms / 1000.0
    self._enable_batching = enable_batching

    self._lock = threading.Lock()
    self._buffer: List[str] = []
    self._last_flush = time.monotonic()
    self._shutting_down = False

    self._timer: Optional[threading.Thread] = None
    self._pid = os.getpid()

  @classmethod
  def from_config(cls, config: "LoggerConfig", transport: "Transport") -> "BatchManager":
    return cls(
      transport=transport,
      batch_size=config.batch_size,
      flush_interval_ms=config.flush_interval_ms,
      enable_batching=config.enable_batching,
    )

  @property
  def pending_count(self) -> int:
    with self._lock:
      return len(self._buffer)

  @property
  def is_shutting_down(self) -> bool:
    with self._lock:
      return self._shutting_down

  def start(self) -> None:
    """
    Start the periodic flush thread.

    Safe to call repeatedly; it is a no-op while the thread is alive, after
    shutdown, or when batching is disabled.
    """
    if not self._enable_batching:
      return

    current_pid = os.getpid()
    with self._lock:
      if self._pid != current_pid:
        # Forked child: the parent owns its buffered records and timer.
        self._pid = current_pid
        self._buffer = []
        self._last_flush = time.monotonic()
        self._timer = None

      if self._shutting_down:
        return
      if self._timer is not None and self._timer.is_alive():
        return

      self._timer = threading.Thread(
        target=self._run_timer, name="spanlog-flush-timer", daemon=True
      )
      self._timer.start()

  def enqueue(self, record: str) -> None:
    if not self._enable_batching:
      with self._lock:
        if self._shutting_down:
          return
      self._dispatch(send_single, record)
      return

    self.start()

    batch: Optional[List[str]] = None
    with self._lock:
      if self._shutting_down:
        return
      self._buffer.append(record)
      if len(self._buffer) >= self._batch_size:
        batch = self._take_buffer_locked()

    if batch:
      self._dispatch(send_batch, batch)

  def flush(self) -> None:
    """Send everything buffered so far from the calling thread."""
    with self._lock:
      if not self._buffer:
        return
      batch = self._take_buffer_locked()

    send_batch(self._transport, batch)

  def shutdown(self) -> None:
    """
    Stop accepting records and drain the buffer once.

    Idempotent. Sends already running on background threads are not awaited,
    and the timer thread exits after its current sleep.
    """
    with self._lock:
      self._shutting_down = True
    self.flush()

  def _take_buffer_locked(self) -> List[str]:
    batch = self._buffer
    self._buffer = []
    self._last_flush = time.monotonic()
    return batch

  def _dispatch(self, sender: Callable[["Transport", Any], bool], data: Any) -> None:
    thread = threading.Thread(
      target=sender, args=(self._transport, data), name="spanlog-send", daemon=True
    )
    thread.start()

  def _run_timer(self) -> None:
    while True:
      time.sleep(self._flush_interval)

      batch: Optional[List[str]] = None
      with self._lock:
        if self._shutting_down:
          return
        elapsed = time.monotonic() - self._last_flush
        if self._buffer and elapsed >= self._flush_interval:
          batch = self._take_buffer_locked()

      if batch:
        self._dispatch(send_batch, batch)
