import logging

import spanlog


def handle_request(logger: spanlog.Logger, headers: dict) -> dict:
  # Continue the caller's trace, or start a new one when no header was sent.
  ctx = spanlog.derive_child(spanlog.extract_trace_context(headers))

  logger.info("Handling request", {"path": "/orders", "user": {"id": 7, "password": "hunter2"}}, context=ctx)
  try:
    1 / 0
  except ZeroDivisionError as exc:
    logger.error("Request failed", context=ctx, err=exc)

  # Propagate the trace to a downstream call.
  return spanlog.inject_trace_context({"accept": "application/json"}, ctx)


def main() -> None:
  # Set SPANLOG_API_KEY to export records; without it they only go to stdout.
  logger = spanlog.init(spanlog.LoggerConfig(service_name="example-app", log_level="debug"))

  std_logger = logging.getLogger("example_app")
  std_logger.setLevel(logging.INFO)
  spanlog.setup_logging(logger, std_logger)
  std_logger.info("Example INFO log through the standard logging module")

  outbound = handle_request(
    logger,
    {"traceparent": "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01"},
  )
  logger.debug("Outbound headers", {"headers": outbound})

  # Drain buffered records before exit.
  logger.shutdown()
  logger.close()


if __name__ == "__main__":
  main()
