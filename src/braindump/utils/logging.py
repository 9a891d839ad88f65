"""Logging setup shared by the service and scripts."""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(service)s] %(name)s: %(message)s"

_service_name = "braindump"


class _ServiceFilter(logging.Filter):
    """Stamp every record with the configured service name."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = _service_name
        return True


def configure_logging(service: str, level: str = "INFO") -> None:
    """Configure root logging for a process.

    Args:
        service: Service name included in every log line
        level: Log level name (e.g. "INFO", "DEBUG")
    """
    global _service_name
    _service_name = service

    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(_ServiceFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(resolved)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
