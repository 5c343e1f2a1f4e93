import logging
import os
import sys

from content_worker.core.observability import get_trace_context

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] [trace=%(trace_id)s] → %(message)s"


class TraceContextFilter(logging.Filter):
    """Stamps each record with the active OpenTelemetry trace id ("-" outside a span)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = get_trace_context()["trace_id"] or "-"
        return True


def _level_from_env() -> int:
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str) -> logging.Logger:
    """
    Returns a structured logger for any module of the content pipeline.

    Level comes from LOG_LEVEL (default INFO). Messages carry the component
    tag in the text, e.g. logger.info("[Pipeline] ...").

    Usage:
        logger = get_logger(__name__)
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        logger.setLevel(_level_from_env())

        handler = logging.StreamHandler(sys.stdout)
        handler.addFilter(TraceContextFilter())
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

        logger.addHandler(handler)
        logger.propagate = False

    return logger
