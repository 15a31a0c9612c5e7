"""Logging configuration for the access-control service"""
import logging
import sys

from core.config import get_settings

settings = get_settings()

LOG_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] %(message)s"
)


class CorrelationIdFilter(logging.Filter):
    """Stamp every record with the current request's correlation id"""

    def filter(self, record: logging.LogRecord) -> bool:
        from middleware.correlation import get_correlation_id

        record.correlation_id = get_correlation_id() or "-"
        return True


def setup_logging():
    """Configure application-wide logging"""
    log_level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIdFilter())

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        handlers=[handler],
        force=True,
    )


def get_logger(name: str) -> logging.Logger:
    """Get logger for module"""
    return logging.getLogger(name)
