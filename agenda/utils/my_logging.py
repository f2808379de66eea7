# agenda/utils/my_logging.py
"""Logging configuration"""
import logging
import sys
from typing import Optional

from agenda.config.settings import get_settings
from agenda.core.middleware import correlation_id_var

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] %(message)s"

# Chatty below WARNING; scheduling logs stay at the configured level
LIBRARY_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "alembic",
    "redis",
    "uvicorn.access",
)


class CorrelationIdFilter(logging.Filter):
    """Stamps records with the current request's correlation id ("-" outside requests)"""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = correlation_id_var.get()
        return True


def setup_logging(level: Optional[str] = None, quiet_libraries: bool = True):
    """Configure application logging; `level` defaults to LOG_LEVEL"""
    settings = get_settings()
    level_name = (level or settings.LOG_LEVEL).upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIdFilter())

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
        handlers=[handler],
        force=True,
    )

    if quiet_libraries and not settings.DEBUG:
        for name in LIBRARY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
