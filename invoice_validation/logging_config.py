"""
Logging setup shared by the CLI and the HTTP API.

Correlation ids are passed explicitly with ``extra={"correlation_id": ...}``.
Records logged without one show ``-`` in that column.
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(correlation_id)s] %(name)s - %(message)s"


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        return True


def configure_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once; later calls only adjust the level.
    """
    root = logging.getLogger()
    configured = any(
        isinstance(f, CorrelationIdFilter) for h in root.handlers for f in h.filters
    )
    if not configured:
        logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
        for handler in root.handlers:
            handler.addFilter(CorrelationIdFilter())
    root.setLevel(level.upper())
