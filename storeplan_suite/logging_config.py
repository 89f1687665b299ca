"""
Logging setup for StorePlan Suite.

Library modules only call get_logger() and emit key/value events
("store_fitted", "budget_plan_built", ...). Nothing is configured on import;
the embedding application calls configure_logging() once.
"""
import logging
import sys

import structlog
from structlog.types import FilteringBoundLogger


def configure_logging(level: str = "INFO", format_json: bool = False,
                      include_timestamp: bool = True) -> None:
    """Route structlog events through stdlib logging on stdout.

    format_json gives one JSON object per line (batch runs); otherwise the
    plain console renderer is used.
    """
    log_level = getattr(logging, level.upper())
    logging.basicConfig(level=log_level, stream=sys.stdout, format="%(message)s")

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
    ]
    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))
    # store_fit_failed is logged with the traceback attached
    processors.append(structlog.processors.format_exc_info)
    processors.append(structlog.processors.JSONRenderer() if format_json
                      else structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    return structlog.get_logger(name)


def get_store_logger(name: str, store: str) -> FilteringBoundLogger:
    """Logger bound to a single store, used while fitting one series."""
    return get_logger(name).bind(store=store)
