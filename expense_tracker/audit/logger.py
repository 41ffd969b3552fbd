"""
Audit Logger

DESIGN DECISION: Every state change in the engine is logged.
This provides:
1. Traceability of spent-total movements
2. Debugging capability for rejected requests
3. A single structured format that log shippers can parse

The audit logger:
- Writes to the structured log only (no history table)
- Records rejections as well as successful writes
"""

import logging
import sys
from typing import Optional

import structlog

from expense_tracker.models.audit import AuditEvent, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """
    Route structlog output to stdout at the given level.

    structlog renders the JSON line; the stdlib handler only writes it.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
        force=True,
    )


def get_logger(name: Optional[str] = None):
    """Get a bound structlog logger."""
    return structlog.get_logger(name)


class AuditLogger:
    """
    Central audit logging service.

    Stores call this after each mutation and whenever they
    reject a request.
    """

    def __init__(self, name: str = "expense_tracker.audit"):
        self._logger = structlog.get_logger(name)

    def log(self, event: AuditEvent) -> None:
        """Log an audit event at a level matching its severity."""
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)
