"""Observability infrastructure for structured logging."""

from studiosync.infrastructure.observability.logger_template import (
    log_operation,
)
from studiosync.infrastructure.observability.logging import (
    configure_logging,
    get_correlation_id,
    set_correlation_id,
)

__all__ = [
    "configure_logging",
    "get_correlation_id",
    "log_operation",
    "set_correlation_id",
]
