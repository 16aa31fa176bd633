"""
Monitoring module exports.
"""

from installpilot.monitoring.logger import (
    ContextLogAdapter,
    JSONFormatter,
    SanitizingHandler,
    get_logger,
    log_session_event,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "log_session_event",
    "ContextLogAdapter",
    "JSONFormatter",
    "SanitizingHandler",
]
