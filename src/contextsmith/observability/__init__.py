"""Public observability primitives: structured logging and correlation context."""

from contextsmith.observability.logging import (
    LoggingConfig,
    correlation_scope,
    get_correlation_context,
    get_logger,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "LoggingConfig",
    "correlation_scope",
    "get_correlation_context",
    "get_logger",
    "setup_logging",
    "shutdown_logging",
]
