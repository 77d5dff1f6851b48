"""Observability helpers: structured JSON-lines logging and correlation scopes."""

from artifact_resolver.observability.logging import (
    LoggingConfig,
    StructuredLoggingHandle,
    configure_structlog,
    correlation_scope,
    default_log_redactor,
    flush_logging,
    get_correlation_context,
    logging_config_from_settings,
    setup_structured_logging,
    shutdown_logging,
)

__all__ = [
    "LoggingConfig",
    "StructuredLoggingHandle",
    "configure_structlog",
    "correlation_scope",
    "default_log_redactor",
    "flush_logging",
    "get_correlation_context",
    "logging_config_from_settings",
    "setup_structured_logging",
    "shutdown_logging",
]
