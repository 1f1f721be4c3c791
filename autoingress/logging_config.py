"""Logging configuration for auto-ingress using structlog."""

import logging
import os
import sys
from typing import Any

import structlog


def setup_logging(verbose: bool = False) -> None:
    """Setup structured logging configuration.

    Args:
        verbose: If True, enables DEBUG logging regardless of LOG_LEVEL env var
    """
    # Determine log level from environment or verbose flag
    if verbose:
        log_level = "DEBUG"
    else:
        log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    # Unknown level names fall back to INFO
    numeric_level = getattr(logging, log_level, None)
    if not isinstance(numeric_level, int):
        log_level = "INFO"
        numeric_level = logging.INFO

    # Configure stdlib logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
        force=True,
    )

    # The kubernetes client logs every request at DEBUG through urllib3
    logging.getLogger("urllib3").setLevel(max(numeric_level, logging.INFO))

    # Configure structlog
    structlog.configure(
        processors=[
            # Add log level and timestamp
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            # Use JSON in production, console in development
            _get_renderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Set up logger for this module
    logger = structlog.get_logger(__name__)
    logger.info("Logging configured", log_level=log_level, verbose=verbose)


def _get_renderer() -> Any:
    """Get the appropriate log renderer based on environment."""
    # JSON when LOG_FORMAT=json, colored console otherwise
    log_format = os.getenv("LOG_FORMAT", "console").lower()

    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True,
        exception_formatter=structlog.dev.plain_traceback,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name, typically __name__

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def log_function_entry(logger: structlog.stdlib.BoundLogger, func_name: str, **kwargs: Any) -> None:
    """Log function entry with parameters.

    Args:
        logger: The logger instance
        func_name: Name of the function being entered
        **kwargs: Function parameters to log
    """
    logger.debug("Function entry", function=func_name, **kwargs)


def log_function_exit(logger: structlog.stdlib.BoundLogger, func_name: str, **kwargs: Any) -> None:
    """Log function exit with return values.

    Args:
        logger: The logger instance
        func_name: Name of the function being exited
        **kwargs: Return values or exit status to log
    """
    logger.debug("Function exit", function=func_name, **kwargs)


def log_k8s_operation(logger: structlog.stdlib.BoundLogger, operation: str, namespace: str, **kwargs: Any) -> None:
    """Log a call made against the Kubernetes API.

    Args:
        logger: The logger instance
        operation: Registry operation name
        namespace: Namespace the call is scoped to
        **kwargs: Additional operation details
    """
    logger.debug("Kubernetes operation", operation=operation, namespace=namespace, **kwargs)


def log_reconcile_event(logger: structlog.stdlib.BoundLogger, event_type: str, **kwargs: Any) -> None:
    """Log a reconciliation step (ingress created or deleted).

    Args:
        logger: The logger instance
        event_type: Kind of reconciliation step
        **kwargs: Event details
    """
    logger.info("Reconcile event", event_type=event_type, **kwargs)
