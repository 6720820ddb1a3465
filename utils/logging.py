"""
Centralized logging configuration for the Coinly planner API.

This module provides consistent logging setup across the Lambda entry points,
the local development server and the operator scripts, with structured JSON
output that CloudWatch can parse.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Attributes every LogRecord carries; anything else came in through `extra`.
_RESERVED_RECORD_ATTRS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "getMessage",
}


class StructuredFormatter(logging.Formatter):
    """
    Custom formatter that outputs structured JSON logs for better CloudWatch parsing.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_ATTRS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


def setup_logger(
    name: str, level: Optional[str] = None, structured: bool = True
) -> logging.Logger:
    """
    Set up a logger with consistent configuration.

    Args:
        name: Logger name (typically __name__)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL); defaults to
            the LOG_LEVEL environment variable, then INFO
        structured: Whether to use structured JSON logging

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid duplicate handlers on warm starts
    if logger.handlers:
        return logger

    level = level or os.getenv("LOG_LEVEL", "INFO")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)

    if structured:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def log_lambda_event(
    logger: logging.Logger, event: Dict[str, Any], context: Any
) -> None:
    """
    Log Lambda event details in a structured way.

    Args:
        logger: Logger instance
        event: Lambda event (API Gateway HTTP API, payload v2)
        context: Lambda context
    """
    http = event.get("requestContext", {}).get("http", {})
    logger.info(
        "Lambda invocation started",
        extra={
            "request_id": getattr(context, "aws_request_id", "unknown"),
            "function_name": getattr(context, "function_name", "unknown"),
            "remaining_time_ms": getattr(
                context, "get_remaining_time_in_millis", lambda: 0
            )(),
            "http_method": http.get("method") or event.get("httpMethod"),
            "path": event.get("rawPath") or event.get("path"),
            "user_agent": (event.get("headers") or {}).get("user-agent"),
            "source_ip": http.get("sourceIp"),
        },
    )


def log_lambda_response(
    logger: logging.Logger,
    response: Dict[str, Any],
    execution_time_ms: Optional[float] = None,
) -> None:
    """
    Log Lambda response details.

    Args:
        logger: Logger instance
        response: Lambda response
        execution_time_ms: Execution time in milliseconds
    """
    logger.info(
        "Lambda invocation completed",
        extra={
            "status_code": response.get("statusCode"),
            "execution_time_ms": execution_time_ms,
            "response_size": len(str(response.get("body", ""))),
        },
    )


def log_rpc_call(
    logger: logging.Logger,
    path: str,
    kind: Optional[str],
    duration_ms: float,
    error_code: Optional[str] = None,
    user_id: Optional[str] = None,
) -> None:
    """
    Log the outcome of a single procedure call.

    Args:
        logger: Logger instance
        path: Procedure path, e.g. "planner.createPlan"
        kind: "query" or "mutation" (None when the path did not resolve)
        duration_ms: Time spent in the procedure
        error_code: RPC error code when the call failed
        user_id: Caller, when a session was resolved
    """
    extra = {
        "rpc_path": path,
        "rpc_kind": kind,
        "duration_ms": round(duration_ms, 2),
        "outcome": error_code or "OK",
    }
    if user_id:
        extra["user_id"] = user_id

    if error_code:
        logger.warning(f"[rpc] {kind} {path} failed", extra=extra)
    else:
        logger.info(f"[rpc] {kind} {path}", extra=extra)


def log_error(
    logger: logging.Logger, error: Exception, context: Optional[Dict[str, Any]] = None
) -> None:
    """
    Log errors with additional context.

    Args:
        logger: Logger instance
        error: Exception that occurred
        context: Additional context information
    """
    extra = {
        "error_type": type(error).__name__,
        "error_message": str(error),
    }

    if context:
        extra.update(context)

    logger.error(f"Error occurred: {str(error)}", extra=extra, exc_info=error)
