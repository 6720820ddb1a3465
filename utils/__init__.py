"""
Utils package for shared utilities and cross-cutting concerns.

This package contains the RPC layer, request context, decorators, logging
utilities, response formatters and cookie helpers used across the
application.
"""

from .decorators import (lambda_handler, require_auth, require_permission,
                         validate_input)
from .logging import (log_error, log_lambda_event, log_lambda_response,
                      log_rpc_call, setup_logger)
from .responses import (HTTPStatus, build_cors_headers, create_response,
                        error_response, success_response)
from .rpc import RpcError, Router, handle_rpc_request

__all__ = [
    # Decorators
    "lambda_handler",
    "require_auth",
    "require_permission",
    "validate_input",
    # Logging
    "setup_logger",
    "log_lambda_event",
    "log_lambda_response",
    "log_rpc_call",
    "log_error",
    # Responses
    "HTTPStatus",
    "build_cors_headers",
    "create_response",
    "success_response",
    "error_response",
    # RPC
    "RpcError",
    "Router",
    "handle_rpc_request",
]
