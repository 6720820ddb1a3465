"""
Decorators for Lambda entry points and RPC procedures.

``lambda_handler`` wraps an API Gateway entry point with consistent logging,
timing and last-resort error handling. ``require_auth``,
``require_permission`` and ``validate_input`` guard procedures registered on
a ``Router``; they are stacked in that order so the session is checked
before the input is validated:

    @router.mutation("createPlan")
    @require_auth
    @require_permission("write")
    @validate_input(PlanCreate)
    def create_plan(ctx, data): ...
"""

import json
import time
from functools import wraps
from typing import Any, Callable, Dict, Optional, Type

from pydantic import BaseModel, ValidationError

from .logging import (log_error, log_lambda_event, log_lambda_response,
                      setup_logger)
from .responses import HTTPStatus, error_response
from .rpc import RpcError


def lambda_handler(
    logger_name: Optional[str] = None,
    log_event: bool = True,
    log_response: bool = True,
    structured_logging: bool = True,
) -> Callable:
    """
    Decorator for Lambda function handlers that provides:
    - Consistent logging setup
    - Automatic event/response logging
    - Error handling and response formatting
    - Execution time tracking

    Args:
        logger_name: Logger name (defaults to function module name)
        log_event: Whether to log incoming events
        log_response: Whether to log responses
        structured_logging: Whether to use structured JSON logging

    Returns:
        Decorated function
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
            logger = setup_logger(
                logger_name or func.__module__, structured=structured_logging
            )

            start_time = time.time()

            try:
                if log_event:
                    log_lambda_event(logger, event, context)

                response = func(event, context)

                if not isinstance(response, dict) or "statusCode" not in response:
                    logger.warning("Handler returned invalid response format")
                    response = error_response(
                        "Internal server error", HTTPStatus.INTERNAL_SERVER_ERROR
                    )

                if log_response:
                    execution_time = (time.time() - start_time) * 1000
                    log_lambda_response(logger, response, execution_time)

                return response

            except Exception as e:
                execution_time = (time.time() - start_time) * 1000

                log_error(
                    logger,
                    e,
                    {
                        "function_name": getattr(context, "function_name", "unknown"),
                        "request_id": getattr(context, "aws_request_id", "unknown"),
                        "execution_time_ms": execution_time,
                        "event_path": event.get("rawPath") or event.get("path"),
                        "event_method": (event.get("requestContext") or {})
                        .get("http", {})
                        .get("method"),
                    },
                )

                return error_response(
                    "Internal server error", HTTPStatus.INTERNAL_SERVER_ERROR
                )

        return wrapper

    return decorator


def require_auth(func: Callable) -> Callable:
    """
    Decorator that ensures the procedure is called with a valid session.

    The session is resolved through ``ctx.services.session_resolver`` and
    attached to ``ctx.user``; resolution failures surface as UNAUTHORIZED.

    Args:
        func: Procedure to decorate

    Returns:
        Decorated procedure
    """

    @wraps(func)
    def wrapper(ctx: Any, raw_input: Any) -> Any:
        if ctx.user is None:
            ctx.user = ctx.services.session_resolver.resolve(ctx)
        return func(ctx, raw_input)

    return wrapper


def require_permission(permission: str) -> Callable:
    """
    Decorator that requires the session user to hold ``permission``.

    Args:
        permission: Permission name, e.g. "write"

    Returns:
        Decorator
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(ctx: Any, raw_input: Any) -> Any:
            user = ctx.user
            if user is None:
                raise RpcError("UNAUTHORIZED", "Missing user in context")
            if not user.permissions:
                raise RpcError("FORBIDDEN", "User has no permissions assigned")
            if permission not in user.permissions:
                raise RpcError("FORBIDDEN", "Insufficient permissions")
            return func(ctx, raw_input)

        return wrapper

    return decorator


def validate_input(model: Type[BaseModel]) -> Callable:
    """
    Decorator that validates procedure input against a pydantic model.

    The procedure receives the validated model instance instead of the raw
    input. Missing input is validated as an empty object.

    Args:
        model: Pydantic model class

    Returns:
        Decorator
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(ctx: Any, raw_input: Any) -> Any:
            try:
                data = model.model_validate({} if raw_input is None else raw_input)
            except ValidationError as e:
                raise RpcError(
                    "BAD_REQUEST",
                    "Input validation failed",
                    details=json.loads(e.json(include_url=False)),
                )
            return func(ctx, data)

        return wrapper

    return decorator
