"""
Lambda entry point for the RPC API (``/trpc/*`` on API Gateway HTTP API).
"""

import base64
import json
from typing import Any, Dict, List, Optional

from handlers import app_router
from services.config import load_settings
from services.container import Services, build_services
from utils.context import create_lambda_context
from utils.decorators import lambda_handler
from utils.logging import log_error, setup_logger
from utils.responses import (HTTPStatus, build_cors_headers, create_response,
                             error_response)
from utils.rpc import extract_procedure_path, handle_rpc_request

logger = setup_logger(__name__)

_services: Optional[Services] = None


def get_services() -> Services:
    """Build the service container once per Lambda process."""
    global _services
    if _services is None:
        _services = build_services()
    return _services


def decode_body(event: Dict[str, Any]) -> Optional[str]:
    """
    Return the request body as text.

    Base64-encoded bodies are decoded; a JSON document that itself decodes to
    a string (double-encoded by some clients) is unwrapped once.
    """
    body = event.get("body")
    if body is None:
        return None
    if event.get("isBase64Encoded"):
        body = base64.b64decode(body).decode("utf-8")

    try:
        decoded = json.loads(body)
    except (TypeError, ValueError):
        return body
    if isinstance(decoded, str):
        return decoded
    return body


def _allowed_origins() -> List[str]:
    if _services is not None:
        return _services.settings.allowed_origins
    return load_settings().allowed_origins


@lambda_handler()
def handler(event, context):
    """
    Dispatch an API Gateway v2 event to the RPC router.

    Args:
        event: Lambda event object
        context: Lambda context object

    Returns:
        API Gateway response with CORS headers and any session cookies
    """
    headers = {k.lower(): v for k, v in (event.get("headers") or {}).items()}
    origin = headers.get("origin")

    try:
        return _dispatch(event, context, origin)
    except Exception as e:
        # Every response carries CORS headers, cold-start failures included.
        log_error(logger, e, {"operation": "dispatch", "path": event.get("rawPath")})
        return error_response(
            "Internal server error",
            HTTPStatus.INTERNAL_SERVER_ERROR,
            build_cors_headers(origin, _allowed_origins(), include_methods_headers=False),
        )


def _dispatch(
    event: Dict[str, Any], context: Any, origin: Optional[str]
) -> Dict[str, Any]:
    services = get_services()
    allowed_origins = services.settings.allowed_origins

    method = ((event.get("requestContext") or {}).get("http") or {}).get("method")
    if (method or event.get("httpMethod") or "").upper() == "OPTIONS":
        return create_response(
            HTTPStatus.NO_CONTENT, headers=build_cors_headers(origin, allowed_origins)
        )

    ctx = create_lambda_context(event, context, services)
    path = extract_procedure_path(ctx.path)
    status, payload = handle_rpc_request(app_router, ctx, path, decode_body(event))

    response_headers = build_cors_headers(
        origin, allowed_origins, include_credentials=True, include_methods_headers=False
    )
    response_headers.update(ctx.response_headers)
    return create_response(status, payload, response_headers, ctx.response_cookies)
