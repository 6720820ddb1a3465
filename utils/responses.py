"""
Standardized HTTP response utilities for the API transports.

This module provides the RPC success/error envelopes, CORS header
construction, JSON serialization of DynamoDB/pydantic values, and the
API Gateway response shape used by the Lambda entry points.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union

ALLOWED_METHODS = "GET,POST,PUT,PATCH,DELETE,OPTIONS"
ALLOWED_HEADERS = "content-type,authorization,x-requested-with"


class HTTPStatus(Enum):
    """HTTP status codes for API responses."""

    OK = 200
    NO_CONTENT = 204
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    INTERNAL_SERVER_ERROR = 500


class APIJSONEncoder(json.JSONEncoder):
    """
    Custom JSON encoder for API responses that handles:
    - Decimal objects (from DynamoDB)
    - datetime/date objects
    - pydantic models (serialized with their camelCase aliases)
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return int(obj) if obj == obj.to_integral_value() else float(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, set):
            return sorted(obj)
        if hasattr(obj, "model_dump"):  # Pydantic models
            return obj.model_dump(by_alias=True, mode="json")
        return super().default(obj)


def to_json(body: Any) -> str:
    """Serialize a response body with the API encoder."""
    return json.dumps(body, cls=APIJSONEncoder)


def resolve_allowed_origin(
    origin: Optional[str], allowed_origins: List[str]
) -> str:
    """
    Pick the Access-Control-Allow-Origin value for a request.

    No Origin header falls back to the first allowed origin; an empty allow
    list echoes the caller; a listed origin is echoed; anything else gets the
    first allowed origin.
    """
    if not origin:
        return allowed_origins[0] if allowed_origins else ""
    if not allowed_origins:
        return origin
    if origin in allowed_origins:
        return origin
    return allowed_origins[0]


def build_cors_headers(
    origin: Optional[str],
    allowed_origins: List[str],
    include_credentials: bool = True,
    include_methods_headers: bool = True,
) -> Dict[str, str]:
    """
    Build CORS headers for a response.

    Args:
        origin: The request's Origin header
        allowed_origins: Configured allow list
        include_credentials: Whether to allow credentialed requests
        include_methods_headers: Whether to add the preflight method/header set

    Returns:
        Header dictionary
    """
    headers = {
        "Access-Control-Allow-Origin": resolve_allowed_origin(origin, allowed_origins),
        "Vary": "Origin",
    }
    if include_credentials:
        headers["Access-Control-Allow-Credentials"] = "true"
    if include_methods_headers:
        headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
        headers["Access-Control-Allow-Headers"] = ALLOWED_HEADERS
    return headers


def create_response(
    status_code: Union[int, HTTPStatus],
    body: Any = None,
    headers: Optional[Dict[str, str]] = None,
    cookies: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Create an API Gateway (HTTP API, payload v2) response.

    Args:
        status_code: HTTP status code
        body: Response body (will be JSON serialized)
        headers: Response headers
        cookies: Set-Cookie values

    Returns:
        Lambda HTTP response dictionary
    """
    if isinstance(status_code, HTTPStatus):
        status_code = status_code.value

    response_headers = {"Content-Type": "application/json"}
    if headers:
        response_headers.update(headers)

    response = {
        "statusCode": status_code,
        "headers": response_headers,
    }

    if cookies:
        response["cookies"] = list(cookies)

    if body is not None:
        if isinstance(body, (dict, list)) or hasattr(body, "model_dump"):
            response["body"] = to_json(body)
        else:
            response["body"] = str(body)

    return response


def success_response(
    data: Any = None,
    status_code: Union[int, HTTPStatus] = HTTPStatus.OK,
    headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """
    Create a plain success response (used outside the RPC envelope, e.g. /health).
    """
    return create_response(status_code, data if data is not None else {}, headers)


def error_response(
    message: str,
    status_code: Union[int, HTTPStatus] = HTTPStatus.INTERNAL_SERVER_ERROR,
    headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """
    Create a plain error response for failures outside the RPC layer.
    """
    return create_response(status_code, {"error": message}, headers)


def rpc_success_body(data: Any) -> Dict[str, Any]:
    """Wrap procedure output in the RPC success envelope."""
    return {"result": {"data": data}}


def rpc_error_body(
    message: str,
    code: str,
    json_rpc_code: int,
    http_status: int,
    path: Optional[str] = None,
    details: Any = None,
) -> Dict[str, Any]:
    """
    Build the RPC error envelope.

    Shape: {"error": {"message", "code", "data": {"code", "httpStatus", "path"}}}
    """
    data: Dict[str, Any] = {"code": code, "httpStatus": http_status}
    if path:
        data["path"] = path
    if details is not None:
        data["details"] = details
    return {"error": {"message": message, "code": json_rpc_code, "data": data}}
