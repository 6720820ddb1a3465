"""
Per-request context shared by both transports.

The Lambda entry point and the local development server each build a
``RequestContext`` through their own adapter; procedures only ever see the
normalized context.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from models.session import SessionUser

from .cookies import parse_cookie_header, parse_cookies


@dataclass
class RequestContext:
    method: str
    path: str
    services: Any
    headers: Dict[str, str] = field(default_factory=dict)
    cookies: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, str] = field(default_factory=dict)
    source_ip: Optional[str] = None

    # Local server transport
    request: Any = None
    response: Any = None

    # Lambda transport
    event: Optional[Dict[str, Any]] = None
    lambda_context: Any = None

    response_headers: Dict[str, str] = field(default_factory=dict)
    response_cookies: List[str] = field(default_factory=list)

    user: Optional[SessionUser] = None

    @property
    def authorization(self) -> Optional[str]:
        return self.headers.get("authorization")

    @property
    def origin(self) -> Optional[str]:
        return self.headers.get("origin")

    def add_cookies(self, cookies: List[str]) -> None:
        self.response_cookies.extend(cookies)


def create_lambda_context(
    event: Dict[str, Any], lambda_context: Any, services: Any
) -> RequestContext:
    """
    Build a context from an API Gateway HTTP API (payload v2) event.

    HTTP API delivers cookies in ``event["cookies"]``; a raw ``cookie`` header
    is honoured as well.
    """
    headers = {k.lower(): v for k, v in (event.get("headers") or {}).items()}
    http = (event.get("requestContext") or {}).get("http") or {}

    cookies = parse_cookies(event.get("cookies") or [])
    cookies.update(parse_cookie_header(headers.get("cookie")))

    return RequestContext(
        method=(http.get("method") or event.get("httpMethod") or "GET").upper(),
        path=event.get("rawPath") or event.get("path") or "/",
        services=services,
        headers=headers,
        cookies=cookies,
        query_params=dict(event.get("queryStringParameters") or {}),
        source_ip=http.get("sourceIp"),
        event=event,
        lambda_context=lambda_context,
    )


def create_server_context(request: Any, services: Any) -> RequestContext:
    """Build a context from a Starlette/FastAPI request."""
    headers = {k.lower(): v for k, v in request.headers.items()}

    return RequestContext(
        method=request.method.upper(),
        path=request.url.path,
        services=services,
        headers=headers,
        cookies=parse_cookie_header(headers.get("cookie")),
        query_params=dict(request.query_params),
        source_ip=request.client.host if request.client else None,
        request=request,
    )
