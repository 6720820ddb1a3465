"""
Named-procedure RPC layer shared by the Lambda and local-server transports.

Procedures are plain functions ``fn(ctx, raw_input)`` registered on a
``Router`` as either a query (served over GET, input in ``?input=``) or a
mutation (served over POST, input in the JSON body). Results are wrapped in
``{"result": {"data": ...}}``; failures are ``RpcError`` instances rendered
as ``{"error": {...}}``.
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from .logging import log_error, log_rpc_call, setup_logger
from .responses import HTTPStatus, rpc_error_body, rpc_success_body

logger = setup_logger(__name__)

QUERY = "query"
MUTATION = "mutation"

METHOD_KINDS = {"GET": QUERY, "POST": MUTATION}

# code -> (JSON-RPC code, HTTP status)
ERROR_CODES: Dict[str, Tuple[int, HTTPStatus]] = {
    "PARSE_ERROR": (-32700, HTTPStatus.BAD_REQUEST),
    "BAD_REQUEST": (-32600, HTTPStatus.BAD_REQUEST),
    "UNAUTHORIZED": (-32001, HTTPStatus.UNAUTHORIZED),
    "FORBIDDEN": (-32003, HTTPStatus.FORBIDDEN),
    "NOT_FOUND": (-32004, HTTPStatus.NOT_FOUND),
    "METHOD_NOT_SUPPORTED": (-32005, HTTPStatus.METHOD_NOT_ALLOWED),
    "INTERNAL_SERVER_ERROR": (-32603, HTTPStatus.INTERNAL_SERVER_ERROR),
}


class RpcError(Exception):
    """
    Structured procedure failure.

    Attributes:
        code: One of ERROR_CODES
        message: Human-readable message shown verbatim by the frontend
        cause: Underlying exception, logged but never sent to the client
        details: Optional structured detail (validation errors)
    """

    def __init__(
        self,
        code: str,
        message: str,
        cause: Optional[BaseException] = None,
        details: Any = None,
    ):
        if code not in ERROR_CODES:
            raise ValueError(f"Unknown RPC error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.cause = cause
        self.details = details

    @property
    def http_status(self) -> int:
        return ERROR_CODES[self.code][1].value

    @property
    def json_rpc_code(self) -> int:
        return ERROR_CODES[self.code][0]

    def to_body(self, path: Optional[str] = None) -> Dict[str, Any]:
        return rpc_error_body(
            self.message,
            self.code,
            self.json_rpc_code,
            self.http_status,
            path=path,
            details=self.details,
        )


@dataclass(frozen=True)
class Procedure:
    path: str
    kind: str
    func: Callable[[Any, Any], Any]


class Router:
    """Registry of named procedures, mountable under a prefix."""

    def __init__(self) -> None:
        self.procedures: Dict[str, Procedure] = {}

    def query(self, name: str) -> Callable:
        return self._register(name, QUERY)

    def mutation(self, name: str) -> Callable:
        return self._register(name, MUTATION)

    def _register(self, name: str, kind: str) -> Callable:
        def decorator(func: Callable) -> Callable:
            self._add(Procedure(name, kind, func))
            return func

        return decorator

    def _add(self, procedure: Procedure) -> None:
        if procedure.path in self.procedures:
            raise ValueError(f"Duplicate procedure path: {procedure.path}")
        self.procedures[procedure.path] = procedure

    def merge(self, prefix: str, child: "Router") -> "Router":
        """Mount every procedure of ``child`` under ``prefix.``."""
        for name, procedure in child.procedures.items():
            self._add(Procedure(f"{prefix}.{name}", procedure.kind, procedure.func))
        return self

    def get(self, path: str) -> Optional[Procedure]:
        return self.procedures.get(path)


def parse_input(raw: Any) -> Any:
    """
    Decode procedure input.

    Strings/bytes are parsed as JSON; already-decoded values pass through;
    empty input is ``None``.
    """
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        if not raw.strip():
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise RpcError("PARSE_ERROR", "Invalid JSON input", cause=e)
    return raw


def extract_procedure_path(raw_path: str, mount: str = "/trpc/") -> str:
    """Return the procedure path from a request path such as /dev/trpc/planner.getPlans."""
    index = raw_path.find(mount)
    if index >= 0:
        return raw_path[index + len(mount):].strip("/")
    return raw_path.strip("/")


def handle_rpc_request(
    router: Router, ctx: Any, path: str, body: Any = None
) -> Tuple[int, Dict[str, Any]]:
    """
    Resolve and invoke a procedure for one HTTP request.

    Args:
        router: Application router
        ctx: RequestContext for this request
        path: Procedure path, e.g. "planner.getPlan"
        body: Request body (mutations); queries read ``?input=`` from ctx

    Returns:
        (HTTP status, response envelope)
    """
    start = time.perf_counter()
    procedure = router.get(path)
    kind = procedure.kind if procedure else METHOD_KINDS.get(ctx.method.upper())

    try:
        if procedure is None:
            raise RpcError("NOT_FOUND", f'No procedure found on path "{path}"')

        if METHOD_KINDS.get(ctx.method.upper()) != procedure.kind:
            raise RpcError(
                "METHOD_NOT_SUPPORTED",
                f'Unsupported {ctx.method.upper()}-request to {procedure.kind} procedure at path "{path}"',
            )

        if procedure.kind == QUERY:
            raw_input = parse_input(ctx.query_params.get("input"))
        else:
            raw_input = parse_input(body)

        data = procedure.func(ctx, raw_input)
        status, payload = HTTPStatus.OK.value, rpc_success_body(data)
        error_code = None

    except RpcError as err:
        if err.cause is not None:
            log_error(logger, err.cause, {"rpc_path": path, "rpc_code": err.code})
        status, payload = err.http_status, err.to_body(path)
        error_code = err.code

    except Exception as e:
        log_error(logger, e, {"rpc_path": path})
        err = RpcError("INTERNAL_SERVER_ERROR", "Internal server error", cause=e)
        status, payload = err.http_status, err.to_body(path)
        error_code = err.code

    user = getattr(ctx, "user", None)
    log_rpc_call(
        logger,
        path,
        kind,
        (time.perf_counter() - start) * 1000,
        error_code=error_code,
        user_id=user.user_id if user else None,
    )
    return status, payload
