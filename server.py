"""
Local development server.

Serves the same RPC router as the Lambda entry point, with FastAPI and
uvicorn in place of API Gateway:

    coinly-server            # or: python server.py
"""

from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool

from handlers import app_router
from services.container import Services, build_services
from utils.context import create_server_context
from utils.logging import setup_logger
from utils.responses import ALLOWED_HEADERS, ALLOWED_METHODS, to_json
from utils.rpc import handle_rpc_request

logger = setup_logger(__name__)

CORS_MAX_AGE_SECONDS = 12 * 60 * 60


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        services: Service container (built from the environment when omitted)

    Returns:
        FastAPI app
    """
    services = services or build_services()
    app = FastAPI(title="Coinly Planner API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=services.settings.allowed_origins,
        allow_credentials=True,
        allow_methods=ALLOWED_METHODS.split(","),
        allow_headers=ALLOWED_HEADERS.split(","),
        max_age=CORS_MAX_AGE_SECONDS,
    )

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.api_route("/trpc/{path:path}", methods=["GET", "POST"])
    async def trpc(path: str, request: Request) -> Response:
        ctx = create_server_context(request, services)
        body = await request.body() if request.method == "POST" else None

        status, payload = await run_in_threadpool(
            handle_rpc_request, app_router, ctx, path.strip("/"), body
        )

        response = Response(
            content=to_json(payload),
            status_code=status,
            media_type="application/json",
            headers=ctx.response_headers,
        )
        for cookie in ctx.response_cookies:
            response.headers.append("set-cookie", cookie)
        return response

    return app


def main() -> None:
    services = build_services()
    port = services.settings.port
    logger.info("Starting development server", extra={"port": port})
    uvicorn.run(create_app(services), host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
