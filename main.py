"""
Health check endpoint for the Coinly planner API.

This module provides a simple health check endpoint that can be used
for monitoring and load balancer health checks.
"""

import os

from utils.decorators import lambda_handler
from utils.responses import success_response


@lambda_handler()
def healthz(event, context):
    """
    Health check endpoint for the Coinly planner API.

    Does not require authentication and touches no backing service.

    Args:
        event: Lambda event object
        context: Lambda context object

    Returns:
        HTTP response indicating service health
    """
    return success_response(
        data={
            "ok": True,
            "status": "healthy",
            "service": os.environ.get("SERVICE_NAME", "coinly-api"),
        }
    )
