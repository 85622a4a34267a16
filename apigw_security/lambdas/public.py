"""
Public Entry Point

Handles GET /api/public. The HTTP API authorizer has already validated the
bearer token and the `resource/public` scope before this Lambda runs, so the
handler only reports application info and the calling client.
"""

import json
import logging
import os
from typing import Any

logger = logging.getLogger()
logger.setLevel(logging.INFO)


def handler(event: dict, context: Any) -> dict:
    """
    Return application info for any registered client.

    Expected input: API Gateway HTTP API payload format 2.0, with JWT claims
    under requestContext.authorizer.jwt.claims.
    """
    request_context = event.get("requestContext", {})
    claims = request_context.get("authorizer", {}).get("jwt", {}).get("claims", {})
    request_id = request_context.get("requestId", "unknown")
    client_id = claims.get("client_id", "unknown")

    logger.info(f"Public request {request_id} from client {client_id}")

    body = {
        "message": "Public endpoint reached",
        "app": os.environ.get("APP_NAME", "unknown"),
        "region": os.environ.get("AWS_REGION", "unknown"),
        "stage": request_context.get("stage", "$default"),
        "requestId": request_id,
        "clientId": client_id,
    }

    return {
        "statusCode": 200,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }
