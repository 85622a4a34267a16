"""
Secure Entry Point

Handles GET /api/secure. Only tokens carrying `resource/secure` reach this
Lambda; it echoes the caller identity taken from the validated JWT claims.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger()
logger.setLevel(logging.INFO)


def handler(event: dict, context: Any) -> dict:
    """Return the identity of the full-access client that called the route."""
    request_context = event.get("requestContext", {})
    claims = request_context.get("authorizer", {}).get("jwt", {}).get("claims", {})
    request_id = request_context.get("requestId", "unknown")

    client_id = claims.get("client_id", "unknown")
    logger.info(f"Secure request {request_id} from client {client_id}")

    body = {
        "message": "Secure endpoint reached",
        "requestId": request_id,
        "clientId": client_id,
        "subject": claims.get("sub", client_id),
        "scopes": _parse_scopes(claims.get("scope")),
        "issuedAt": _format_epoch(claims.get("iat")),
        "expiresAt": _format_epoch(claims.get("exp")),
    }

    return {
        "statusCode": 200,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }


def _parse_scopes(scope_value: Any) -> list[str]:
    """
    Normalize the scope claim to a sorted list.

    HTTP API passes claims as strings; list-valued claims arrive
    as "[a b]" so brackets are stripped before splitting.
    """
    if not scope_value:
        return []
    if isinstance(scope_value, list):
        return sorted(str(s) for s in scope_value)
    return sorted(str(scope_value).strip("[]").split())


def _format_epoch(value: Any) -> str | None:
    """Convert an epoch seconds claim to ISO-8601, None if absent or invalid."""
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc).isoformat()
    except (TypeError, ValueError, OverflowError, OSError):
        return None
