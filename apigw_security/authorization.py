"""
Route Authorization Rule

Evaluates the rule the HTTP API User Pool authorizer applies to each request:
the bearer token must come from the User Pool, be issued to one of the
registered app clients, and carry the route's required scope.

API Gateway enforces this in production. The evaluator here mirrors it so the
expected outcome of each (client, route) pair can be computed from the
declared configuration and compared against a deployed stack.
"""

import base64
import json
import logging
import math
import time
from typing import Any, Mapping

from pydantic import BaseModel

from apigw_security.config import SecurityConfig

logger = logging.getLogger(__name__)


class AuthorizationDecision(BaseModel):
    """Outcome of evaluating one request against the route table."""

    allowed: bool
    status_code: int
    reason: str


def parse_bearer(authorization_header: str | None) -> str | None:
    """Extract the token from an `Authorization: Bearer <token>` header."""
    if not authorization_header:
        return None
    scheme, _, token = authorization_header.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def decode_jwt_claims(token: str) -> dict[str, Any] | None:
    """Decode JWT payload without verification (signature is the gateway's job)."""
    parts = token.split(".")
    if len(parts) != 3:
        return None

    payload = parts[1]
    padding = 4 - len(payload) % 4
    if padding != 4:
        payload += "=" * padding

    try:
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except (ValueError, TypeError) as e:
        logger.debug(f"JWT decode error: {e}")
        return None

    return claims if isinstance(claims, dict) else None


def parse_scope_claim(scope_value: Any) -> set[str]:
    """Normalize the `scope` claim to a set of scope strings."""
    if scope_value is None:
        return set()
    if isinstance(scope_value, list):
        return {str(s) for s in scope_value}
    return set(str(scope_value).split())


class RouteAuthorizer:
    """
    Offline evaluator of the gateway's JWT authorization rule.

    Args:
        config: Declared security configuration
        client_ids: Map of client construct id -> deployed app client id.
            Defaults to the construct ids themselves for offline use.
        issuer: Expected `iss` claim; not checked when None
    """

    def __init__(
        self,
        config: SecurityConfig,
        client_ids: Mapping[str, str] | None = None,
        issuer: str | None = None,
    ):
        self.config = config
        self.issuer = issuer

        client_ids = client_ids or {}
        self._registered = {
            client_ids.get(client.construct_id, client.construct_id): client.construct_id
            for client in config.registered_clients()
        }

    def authorize(
        self,
        method: str,
        path: str,
        authorization_header: str | None,
        now: float | None = None,
    ) -> AuthorizationDecision:
        route = self.config.route(method, path)
        if route is None:
            return _deny(404, f"No route for {method.upper()} {path}")

        token = parse_bearer(authorization_header)
        if token is None:
            return _deny(401, "Missing bearer token")

        claims = decode_jwt_claims(token)
        if claims is None:
            return _deny(401, "Malformed bearer token")

        if self.issuer and claims.get("iss") != self.issuer:
            return _deny(401, f"Token issuer {claims.get('iss')!r} is not the user pool")

        if claims.get("token_use", "access") != "access":
            return _deny(401, "Only access tokens are accepted")

        if "exp" not in claims:
            return _deny(401, "Missing exp claim")
        try:
            expires_at = float(claims["exp"])
        except (TypeError, ValueError):
            return _deny(401, "Malformed exp claim")
        if not math.isfinite(expires_at):
            return _deny(401, "Malformed exp claim")

        current = time.time() if now is None else now
        if expires_at <= current:
            return _deny(401, "Token expired")

        client_id = claims.get("client_id")
        if not isinstance(client_id, str) or client_id not in self._registered:
            return _deny(401, f"Client {client_id!r} is not registered with the authorizer")

        scopes = parse_scope_claim(claims.get("scope"))
        if route.authorization_scope not in scopes:
            return _deny(
                403,
                f"Scope '{route.authorization_scope}' required, token has {sorted(scopes)}",
            )

        logger.debug(f"Allowed {method.upper()} {path} for client {client_id}")
        return AuthorizationDecision(
            allowed=True,
            status_code=200,
            reason=f"Client {self._registered[client_id]} holds '{route.authorization_scope}'",
        )

    def expected_status(self, client_construct_id: str | None, method: str, path: str) -> int:
        """
        Status a token issued to the given client receives on the route.

        A None client stands for an anonymous request without a token.
        """
        route = self.config.route(method, path)
        if route is None:
            return 404
        if client_construct_id is None:
            return 401
        if client_construct_id not in self._registered.values():
            return 401
        if route.authorization_scope not in self.config.granted_scopes(client_construct_id):
            return 403
        return 200


def _deny(status_code: int, reason: str) -> AuthorizationDecision:
    logger.debug(f"Denied ({status_code}): {reason}")
    return AuthorizationDecision(allowed=False, status_code=status_code, reason=reason)
