"""
Route Verification

Runs every (client x route) combination, plus one anonymous request per
route, against a deployed HTTP API and compares each status code with the
outcome predicted from the declared configuration.
"""

import logging
from typing import Mapping

import httpx
from pydantic import BaseModel

from apigw_security.authorization import RouteAuthorizer
from apigw_security.client import SecuredApiClient, StackOutputs
from apigw_security.config import SecurityConfig

logger = logging.getLogger(__name__)

ANONYMOUS = "anonymous"


class ScenarioResult(BaseModel):
    client: str
    method: str
    path: str
    expected_status: int
    actual_status: int

    @property
    def passed(self) -> bool:
        return self.expected_status == self.actual_status


def verify_routes(
    config: SecurityConfig,
    outputs: StackOutputs,
    clients: Mapping[str, SecuredApiClient],
    transport: httpx.BaseTransport | None = None,
) -> list[ScenarioResult]:
    """
    Call each route as each client and anonymously.

    Args:
        config: Declared security configuration
        outputs: Deployed stack outputs
        clients: Client construct id -> authenticated API client
        transport: Optional httpx transport for the anonymous requests

    Returns:
        One ScenarioResult per request, in route then client order
    """
    authorizer = RouteAuthorizer(config, client_ids=outputs.client_ids, issuer=outputs.issuer)
    api_url = outputs.api_url.rstrip("/")
    results = []

    for route in config.front_door.routes:
        for construct_id, api_client in clients.items():
            response = api_client.get(route.path)
            results.append(
                ScenarioResult(
                    client=construct_id,
                    method=route.method,
                    path=route.path,
                    expected_status=authorizer.expected_status(construct_id, route.method, route.path),
                    actual_status=response.status_code,
                )
            )

        with httpx.Client(timeout=SecuredApiClient.DEFAULT_TIMEOUT, transport=transport) as http:
            response = http.request(route.method, f"{api_url}{route.path}")
        results.append(
            ScenarioResult(
                client=ANONYMOUS,
                method=route.method,
                path=route.path,
                expected_status=authorizer.expected_status(None, route.method, route.path),
                actual_status=response.status_code,
            )
        )

    for result in results:
        log = logger.info if result.passed else logger.warning
        log(
            f"{result.method} {result.path} as {result.client}: "
            f"expected {result.expected_status}, got {result.actual_status}"
        )

    return results
