import base64
import json
import time

import aws_cdk as cdk
import pytest
from aws_cdk.assertions import Template

from apigw_security import ApiGatewaySecurityStack, build_security_config

ACCOUNT = "123456789012"
REGION = "us-west-2"
ISSUER = f"https://cognito-idp.{REGION}.amazonaws.com/{REGION}_TestPool"


def _b64url_json(obj: dict) -> str:
    raw = json.dumps(obj).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


@pytest.fixture
def config():
    return build_security_config("TestStack")


@pytest.fixture
def make_token():
    """Build an unsigned Cognito-style access token for a client."""

    def factory(client_id: str, scope: str = "resource/public", **overrides) -> str:
        now = int(time.time())
        claims = {
            "sub": client_id,
            "client_id": client_id,
            "token_use": "access",
            "scope": scope,
            "iss": ISSUER,
            "iat": now,
            "exp": now + 3600,
        }
        claims.update(overrides)
        header = {"alg": "RS256", "kid": "test-key"}
        return f"{_b64url_json(header)}.{_b64url_json(claims)}.signature"

    return factory


def synth_stack(stack_id: str = "TestStack", **kwargs) -> Template:
    app = cdk.App()
    stack = ApiGatewaySecurityStack(
        app,
        stack_id,
        env=cdk.Environment(account=ACCOUNT, region=REGION),
        **kwargs,
    )
    return Template.from_stack(stack)


@pytest.fixture(scope="session")
def template() -> Template:
    return synth_stack(domain_prefix="test-prefix")


@pytest.fixture
def synth():
    return synth_stack
