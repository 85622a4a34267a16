"""Client for a deployed API Gateway Security stack.

Reads the stack outputs from CloudFormation, fetches app client secrets from
Cognito and calls the HTTP API with client credentials tokens.

Usage:
    from apigw_security.client import SecuredApiClient, StackOutputs, get_client_secret

    outputs = StackOutputs.from_cloudformation("api-gateway-security", "us-west-2")
    client_id = outputs.client_ids["FullAccessClient"]
    client = SecuredApiClient(
        client_id=client_id,
        client_secret=get_client_secret(outputs.user_pool_id, client_id, outputs.region),
        token_url=outputs.token_url,
        api_url=outputs.api_url,
    )
    print(client.get("/api/secure").json())
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import boto3
import httpx
from botocore.exceptions import ClientError
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

TOKEN_REFRESH_BUFFER_SECONDS = 60
CLIENT_OUTPUT_SUFFIX = "ClientId"


class GatewayClientError(Exception):
    """Base exception for API client errors."""

    pass


class AuthenticationError(GatewayClientError):
    """Raised when the token endpoint rejects the client credentials."""

    pass


class StackOutputsError(GatewayClientError):
    """Raised when the stack outputs are missing required values."""

    pass


class TokenResponse(BaseModel):
    """OAuth2 token response from the Cognito token endpoint."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 3600


class CachedToken(BaseModel):
    """Cached OAuth2 token with expiration tracking."""

    access_token: str
    expires_at: datetime

    def is_expired(self, buffer_seconds: int = TOKEN_REFRESH_BUFFER_SECONDS) -> bool:
        """Check if token is expired or about to expire."""
        return datetime.now(timezone.utc) >= self.expires_at - timedelta(seconds=buffer_seconds)


class StackOutputs(BaseModel):
    """Values exported by the deployed stack."""

    region: str
    user_pool_id: str
    api_url: str
    token_url: str
    client_ids: dict[str, str]
    issuer_url: str | None = None

    @classmethod
    def from_output_map(cls, outputs: dict[str, str]) -> "StackOutputs":
        """Build from a CloudFormation OutputKey -> OutputValue map."""
        missing = [key for key in ("Region", "UserPoolId", "ApiUrl", "TokenUrl") if key not in outputs]
        if missing:
            raise StackOutputsError(f"Stack outputs missing: {missing}")

        # Client outputs are emitted as <ConstructId>Id, e.g. ReadOnlyClientId
        client_ids = {
            key[: -len("Id")]: value
            for key, value in outputs.items()
            if key.endswith(CLIENT_OUTPUT_SUFFIX)
        }

        return cls(
            region=outputs["Region"],
            user_pool_id=outputs["UserPoolId"],
            api_url=outputs["ApiUrl"],
            token_url=outputs["TokenUrl"],
            client_ids=client_ids,
            issuer_url=outputs.get("IssuerUrl"),
        )

    @classmethod
    def from_cloudformation(
        cls,
        stack_name: str,
        region: str,
        cloudformation: Any = None,
    ) -> "StackOutputs":
        """Get outputs from CloudFormation stack."""
        cf = cloudformation or boto3.client("cloudformation", region_name=region)
        try:
            response = cf.describe_stacks(StackName=stack_name)
        except ClientError as e:
            raise StackOutputsError(f"Cannot describe stack '{stack_name}': {e}") from e
        outputs = {}
        for output in response["Stacks"][0].get("Outputs", []):
            outputs[output["OutputKey"]] = output["OutputValue"]
        return cls.from_output_map(outputs)

    @property
    def issuer(self) -> str:
        """Issuer claim of tokens minted by the stack's User Pool."""
        if self.issuer_url:
            return self.issuer_url
        return f"https://cognito-idp.{self.region}.amazonaws.com/{self.user_pool_id}"


def get_client_secret(
    user_pool_id: str,
    client_id: str,
    region: str,
    cognito: Any = None,
) -> str:
    """
    Get client secret from Cognito User Pool Client.

    Args:
        user_pool_id: User Pool ID
        client_id: Client ID
        region: AWS region
        cognito: Optional boto3 cognito-idp client

    Returns:
        Client secret string
    """
    cognito = cognito or boto3.client("cognito-idp", region_name=region)
    response = cognito.describe_user_pool_client(
        UserPoolId=user_pool_id,
        ClientId=client_id,
    )
    return response["UserPoolClient"]["ClientSecret"]


class SecuredApiClient:
    """Calls the HTTP API with a client credentials token.

    Attributes:
        client_id: Cognito app client ID
        client_secret: Cognito app client secret
        token_url: Cognito token endpoint
        api_url: HTTP API base URL
        scopes: Scopes to request; all granted scopes when None
        timeout: Request timeout in seconds (default: 30)
    """

    DEFAULT_TIMEOUT = 30

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        token_url: str,
        api_url: str,
        scopes: list[str] | None = None,
        timeout: int | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self.api_url = api_url.rstrip("/")
        self.scopes = scopes
        self.timeout = timeout or self.DEFAULT_TIMEOUT

        self._transport = transport
        self._cached_token: CachedToken | None = None

    def _http(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self._transport)

    def _parse_token_response(self, data: Any) -> CachedToken:
        try:
            token = TokenResponse.model_validate(data)
        except ValidationError as e:
            raise AuthenticationError(f"Invalid token response: {e}") from e
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=token.expires_in)
        return CachedToken(access_token=token.access_token, expires_at=expires_at)

    def get_token(self) -> str:
        """Get a valid access token, refreshing if necessary."""
        if self._cached_token and not self._cached_token.is_expired():
            return self._cached_token.access_token

        data = {"grant_type": "client_credentials"}
        if self.scopes:
            data["scope"] = " ".join(self.scopes)

        logger.debug(f"Requesting client credentials token for {self.client_id}")
        with self._http() as client:
            response = client.post(
                self.token_url,
                auth=(self.client_id, self.client_secret),
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                data=data,
            )

        if response.status_code != 200:
            raise AuthenticationError(
                f"Failed to obtain access token: {response.status_code} - {response.text}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise AuthenticationError(f"Token endpoint returned non-JSON body: {response.text}") from e

        self._cached_token = self._parse_token_response(data)
        return self._cached_token.access_token

    def get(self, path: str) -> httpx.Response:
        """GET a route with the bearer token. Non-2xx responses are returned, not raised."""
        token = self.get_token()
        with self._http() as client:
            return client.get(
                f"{self.api_url}{path}",
                headers={
                    "Accept": "application/json",
                    "Authorization": f"Bearer {token}",
                },
            )

    def clear_token_cache(self) -> None:
        """Clear the cached OAuth2 token, forcing a refresh on next request."""
        self._cached_token = None

    def __repr__(self) -> str:
        return (
            f"SecuredApiClient(api_url='{self.api_url}', client_id='{self.client_id}', "
            f"token_cached={self._cached_token is not None})"
        )
