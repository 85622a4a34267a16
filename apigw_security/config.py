"""
Declarative Security Configuration

Pydantic models describing the identity directory, OAuth clients, authorizer
and HTTP routes of the stack. The configuration is built once, validated on
construction, and handed to the CDK constructs by reference.

Reference invariants checked at synth time:
- every client's granted scopes exist on the resource server
- every authorizer client is a declared client
- every route requires `<resource-identifier>/<scope-name>` of a declared scope
"""

import re
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator


# Configuration constants
RESOURCE_SERVER_ID = "resource"
PUBLIC_SCOPE = "public"
SECURE_SCOPE = "secure"

READ_ONLY_CLIENT = "ReadOnlyClient"
FULL_ACCESS_CLIENT = "FullAccessClient"

DOMAIN_PREFIX_PATTERN = re.compile(r"^[a-z0-9-]+$")


class Scope(BaseModel):
    """Named permission unit registered on the resource server."""

    name: str
    description: str


class ResourceServer(BaseModel):
    """Protected resource identifier and the scopes registered under it."""

    identifier: str
    name: str
    scopes: list[Scope]

    @field_validator("scopes")
    @classmethod
    def _unique_scope_names(cls, scopes: list[Scope]) -> list[Scope]:
        names = [scope.name for scope in scopes]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate scope names: {duplicates}")
        return scopes

    def scope_names(self) -> set[str]:
        return {scope.name for scope in self.scopes}

    def qualify(self, scope_name: str) -> str:
        """Full scope string as it appears in tokens, e.g. `resource/public`."""
        return f"{self.identifier}/{scope_name}"

    def qualified_scopes(self) -> set[str]:
        return {self.qualify(scope.name) for scope in self.scopes}


class PasswordPolicy(BaseModel):
    min_length: int = Field(default=6, ge=6, le=99)
    require_lowercase: bool = False
    require_uppercase: bool = False
    require_digits: bool = False
    require_symbols: bool = False


class IdentityDirectory(BaseModel):
    """
    User identity store settings.

    `domain_prefix` is optional: when unset the construct derives a prefix
    from the stack name and account so that parallel deployments get
    distinct hosted domains.
    """

    user_pool_name: str
    domain_prefix: str | None = None
    removal_policy: Literal["destroy", "retain"] = "destroy"
    self_sign_up_enabled: bool = True
    sign_in_with_email: bool = True
    auto_verify_email: bool = True
    password_policy: PasswordPolicy = Field(default_factory=PasswordPolicy)
    account_recovery: Literal[
        "email_only",
        "email_and_phone_without_mfa",
        "phone_only_without_mfa",
        "none",
    ] = "email_only"
    resource_server: ResourceServer

    @field_validator("domain_prefix")
    @classmethod
    def _valid_domain_prefix(cls, prefix: str | None) -> str | None:
        if prefix is not None and not DOMAIN_PREFIX_PATTERN.match(prefix):
            raise ValueError(
                f"Domain prefix must contain only lowercase letters, digits and hyphens: {prefix!r}"
            )
        return prefix


class AuthFlows(BaseModel):
    """Authentication flows enabled on an app client."""

    admin_user_password: bool = True
    user_password: bool = True
    custom: bool = True
    user_srp: bool = True


class OAuthClient(BaseModel):
    """Credentials-bearing application identity restricted to client credentials."""

    construct_id: str
    name: str
    scopes: list[str]
    auth_flows: AuthFlows = Field(default_factory=AuthFlows)
    grant_type: Literal["client_credentials"] = "client_credentials"
    generate_secret: bool = True
    identity_providers: list[Literal["COGNITO"]] = Field(default_factory=lambda: ["COGNITO"])


class Authorizer(BaseModel):
    name: str = "UserPoolAuthorizer"
    clients: list[str]
    identity_source: str = "$request.header.Authorization"


class EntryPoint(BaseModel):
    """Stateless Lambda handler invoked after successful authorization."""

    name: str
    handler: str
    description: str
    memory_size: int = 128
    timeout_seconds: int = 10


class Route(BaseModel):
    path: str
    method: Literal["GET", "POST", "PUT", "PATCH", "DELETE"] = "GET"
    entry_point: str
    authorization_scope: str

    @field_validator("path")
    @classmethod
    def _absolute_path(cls, path: str) -> str:
        if not path.startswith("/"):
            raise ValueError(f"Route path must start with '/': {path!r}")
        return path


class FrontDoor(BaseModel):
    """HTTP API that owns the routes and the shared authorizer."""

    api_name: str
    description: str
    authorizer: Authorizer
    entry_points: list[EntryPoint]
    routes: list[Route]


class SecurityConfig(BaseModel):
    """
    Complete resource graph of the stack.

    Validation runs after all fields are parsed so cross references
    (routes -> authorizer -> clients -> resource server -> scopes) are
    checked against the full graph.
    """

    directory: IdentityDirectory
    clients: list[OAuthClient]
    front_door: FrontDoor

    @model_validator(mode="after")
    def _check_references(self) -> "SecurityConfig":
        resource_server = self.directory.resource_server
        declared_scopes = resource_server.scope_names()

        client_ids = [client.construct_id for client in self.clients]
        if len(client_ids) != len(set(client_ids)):
            raise ValueError(f"Duplicate client construct ids: {client_ids}")

        for client in self.clients:
            unknown = sorted(set(client.scopes) - declared_scopes)
            if unknown:
                raise ValueError(
                    f"Client {client.construct_id} is granted scopes not declared "
                    f"on resource server '{resource_server.identifier}': {unknown}"
                )

        unregistered = sorted(set(self.front_door.authorizer.clients) - set(client_ids))
        if unregistered:
            raise ValueError(f"Authorizer references undeclared clients: {unregistered}")

        entry_names = [entry.name for entry in self.front_door.entry_points]
        if len(entry_names) != len(set(entry_names)):
            raise ValueError(f"Duplicate entry point names: {entry_names}")

        qualified = resource_server.qualified_scopes()
        seen_routes = set()
        for route in self.front_door.routes:
            key = (route.method, route.path)
            if key in seen_routes:
                raise ValueError(f"Duplicate route: {route.method} {route.path}")
            seen_routes.add(key)

            if route.entry_point not in entry_names:
                raise ValueError(
                    f"Route {route.method} {route.path} targets unknown entry point "
                    f"'{route.entry_point}'"
                )
            if route.authorization_scope not in qualified:
                raise ValueError(
                    f"Route {route.method} {route.path} requires scope "
                    f"'{route.authorization_scope}' which is not one of {sorted(qualified)}"
                )

        return self

    def client(self, construct_id: str) -> OAuthClient:
        for client in self.clients:
            if client.construct_id == construct_id:
                return client
        raise KeyError(construct_id)

    def granted_scopes(self, construct_id: str) -> set[str]:
        """Qualified scope strings a token issued to the client will carry."""
        resource_server = self.directory.resource_server
        return {resource_server.qualify(name) for name in self.client(construct_id).scopes}

    def registered_clients(self) -> list[OAuthClient]:
        """Clients the authorizer accepts tokens from, in declaration order."""
        registered = set(self.front_door.authorizer.clients)
        return [client for client in self.clients if client.construct_id in registered]

    def entry_point(self, name: str) -> EntryPoint:
        for entry in self.front_door.entry_points:
            if entry.name == name:
                return entry
        raise KeyError(name)

    def route(self, method: str, path: str) -> Route | None:
        for route in self.front_door.routes:
            if route.method == method.upper() and route.path == path:
                return route
        return None


def build_security_config(stack_name: str, domain_prefix: str | None = None) -> SecurityConfig:
    """
    Build the default resource graph, leaves first.

    Args:
        stack_name: CloudFormation stack name, used to namespace resource names
        domain_prefix: Optional hosted domain prefix (derived per stack if unset)

    Returns:
        Validated SecurityConfig
    """
    public_scope = Scope(name=PUBLIC_SCOPE, description="Read-only access")
    secure_scope = Scope(name=SECURE_SCOPE, description="Full access")

    resource_server = ResourceServer(
        identifier=RESOURCE_SERVER_ID,
        name=f"{stack_name}-resource-server",
        scopes=[public_scope, secure_scope],
    )

    directory = IdentityDirectory(
        user_pool_name=f"{stack_name}-user-pool",
        domain_prefix=domain_prefix,
        resource_server=resource_server,
    )

    # Least-privilege and full-privilege identities differ only in scopes
    read_only_client = OAuthClient(
        construct_id=READ_ONLY_CLIENT,
        name=f"{stack_name}-read-only-client",
        scopes=[PUBLIC_SCOPE],
    )
    full_access_client = OAuthClient(
        construct_id=FULL_ACCESS_CLIENT,
        name=f"{stack_name}-full-access-client",
        scopes=[PUBLIC_SCOPE, SECURE_SCOPE],
    )

    authorizer = Authorizer(clients=[READ_ONLY_CLIENT, FULL_ACCESS_CLIENT])

    entry_points = [
        EntryPoint(
            name="public",
            handler="public.handler",
            description="Returns application info for any registered client",
        ),
        EntryPoint(
            name="secure",
            handler="secure.handler",
            description="Returns caller identity for full-access clients",
        ),
    ]

    routes = [
        Route(
            path="/api/secure",
            method="GET",
            entry_point="secure",
            authorization_scope=resource_server.qualify(SECURE_SCOPE),
        ),
        Route(
            path="/api/public",
            method="GET",
            entry_point="public",
            authorization_scope=resource_server.qualify(PUBLIC_SCOPE),
        ),
    ]

    front_door = FrontDoor(
        api_name=f"{stack_name}-http-api",
        description="HTTP API secured by Cognito client credentials scopes",
        authorizer=authorizer,
        entry_points=entry_points,
        routes=routes,
    )

    return SecurityConfig(
        directory=directory,
        clients=[read_only_client, full_access_client],
        front_door=front_door,
    )
