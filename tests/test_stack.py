"""Synthesized template checks for ApiGatewaySecurityStack."""

import json

import aws_cdk as cdk
import pytest
from aws_cdk.assertions import Match, Template
from pydantic import ValidationError

from apigw_security import ApiGatewaySecurityStack
from apigw_security.config import Route, SecurityConfig

from conftest import ACCOUNT, REGION


def _clients_by_name(template: Template) -> dict:
    clients = template.find_resources("AWS::Cognito::UserPoolClient")
    return {
        resource["Properties"]["ClientName"]: resource["Properties"]
        for resource in clients.values()
    }


# ==============================================================================
# Identity Directory
# ==============================================================================


def test_user_pool_settings(template: Template) -> None:
    template.resource_count_is("AWS::Cognito::UserPool", 1)
    template.has_resource_properties(
        "AWS::Cognito::UserPool",
        {
            "UserPoolName": "TestStack-user-pool",
            "AdminCreateUserConfig": {"AllowAdminCreateUserOnly": False},
            "UsernameAttributes": ["email"],
            "AutoVerifiedAttributes": ["email"],
            "Policies": {
                "PasswordPolicy": {
                    "MinimumLength": 6,
                    "RequireLowercase": False,
                    "RequireUppercase": False,
                    "RequireNumbers": False,
                    "RequireSymbols": False,
                }
            },
            "AccountRecoverySetting": {
                "RecoveryMechanisms": [{"Name": "verified_email", "Priority": 1}]
            },
        },
    )


def test_user_pool_is_destroyed_with_stack(template: Template) -> None:
    template.has_resource(
        "AWS::Cognito::UserPool",
        {"DeletionPolicy": "Delete", "UpdateReplacePolicy": "Delete"},
    )


def test_resource_server_declares_two_scopes(template: Template) -> None:
    template.resource_count_is("AWS::Cognito::UserPoolResourceServer", 1)
    template.has_resource_properties(
        "AWS::Cognito::UserPoolResourceServer",
        {
            "Identifier": "resource",
            "Scopes": [
                {"ScopeName": "public", "ScopeDescription": "Read-only access"},
                {"ScopeName": "secure", "ScopeDescription": "Full access"},
            ],
        },
    )


def test_explicit_domain_prefix(template: Template) -> None:
    template.has_resource_properties("AWS::Cognito::UserPoolDomain", {"Domain": "test-prefix"})


def test_domain_prefix_derived_from_stack_and_account(synth) -> None:
    derived = synth("Parallel-Stack")
    derived.has_resource_properties(
        "AWS::Cognito::UserPoolDomain", {"Domain": "parallel-stack-123456789012"}
    )
    derived.has_resource_properties(
        "AWS::Cognito::UserPool", {"UserPoolName": "Parallel-Stack-user-pool"}
    )


# ==============================================================================
# OAuth Clients
# ==============================================================================


def test_two_client_credentials_clients(template: Template) -> None:
    clients = _clients_by_name(template)
    assert set(clients) == {"TestStack-read-only-client", "TestStack-full-access-client"}

    for props in clients.values():
        assert props["AllowedOAuthFlows"] == ["client_credentials"]
        assert props["AllowedOAuthFlowsUserPoolClient"] is True
        assert props["GenerateSecret"] is True
        assert props["SupportedIdentityProviders"] == ["COGNITO"]
        assert {
            "ALLOW_ADMIN_USER_PASSWORD_AUTH",
            "ALLOW_USER_PASSWORD_AUTH",
            "ALLOW_CUSTOM_AUTH",
            "ALLOW_USER_SRP_AUTH",
        } <= set(props["ExplicitAuthFlows"])


def test_clients_differ_only_in_granted_scopes(template: Template) -> None:
    clients = _clients_by_name(template)
    read_only = clients["TestStack-read-only-client"]
    full_access = clients["TestStack-full-access-client"]

    read_only_scopes = json.dumps(read_only["AllowedOAuthScopes"])
    full_access_scopes = json.dumps(full_access["AllowedOAuthScopes"])

    assert len(read_only["AllowedOAuthScopes"]) == 1
    assert "/public" in read_only_scopes
    assert "/secure" not in read_only_scopes

    assert len(full_access["AllowedOAuthScopes"]) == 2
    assert "/public" in full_access_scopes
    assert "/secure" in full_access_scopes

    ignored = {"ClientName", "AllowedOAuthScopes"}
    assert {k: v for k, v in read_only.items() if k not in ignored} == {
        k: v for k, v in full_access.items() if k not in ignored
    }


# ==============================================================================
# HTTP Front Door
# ==============================================================================


def test_http_api(template: Template) -> None:
    template.resource_count_is("AWS::ApiGatewayV2::Api", 1)
    template.has_resource_properties(
        "AWS::ApiGatewayV2::Api",
        {"Name": "TestStack-http-api", "ProtocolType": "HTTP"},
    )


def test_single_jwt_authorizer_for_both_clients(template: Template) -> None:
    template.resource_count_is("AWS::ApiGatewayV2::Authorizer", 1)
    template.has_resource_properties(
        "AWS::ApiGatewayV2::Authorizer",
        {
            "AuthorizerType": "JWT",
            "Name": "UserPoolAuthorizer",
            "IdentitySource": ["$request.header.Authorization"],
        },
    )
    authorizer = next(iter(template.find_resources("AWS::ApiGatewayV2::Authorizer").values()))
    assert len(authorizer["Properties"]["JwtConfiguration"]["Audience"]) == 2


def test_exactly_two_get_routes(template: Template) -> None:
    routes = template.find_resources("AWS::ApiGatewayV2::Route")
    route_keys = sorted(resource["Properties"]["RouteKey"] for resource in routes.values())
    assert route_keys == ["GET /api/public", "GET /api/secure"]


@pytest.mark.parametrize(
    "route_key,scope",
    [
        ("GET /api/public", "resource/public"),
        ("GET /api/secure", "resource/secure"),
    ],
)
def test_route_requires_scope(template: Template, route_key: str, scope: str) -> None:
    template.has_resource_properties(
        "AWS::ApiGatewayV2::Route",
        {
            "RouteKey": route_key,
            "AuthorizationType": "JWT",
            "AuthorizationScopes": [scope],
            "AuthorizerId": Match.any_value(),
        },
    )


def test_entry_point_functions(template: Template) -> None:
    template.resource_count_is("AWS::Lambda::Function", 2)
    for name in ("public", "secure"):
        template.has_resource_properties(
            "AWS::Lambda::Function",
            {
                "FunctionName": f"TestStack-{name}",
                "Handler": f"{name}.handler",
                "Runtime": "python3.11",
                "Environment": {"Variables": {"APP_NAME": "TestStack-http-api"}},
            },
        )


# ==============================================================================
# Outputs
# ==============================================================================


def test_outputs(template: Template) -> None:
    outputs = template.find_outputs("*")
    assert {
        "Region",
        "UserPoolId",
        "ApiUrl",
        "TokenUrl",
        "ReadOnlyClientId",
        "FullAccessClientId",
    } <= set(outputs)
    assert outputs["Region"]["Value"] == "us-west-2"
    assert "IssuerUrl" in outputs
    assert "https://cognito-idp.us-west-2.amazonaws.com/" in json.dumps(outputs["IssuerUrl"]["Value"])


# ==============================================================================
# Construct properties and explicit configuration
# ==============================================================================


def _stack(**kwargs) -> ApiGatewaySecurityStack:
    return ApiGatewaySecurityStack(
        cdk.App(),
        "TestStack",
        env=cdk.Environment(account=ACCOUNT, region=REGION),
        **kwargs,
    )


def test_issuer_and_discovery_urls() -> None:
    identity = _stack(domain_prefix="test-prefix").identity
    assert identity.issuer_url.startswith(f"https://cognito-idp.{REGION}.amazonaws.com/")
    assert identity.discovery_url == f"{identity.issuer_url}/.well-known/openid-configuration"
    assert identity.token_url.endswith("/oauth2/token")


def test_domain_prefix_applied_to_explicit_config(config: SecurityConfig) -> None:
    stack = _stack(config=config, domain_prefix="override-prefix")
    assert stack.config.directory.domain_prefix == "override-prefix"
    Template.from_stack(stack).has_resource_properties(
        "AWS::Cognito::UserPoolDomain", {"Domain": "override-prefix"}
    )


def test_explicit_config_domain_prefix_is_validated(config: SecurityConfig) -> None:
    with pytest.raises(ValidationError):
        _stack(config=config, domain_prefix="Not_A_Valid_Prefix")


def test_same_path_with_two_methods(config: SecurityConfig) -> None:
    front_door = config.front_door.model_copy(
        update={
            "routes": [
                *config.front_door.routes,
                Route(
                    path="/api/secure",
                    method="POST",
                    entry_point="secure",
                    authorization_scope="resource/secure",
                ),
            ]
        }
    )
    extended = SecurityConfig(
        directory=config.directory, clients=config.clients, front_door=front_door
    )
    stack = _stack(config=extended, domain_prefix="test-prefix")

    assert set(stack.front_door.routes) == {
        "GET /api/public",
        "GET /api/secure",
        "POST /api/secure",
    }
    routes = Template.from_stack(stack).find_resources("AWS::ApiGatewayV2::Route")
    assert sorted(r["Properties"]["RouteKey"] for r in routes.values()) == [
        "GET /api/public",
        "GET /api/secure",
        "POST /api/secure",
    ]
