"""
HTTP Front Door Construct

Creates the entry point Lambda functions, the Cognito JWT authorizer and the
HTTP API routes that bind each path to one entry point and one required scope.
"""

from aws_cdk import (
    Duration,
    aws_apigatewayv2 as apigwv2,
    aws_apigatewayv2_authorizers as authorizers,
    aws_apigatewayv2_integrations as integrations,
    aws_cognito as cognito,
    aws_lambda as lambda_,
)
from constructs import Construct

from apigw_security.config import FrontDoor as FrontDoorConfig


class FrontDoor(Construct):
    """
    HTTP API guarded by a single User Pool authorizer.

    Creates:
        - One Lambda function per entry point
        - HttpUserPoolAuthorizer accepting tokens from the registered clients
        - HttpApi with one route per declared path, each requiring one scope
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        stack_name: str,
        front_door: FrontDoorConfig,
        user_pool: cognito.IUserPool,
        user_pool_clients: dict[str, cognito.IUserPoolClient],
        lambdas_path: str,
    ) -> None:
        super().__init__(scope, construct_id)

        # =====================================================================
        # ENTRY POINT LAMBDAS
        # =====================================================================

        self.functions: dict[str, lambda_.Function] = {}
        for entry in front_door.entry_points:
            self.functions[entry.name] = lambda_.Function(
                self,
                f"{entry.name.capitalize()}Function",
                function_name=f"{stack_name}-{entry.name}",
                runtime=lambda_.Runtime.PYTHON_3_11,
                handler=entry.handler,
                code=lambda_.Code.from_asset(lambdas_path),
                timeout=Duration.seconds(entry.timeout_seconds),
                memory_size=entry.memory_size,
                description=entry.description,
                environment={
                    "APP_NAME": front_door.api_name,
                },
            )

        # =====================================================================
        # AUTHORIZER
        # =====================================================================

        authorizer_config = front_door.authorizer
        self.authorizer = authorizers.HttpUserPoolAuthorizer(
            authorizer_config.name,
            user_pool,
            authorizer_name=authorizer_config.name,
            identity_source=[authorizer_config.identity_source],
            user_pool_clients=[
                user_pool_clients[client_id] for client_id in authorizer_config.clients
            ],
        )

        # =====================================================================
        # HTTP API + ROUTES
        # =====================================================================

        self.http_api = apigwv2.HttpApi(
            self,
            "HttpApi",
            api_name=front_door.api_name,
            description=front_door.description,
        )

        # One integration per entry point, shared by every route targeting it
        self.integrations = {
            name: integrations.HttpLambdaIntegration(f"{name.capitalize()}Integration", function)
            for name, function in self.functions.items()
        }

        # Keyed by "METHOD /path"
        self.routes: dict[str, list[apigwv2.HttpRoute]] = {}
        for route in front_door.routes:
            self.routes[f"{route.method} {route.path}"] = self.http_api.add_routes(
                path=route.path,
                methods=[apigwv2.HttpMethod[route.method]],
                integration=self.integrations[route.entry_point],
                authorizer=self.authorizer,
                authorization_scopes=[route.authorization_scope],
            )

    @property
    def url(self) -> str:
        """Base URL of the default stage."""
        return self.http_api.url
