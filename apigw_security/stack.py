"""
API Gateway Security Stack

CDK stack for an HTTP API whose routes are protected by Cognito OAuth2
client credentials scopes:
- Cognito User Pool with a resource server declaring `public` and `secure` scopes
- Two M2M app clients: read-only (`public`) and full-access (`public` + `secure`)
- HTTP API with a User Pool JWT authorizer and one Lambda per route

The gateway enforces token validity and scope membership; nothing in this
stack runs at request time except the two entry point Lambdas.
"""

import os

from aws_cdk import (
    CfnOutput,
    Stack,
)
from constructs import Construct

from apigw_security.config import IdentityDirectory as IdentityDirectoryConfig
from apigw_security.config import SecurityConfig, build_security_config
from apigw_security.constructs.cognito import IdentityDirectory
from apigw_security.constructs.http_api import FrontDoor


class ApiGatewaySecurityStack(Stack):
    """
    CDK Stack for an HTTP API secured by Cognito client credentials scopes.

    Creates:
        - Cognito User Pool, Domain, Resource Server and app clients
        - Public and secure entry point Lambdas
        - HTTP API with a shared User Pool authorizer on both routes
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        config: SecurityConfig | None = None,
        domain_prefix: str | None = None,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        if config is None:
            config = build_security_config(self.stack_name, domain_prefix)
        elif domain_prefix is not None:
            # Re-validate so the prefix passes the same checks as a built config
            directory = IdentityDirectoryConfig.model_validate(
                {**config.directory.model_dump(), "domain_prefix": domain_prefix}
            )
            config = config.model_copy(update={"directory": directory})
        self.config = config

        # =====================================================================
        # IDENTITY DIRECTORY
        # =====================================================================

        self.identity = IdentityDirectory(
            self,
            "IdentityDirectory",
            stack_name=self.stack_name,
            account_id=self.account,
            directory=self.config.directory,
            clients=self.config.clients,
        )

        # =====================================================================
        # HTTP FRONT DOOR
        # =====================================================================

        # Path to Lambda handlers (public.py, secure.py)
        lambdas_path = os.path.join(os.path.dirname(__file__), "lambdas")

        self.front_door = FrontDoor(
            self,
            "FrontDoor",
            stack_name=self.stack_name,
            front_door=self.config.front_door,
            user_pool=self.identity.user_pool,
            user_pool_clients=self.identity.clients,
            lambdas_path=lambdas_path,
        )

        # =====================================================================
        # OUTPUTS
        # =====================================================================

        CfnOutput(
            self,
            "Region",
            description="Deployment region",
            value=self.region,
        )

        CfnOutput(
            self,
            "UserPoolId",
            description="Cognito User Pool ID",
            value=self.identity.user_pool.user_pool_id,
            export_name=f"{self.stack_name}-UserPoolId",
        )

        CfnOutput(
            self,
            "ApiUrl",
            description="HTTP API base URL",
            value=self.front_door.url,
            export_name=f"{self.stack_name}-ApiUrl",
        )

        CfnOutput(
            self,
            "TokenUrl",
            description="Cognito Token URL",
            value=self.identity.token_url,
            export_name=f"{self.stack_name}-TokenUrl",
        )

        CfnOutput(
            self,
            "IssuerUrl",
            description="JWT issuer of the User Pool",
            value=self.identity.issuer_url,
            export_name=f"{self.stack_name}-IssuerUrl",
        )

        for client_id, client in self.identity.clients.items():
            CfnOutput(
                self,
                f"{client_id}Id",
                description=f"Cognito app client ID ({client_id})",
                value=client.user_pool_client_id,
                export_name=f"{self.stack_name}-{client_id}Id",
            )
