"""
Identity Directory Construct

Creates the Cognito User Pool, Resource Server, hosted Domain and the OAuth2
app clients used for the client credentials (M2M) flow.
"""

from aws_cdk import (
    RemovalPolicy,
    Stack,
    aws_cognito as cognito,
)
from constructs import Construct

from apigw_security.config import IdentityDirectory as IdentityDirectoryConfig
from apigw_security.config import OAuthClient


REMOVAL_POLICIES = {
    "destroy": RemovalPolicy.DESTROY,
    "retain": RemovalPolicy.RETAIN,
}

ACCOUNT_RECOVERY = {
    "email_only": cognito.AccountRecovery.EMAIL_ONLY,
    "email_and_phone_without_mfa": cognito.AccountRecovery.EMAIL_AND_PHONE_WITHOUT_MFA,
    "phone_only_without_mfa": cognito.AccountRecovery.PHONE_ONLY_WITHOUT_MFA,
    "none": cognito.AccountRecovery.NONE,
}


class IdentityDirectory(Construct):
    """
    Cognito resources for OAuth2 client credentials authentication.

    Creates:
        - User Pool with self sign-up, email verification and relaxed password policy
        - Resource Server with the declared scopes
        - User Pool Domain for the token endpoint
        - One app client per declared OAuth client
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        stack_name: str,
        account_id: str,
        directory: IdentityDirectoryConfig,
        clients: list[OAuthClient],
    ) -> None:
        super().__init__(scope, construct_id)

        policy = directory.password_policy

        # User Pool
        self.user_pool = cognito.UserPool(
            self,
            "UserPool",
            user_pool_name=directory.user_pool_name,
            removal_policy=REMOVAL_POLICIES[directory.removal_policy],
            self_sign_up_enabled=directory.self_sign_up_enabled,
            sign_in_aliases=cognito.SignInAliases(email=directory.sign_in_with_email),
            auto_verify=cognito.AutoVerifiedAttrs(email=directory.auto_verify_email),
            password_policy=cognito.PasswordPolicy(
                min_length=policy.min_length,
                require_lowercase=policy.require_lowercase,
                require_uppercase=policy.require_uppercase,
                require_digits=policy.require_digits,
                require_symbols=policy.require_symbols,
            ),
            account_recovery=ACCOUNT_RECOVERY[directory.account_recovery],
        )

        # Resource Server
        server = directory.resource_server
        self.scopes = {
            declared.name: cognito.ResourceServerScope(
                scope_name=declared.name,
                scope_description=declared.description,
            )
            for declared in server.scopes
        }
        self.resource_server = self.user_pool.add_resource_server(
            "ResourceServer",
            identifier=server.identifier,
            user_pool_resource_server_name=server.name,
            scopes=list(self.scopes.values()),
        )

        # User Pool Domain (must be globally unique within the region)
        domain_prefix = directory.domain_prefix or f"{stack_name.lower()}-{account_id}"
        self.user_pool_domain = self.user_pool.add_domain(
            "CognitoDomain",
            cognito_domain=cognito.CognitoDomainOptions(domain_prefix=domain_prefix),
        )

        # App clients, keyed by construct id
        self.clients: dict[str, cognito.UserPoolClient] = {}
        for client in clients:
            self.clients[client.construct_id] = self._add_client(client)

    def _add_client(self, client: OAuthClient) -> cognito.UserPoolClient:
        flows = client.auth_flows
        user_pool_client = cognito.UserPoolClient(
            self,
            client.construct_id,
            user_pool=self.user_pool,
            user_pool_client_name=client.name,
            auth_flows=cognito.AuthFlow(
                admin_user_password=flows.admin_user_password,
                user_password=flows.user_password,
                custom=flows.custom,
                user_srp=flows.user_srp,
            ),
            o_auth=cognito.OAuthSettings(
                flows=cognito.OAuthFlows(client_credentials=True),
                scopes=[
                    cognito.OAuthScope.resource_server(self.resource_server, self.scopes[name])
                    for name in client.scopes
                ],
            ),
            generate_secret=client.generate_secret,
            supported_identity_providers=[
                getattr(cognito.UserPoolClientIdentityProvider, provider)
                for provider in client.identity_providers
            ],
        )
        user_pool_client.node.add_dependency(self.resource_server)
        return user_pool_client

    @property
    def token_url(self) -> str:
        """Token endpoint URL for the client credentials grant."""
        return f"{self.user_pool_domain.base_url()}/oauth2/token"

    @property
    def issuer_url(self) -> str:
        """Issuer (`iss` claim) of tokens minted by the User Pool."""
        region = Stack.of(self).region
        return f"https://cognito-idp.{region}.amazonaws.com/{self.user_pool.user_pool_id}"

    @property
    def discovery_url(self) -> str:
        """OIDC discovery URL for JWT validation."""
        return f"{self.issuer_url}/.well-known/openid-configuration"
