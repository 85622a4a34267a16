"""
API Gateway Security CDK Package

This package contains the CDK stack, constructs and Lambda handlers for an
HTTP API protected by Cognito OAuth2 client credentials scopes, plus a client
for verifying a deployed stack.
"""

from apigw_security.config import SecurityConfig, build_security_config
from apigw_security.stack import ApiGatewaySecurityStack

__all__ = ["ApiGatewaySecurityStack", "SecurityConfig", "build_security_config"]
