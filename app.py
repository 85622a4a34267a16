#!/usr/bin/env python3
"""
API Gateway Security CDK App

Deploys an HTTP API secured by Cognito OAuth2 client credentials with:
- Read-only and full-access M2M app clients
- GET /api/public (scope resource/public) and GET /api/secure (scope resource/secure)

Configuration is read from environment variables (optionally from a .env file):
- STACK_NAME: CloudFormation stack name (default: api-gateway-security)
- AWS_REGION: AWS region (default: us-west-2)
- DOMAIN_PREFIX: Cognito hosted domain prefix (default: <stack-name>-<account-id>)
"""

import os

import aws_cdk as cdk
from dotenv import load_dotenv

from apigw_security import ApiGatewaySecurityStack

load_dotenv()

STACK_NAME = os.environ.get("STACK_NAME", "api-gateway-security")
AWS_REGION = os.environ.get("AWS_REGION", "us-west-2")
DOMAIN_PREFIX = os.environ.get("DOMAIN_PREFIX") or None

app = cdk.App()

ApiGatewaySecurityStack(
    app,
    STACK_NAME,
    domain_prefix=DOMAIN_PREFIX,
    env=cdk.Environment(
        account=os.environ.get("CDK_DEFAULT_ACCOUNT"),
        region=AWS_REGION,
    ),
    description="HTTP API secured by Cognito OAuth2 client credentials scopes",
)

app.synth()
