#!/usr/bin/env python3
"""
API Gateway Security Demo Client

This script demonstrates:
1. OAuth2 client credentials (M2M) tokens for the read-only and full-access clients
2. Scope enforcement by the HTTP API User Pool authorizer
3. Anonymous requests being rejected on every route

Each response status is compared with the outcome predicted from the
declared configuration (read-only -> 403 on /api/secure, etc.).

Usage:
    # Default (uses api-gateway-security stack in us-west-2):
    python client/demo.py

    # Custom stack:
    python client/demo.py --stack my-stack --region us-east-1
"""

import argparse
import logging
import os
import sys

from dotenv import load_dotenv

from apigw_security.client import (
    GatewayClientError,
    SecuredApiClient,
    StackOutputs,
    get_client_secret,
)
from apigw_security.config import build_security_config
from apigw_security.verify import verify_routes

# Load environment variables from .env file
load_dotenv()


def run_demo(stack_name: str, region: str) -> bool:
    """Run every route scenario against the deployed stack."""
    print("=" * 60)
    print("API GATEWAY SECURITY - OAUTH2 CLIENT CREDENTIALS DEMO")
    print("=" * 60)

    outputs = StackOutputs.from_cloudformation(stack_name, region)
    config = build_security_config(stack_name)

    print("\nConfiguration:")
    print(f"  Stack: {stack_name}")
    print(f"  Region: {outputs.region}")
    print(f"  User Pool ID: {outputs.user_pool_id}")
    print(f"  API URL: {outputs.api_url}")
    print(f"  Token URL: {outputs.token_url}")

    clients = {}
    for construct_id, client_id in outputs.client_ids.items():
        print(f"\n[Token] {construct_id} ({client_id})")
        secret = get_client_secret(outputs.user_pool_id, client_id, outputs.region)
        clients[construct_id] = SecuredApiClient(
            client_id=client_id,
            client_secret=secret,
            token_url=outputs.token_url,
            api_url=outputs.api_url,
        )
        clients[construct_id].get_token()
        print("    Token acquired")

    print(f"\n{'=' * 60}")
    print("RUNNING SCENARIOS")
    print(f"{'=' * 60}")

    results = verify_routes(config, outputs, clients)
    for result in results:
        status = "PASSED" if result.passed else "FAILED"
        print(
            f"\n  {result.method} {result.path} as {result.client}\n"
            f"    expected {result.expected_status}, got {result.actual_status}  {status}"
        )

    passed = sum(1 for result in results if result.passed)
    print(f"\n{'=' * 60}")
    print("SUMMARY")
    print(f"{'=' * 60}")
    print(f"\n  Passed: {passed}/{len(results)}")
    print(f"  Failed: {len(results) - passed}/{len(results)}")

    return passed == len(results)


def main():
    parser = argparse.ArgumentParser(
        description="API Gateway Security OAuth2 client credentials demo",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Use defaults (api-gateway-security stack in us-west-2):
  python client/demo.py

  # Custom stack:
  python client/demo.py --stack my-stack --region us-east-1
        """,
    )
    parser.add_argument(
        "--stack",
        default=os.environ.get("STACK_NAME", "api-gateway-security"),
        help="CloudFormation stack name",
    )
    parser.add_argument(
        "--region",
        default=os.environ.get("AWS_REGION", "us-west-2"),
        help="AWS region",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        success = run_demo(args.stack, args.region)
    except GatewayClientError as e:
        print(f"\nError: {e}")
        sys.exit(1)

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
