"""
CDK Constructs for the API Gateway Security Stack

This package contains the identity directory and HTTP front door constructs.
"""

from apigw_security.constructs.cognito import IdentityDirectory
from apigw_security.constructs.http_api import FrontDoor

__all__ = ["IdentityDirectory", "FrontDoor"]
