"""
Lambda Handlers for the API Gateway Security Stack

This package is shipped as the code asset of the route entry points:
- public: GET /api/public, requires resource/public
- secure: GET /api/secure, requires resource/secure
"""
