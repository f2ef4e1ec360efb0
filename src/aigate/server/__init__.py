"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

HTTP host for the gateway.
"""

from .app import (
    CACHE_STATUS_HEADER,
    DEPLOYMENT_HEADER,
    PROVIDER_HEADER,
    ROUTES,
    build_request,
    cache_control_from,
    create_app,
    render_success,
    run,
    status_for,
)
from .auth import APIKeyAuthenticator, AuthenticationError, AuthorizationError
from .rate_limit import FixedWindowRateLimiter

__all__ = [
    "create_app",
    "run",
    "build_request",
    "render_success",
    "status_for",
    "cache_control_from",
    "ROUTES",
    "PROVIDER_HEADER",
    "DEPLOYMENT_HEADER",
    "CACHE_STATUS_HEADER",
    "APIKeyAuthenticator",
    "AuthenticationError",
    "AuthorizationError",
    "FixedWindowRateLimiter",
]
