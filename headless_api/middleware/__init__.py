"""Middleware module for the headless API."""

from headless_api.middleware.csrf import DoubleSubmitCSRFGuard
from headless_api.middleware.bearer_auth import BearerAuthMiddleware, BearerTokenExtractor
from headless_api.middleware.cors import PrefixCORSMiddleware

__all__ = [
    "BearerAuthMiddleware",
    "BearerTokenExtractor",
    "DoubleSubmitCSRFGuard",
    "PrefixCORSMiddleware",
]
