"""Headless API Router - aggregates the REST API routes under the version prefix."""

from fastapi import APIRouter

from headless_api.api import tokens


def build_api_router(prefix: str, bearer_tokens_enabled: bool = True) -> APIRouter:
    """Build the router mounted at ``prefix`` (e.g. /api/v1)."""
    api_router = APIRouter(prefix=prefix)
    if bearer_tokens_enabled:
        api_router.include_router(tokens.router)
    api_router.include_router(tokens.users_router)
    return api_router
