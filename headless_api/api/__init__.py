# Headless API routes
from headless_api.api.router import build_api_router

__all__ = ["build_api_router"]
