"""CORS for the REST API prefix only.

The host keeps its own origin policy for every other path; this wrapper
routes only prefixed requests through Starlette's CORSMiddleware.
"""

from typing import Any

from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

API_CORS_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def path_in_prefix(path: str, prefix: str) -> bool:
    """Segment-boundary prefix match: /api/v1 matches /api/v1/x, not /api/v10."""
    return path == prefix or path.startswith(prefix + "/")


class PrefixCORSMiddleware:
    """Apply CORSMiddleware to requests whose path is under ``prefix``."""

    def __init__(self, app: ASGIApp, prefix: str, **cors_options: Any):
        self.app = app
        self.prefix = prefix.rstrip("/")
        self.cors = CORSMiddleware(app, **cors_options)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and path_in_prefix(scope["path"], self.prefix):
            await self.cors(scope, receive, send)
            return
        await self.app(scope, receive, send)
