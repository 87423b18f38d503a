"""CSRF guard for session-authenticated API requests.

Requests that carry an ambient session cookie and use an unsafe method must
prove intent with a double-submit token: the value of the CSRF cookie echoed
back in the CSRF header. When the browser sends an ``Origin`` header it must
match the request's own origin or a trusted origin.

Requests without a session cookie have no ambient credential to abuse and
pass through as anonymous.
"""

import hmac
import logging

from fastapi import Request

from headless_api.core.errors import CSRFError

logger = logging.getLogger(__name__)

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})


class DoubleSubmitCSRFGuard:
    def __init__(
        self,
        *,
        session_cookie_name: str = "session",
        cookie_name: str = "csrftoken",
        header_name: str = "X-CSRF-Token",
        trusted_origins: list[str] | None = None,
    ):
        self.session_cookie_name = session_cookie_name
        self.cookie_name = cookie_name
        self.header_name = header_name
        self.trusted_origins = set(trusted_origins or [])

    async def verify(self, request: Request) -> None:
        if request.method in SAFE_METHODS:
            return
        if self.session_cookie_name not in request.cookies:
            return

        origin = request.headers.get("origin")
        if origin and not self._origin_allowed(request, origin):
            logger.warning(f"CSRF origin mismatch: {origin} for {request.method} {request.url.path}")
            raise CSRFError("Origin not allowed")

        cookie_token = request.cookies.get(self.cookie_name, "")
        header_token = request.headers.get(self.header_name, "")
        if not cookie_token or not header_token:
            logger.warning(f"CSRF token missing for {request.method} {request.url.path}")
            raise CSRFError("CSRF token missing")
        if not hmac.compare_digest(cookie_token.encode(), header_token.encode()):
            logger.warning(f"CSRF token mismatch for {request.method} {request.url.path}")
            raise CSRFError("CSRF token mismatch")

    def _origin_allowed(self, request: Request, origin: str) -> bool:
        origin = origin.rstrip("/")
        own = f"{request.url.scheme}://{request.url.netloc}"
        return origin == own or origin in self.trusted_origins
