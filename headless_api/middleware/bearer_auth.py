"""Bearer token authentication for the REST API prefix.

Every request under the prefix is classified exactly once:

- no bearer token: a session request, so the CSRF guard must pass;
- a bearer token that resolves to a live user: authenticated, CSRF skipped
  because the token is not an ambient browser credential;
- a bearer token that is unknown or expired: rejected with 401. It is never
  downgraded to an anonymous or CSRF-checked request.

The login endpoint is exempt since a client cannot have a token before
logging in. The result is stored as an ``AuthContext`` on ``request.state``.
"""

import logging
from urllib.parse import parse_qs

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse
from starlette.types import ASGIApp

from headless_api.core.deadline import call_dependency, call_store
from headless_api.core.errors import (
    CSRFError,
    DependencyError,
    HeadlessAPIError,
    InvalidBearerTokenError,
    StorageError,
)
from headless_api.services.auth import ANONYMOUS, AuthComponents, AuthContext
from headless_api.services.token_store import token_fingerprint

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class BearerTokenExtractor:
    """Find a bearer token as described by RFC 6750.

    Checks the ``Authorization`` header first, then the query string, then a
    form-encoded body. An empty key disables that transport. Returns None
    only when no token was presented at all; an empty header value is
    returned as ``""`` so it is rejected rather than ignored.
    """

    def __init__(
        self,
        header_scheme: str = "Bearer",
        query_key: str = "access_token",
        body_key: str = "access_token",
    ):
        self.header_scheme = header_scheme.lower()
        self.query_key = query_key
        self.body_key = body_key

    async def extract(self, request: Request) -> str | None:
        auth_header = request.headers.get("Authorization")
        if auth_header is not None:
            scheme, _, value = auth_header.strip().partition(" ")
            if scheme.lower() == self.header_scheme:
                return value.strip()

        if self.query_key and self.query_key in request.query_params:
            return request.query_params[self.query_key]

        if self.body_key and request.method not in ("GET", "HEAD"):
            content_type = request.headers.get("content-type", "")
            if content_type.split(";")[0].strip().lower() == FORM_CONTENT_TYPE:
                body = await request.body()
                values = parse_qs(body.decode("utf-8", errors="replace")).get(self.body_key)
                if values:
                    return values[0]

        return None


def error_response(error: HeadlessAPIError) -> JSONResponse:
    headers = {}
    if isinstance(error, InvalidBearerTokenError):
        headers["WWW-Authenticate"] = 'Bearer error="invalid_token"'
    return JSONResponse(status_code=error.status_code, content=error.to_body(), headers=headers)


class BearerAuthMiddleware(BaseHTTPMiddleware):
    """Resolve bearer tokens to users, falling back to CSRF checks.

    When bearer tokens are disabled every prefixed request takes the
    session path and goes through the CSRF guard.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        prefix: str,
        components: AuthComponents,
        extractor: BearerTokenExtractor | None = None,
    ):
        super().__init__(app)
        self.prefix = prefix.rstrip("/")
        self.login_path = f"{self.prefix}/login"
        self.components = components
        self.extractor = extractor or BearerTokenExtractor()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path

        if not path.startswith(self.prefix + "/"):
            return await call_next(request)

        # Preflight requests are answered by the CORS layer
        if request.method == "OPTIONS":
            return await call_next(request)

        request.state.auth = ANONYMOUS

        if self.components.bearer_tokens_enabled and path == self.login_path:
            return await call_next(request)

        token = None
        if self.components.bearer_tokens_enabled:
            token = await self.extractor.extract(request)

        if token is None:
            return await self._session_request(request, call_next)

        try:
            context = await self._authenticate(token)
        except InvalidBearerTokenError as e:
            logger.warning(
                f"Invalid bearer token {token_fingerprint(token)} for: {request.method} {path}"
            )
            return error_response(e)
        except (StorageError, DependencyError) as e:
            logger.exception(f"Bearer authentication failed for {request.method} {path}: {e}")
            return error_response(e)

        if context.user is None:
            # Owner no longer exists or is disabled. Deliberately not a 401: the
            # token is valid but carries no identity, so the request is handled
            # like any other non-bearer request and must pass the CSRF guard.
            logger.info(f"Bearer token owner unavailable for: {request.method} {path}")
            return await self._session_request(request, call_next)

        request.state.auth = context
        return await call_next(request)

    async def _session_request(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            await self.components.csrf_guard.verify(request)
        except CSRFError as e:
            return error_response(e)
        return await call_next(request)

    async def _authenticate(self, token: str) -> AuthContext:
        """Resolve a presented token to an AuthContext.

        Raises InvalidBearerTokenError if the token is unknown or expired.
        The returned context has ``user=None`` when the owner cannot be
        deserialized.
        """
        user_id = await call_store(
            "lookup",
            self.components.token_store.lookup(token),
            self.components.call_timeout_seconds,
        )
        if user_id is None:
            raise InvalidBearerTokenError("Bearer token unknown or expired")

        user = await call_dependency(
            "user deserializer",
            self.components.user_deserializer.deserialize_user(user_id),
            self.components.call_timeout_seconds,
        )
        if user is None:
            return ANONYMOUS
        return AuthContext(user=user, token=token)
