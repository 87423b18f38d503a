"""Request-scoped dependencies for API routes."""

from fastapi import Depends, Request

from headless_api.core.errors import AuthenticationError
from headless_api.services.auth import ANONYMOUS, AuthComponents, AuthContext


def get_auth_components(request: Request) -> AuthComponents:
    """Collaborators wired by the composition root."""
    return request.app.state.auth_components


def get_auth_context(request: Request) -> AuthContext:
    """The identity decided by the bearer middleware for this request."""
    return getattr(request.state, "auth", ANONYMOUS)


def require_user(context: AuthContext = Depends(get_auth_context)) -> AuthContext:
    """Reject requests that carry no identity."""
    if not context.is_authenticated:
        raise AuthenticationError("Authentication required", public_message="authentication required")
    return context
