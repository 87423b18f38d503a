"""Bearer token lifecycle endpoints: login, logout and the current user."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request

from headless_api.api.deps import get_auth_components, get_auth_context, require_user
from headless_api.core.deadline import call_dependency, call_store
from headless_api.core.errors import AuthenticationError, AuthorizationError, ValidationError
from headless_api.schemas.auth import BearerTokenResponse, EmptyResponse, UserResponse
from headless_api.services.auth import AuthComponents, AuthContext

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")

router = APIRouter(tags=["auth"])
users_router = APIRouter(tags=["users"])


def launder_string(value: Any) -> str:
    """Coerce an untrusted body value to a stripped string.

    Numbers are stringified; anything else that is not a string becomes "".
    """
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


async def read_body_fields(request: Request) -> dict[str, Any]:
    """Parse a JSON or form body into a dict; malformed bodies read as empty."""
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    try:
        if content_type in FORM_CONTENT_TYPES:
            form = await request.form()
            return dict(form)
        body = await request.body()
        if not body:
            return {}
        data = await request.json()
    except (ValueError, UnicodeDecodeError) as e:
        logger.debug(f"Unreadable login body: {e}")
        return {}
    return data if isinstance(data, dict) else {}


@router.post("/login", response_model=BearerTokenResponse)
async def login(
    request: Request,
    components: AuthComponents = Depends(get_auth_components),
) -> BearerTokenResponse:
    """Verify a username and password and issue a bearer token.

    Accepts JSON or form bodies. Each successful call issues a new token.
    """
    fields = await read_body_fields(request)
    username = launder_string(fields.get("username"))
    password = launder_string(fields.get("password"))
    if not (username and password):
        raise ValidationError("username and password are required")

    user = await call_dependency(
        "credential verifier",
        components.credential_verifier.verify_credentials(username, password),
        components.call_timeout_seconds,
    )
    if user is None:
        logger.warning(f"Failed login for username {username!r}")
        raise AuthenticationError("Invalid username or password", public_message="error")

    bearer = await call_store(
        "issue",
        components.token_store.issue(user.id, components.token_lifetime_seconds),
        components.call_timeout_seconds,
    )
    logger.info(f"User logged in via bearer token: {user.id}")
    return BearerTokenResponse(bearer=bearer)


@router.post("/logout", response_model=EmptyResponse)
async def logout(
    context: AuthContext = Depends(get_auth_context),
    components: AuthComponents = Depends(get_auth_components),
) -> EmptyResponse:
    """Revoke the bearer token this request was authenticated with.

    Only that token is revoked; the user's other tokens stay valid.
    """
    if not context.is_authenticated:
        raise AuthorizationError("Logout requires an authenticated user")

    if context.token is not None:
        await call_store(
            "revoke",
            components.token_store.revoke(context.user.id, context.token),
            components.call_timeout_seconds,
        )
    logger.info(f"User logged out: {context.user.id}")
    return EmptyResponse()


@users_router.get("/me", response_model=UserResponse)
async def get_current_user_info(context: AuthContext = Depends(require_user)) -> UserResponse:
    """Get the current user's information."""
    return UserResponse.model_validate(context.user)
