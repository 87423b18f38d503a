"""Per-request authentication context and the collaborators behind it."""

from dataclasses import dataclass
from typing import Any, Protocol

from fastapi import Request

from headless_api.services.token_store import TokenStore
from headless_api.services.users import CredentialVerifier, UserDeserializer


class CSRFGuard(Protocol):
    """Raises CSRFError when a session request fails origin/intent checks."""

    async def verify(self, request: Request) -> None: ...


@dataclass(frozen=True)
class AuthContext:
    """Who a request acts as.

    ``user`` is set only when a valid bearer token resolved to a live user;
    ``token`` is the bearer token that did so.
    """

    user: Any | None = None
    token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


ANONYMOUS = AuthContext()


@dataclass(frozen=True)
class AuthComponents:
    """Injected collaborators shared by the bearer middleware and token endpoints."""

    token_store: TokenStore
    credential_verifier: CredentialVerifier
    user_deserializer: UserDeserializer
    csrf_guard: CSRFGuard
    token_lifetime_seconds: int
    call_timeout_seconds: float
    bearer_tokens_enabled: bool = True
