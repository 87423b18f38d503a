from headless_api.schemas.auth import BearerTokenResponse, EmptyResponse, UserResponse

__all__ = [
    "BearerTokenResponse",
    "EmptyResponse",
    "UserResponse",
]
