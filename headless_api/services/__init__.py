"""Services for the headless API."""

from headless_api.services.token_store import SQLAlchemyTokenStore, TokenStore
from headless_api.services.users import CredentialVerifier, UserDeserializer, UserDirectory

__all__ = [
    "CredentialVerifier",
    "SQLAlchemyTokenStore",
    "TokenStore",
    "UserDeserializer",
    "UserDirectory",
]
