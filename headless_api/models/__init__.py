# Headless API Models
from headless_api.models.base import BaseModel
from headless_api.models.bearer_token import BearerToken
from headless_api.models.user import User

__all__ = [
    "BaseModel",
    "BearerToken",
    "User",
]
