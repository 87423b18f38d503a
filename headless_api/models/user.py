"""User model consumed by the default credential verifier and deserializer."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from headless_api.models.base import BaseModel


class User(BaseModel):
    """A site user able to log in with username and password.

    Owned by the host's login system; this package only reads it to verify
    credentials and to resolve bearer token owners.
    """

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<User {self.username}>"
