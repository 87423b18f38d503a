"""Issued bearer tokens."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from headless_api.core.database import Base


class BearerToken(Base):
    """An opaque bearer credential issued by a successful login.

    ``user_id`` is a back-reference to the owning user, not a foreign key:
    users live in the host's tables. Rows are never updated; they are deleted
    on logout or by the expiry sweep once ``expires_at`` has passed.
    """

    __tablename__ = "bearer_tokens"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<BearerToken user={self.user_id} expires={self.expires_at.isoformat()}>"
