# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""Session ORM model – one row per live login."""

from sqlalchemy import Column, String, DateTime, ForeignKey, JSON
from sqlalchemy.sql import func

from database import Base


class Session(Base):
    __tablename__ = "sessions"

    # HMAC-SHA256 hex of the token held by the client; the raw token is never
    # persisted.
    sid = Column(String(64), primary_key=True)
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Opaque payload: client IP and user agent at login time
    data = Column(JSON, nullable=True)
    # Absolute expiry (creation + TTL), stored as naive UTC
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
