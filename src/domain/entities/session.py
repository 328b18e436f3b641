"""
SecuritySession Entity

Tracks the lifecycle of an authenticated session.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import text
from sqlmodel import Column, DateTime, Field, Index, SQLModel

from src.domain.base import utc_now


class SecuritySession(SQLModel, table=True):
    """
    SecuritySession entity - one row per logical authenticated session.

    Business Rules:
    - session_token matches the transport-level session token
    - At most one active row per session_token
    - A user holds at most MAX_CONCURRENT_SESSIONS active sessions; the
      authentication layer decides whether to reject or evict
    - Terminated rows keep terminated_at/termination_reason for auditing
    """

    __tablename__ = "security_sessions"

    id: UUID = Field(default_factory=uuid4, primary_key=True)

    session_token: str = Field(max_length=255, index=True)
    user_id: str = Field(max_length=255, index=True)

    ip_address: Optional[str] = Field(default=None, max_length=64)
    user_agent: Optional[str] = Field(default=None, max_length=1000)
    device_fingerprint: Optional[str] = Field(default=None, max_length=255)
    device_type: str = Field(default="unknown", max_length=20)
    browser: str = Field(default="unknown", max_length=50)
    os: str = Field(default="unknown", max_length=50)
    geo_location: Optional[str] = Field(default=None, max_length=255)

    is_active: bool = Field(default=True)

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime))
    last_activity_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(DateTime)
    )
    expires_at: datetime = Field(sa_column=Column(DateTime))
    terminated_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime))
    termination_reason: Optional[str] = Field(default=None, max_length=50)

    __table_args__ = (
        Index("idx_security_session_user_active", "user_id", "is_active"),
        Index("idx_security_session_expires_at", "expires_at"),
        Index(
            "uq_security_session_active_token",
            "session_token",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )
