"""
RateLimitWindow Entity

Fixed-window request counter per identifier and endpoint category.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import UniqueConstraint
from sqlmodel import Column, DateTime, Field, Index, SQLModel

from src.domain.base import utc_now

from .enums import EndpointCategory, IdentifierType


class RateLimitWindow(SQLModel, table=True):
    """
    RateLimitWindow entity - request count for one fixed window.

    Business Rules:
    - window_start is aligned to the category's window duration
    - window_end = window_start + window duration
    - Exactly one row per (identifier, endpoint_category, window_start)
    - limit_exceeded is sticky once set
    - Rows are purged an hour after window_end by the cleanup sweep
    """

    __tablename__ = "rate_limit_windows"

    id: UUID = Field(default_factory=uuid4, primary_key=True)

    identifier: str = Field(max_length=255)
    identifier_type: IdentifierType = Field(default=IdentifierType.origin)
    endpoint_category: EndpointCategory = Field(default=EndpointCategory.default)

    window_start: datetime = Field(sa_column=Column(DateTime, nullable=False))
    window_end: datetime = Field(sa_column=Column(DateTime, nullable=False))

    request_count: int = Field(default=0)
    limit_exceeded: bool = Field(default=False)
    last_request_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(DateTime, nullable=False)
    )

    __table_args__ = (
        UniqueConstraint(
            "identifier",
            "endpoint_category",
            "window_start",
            name="uq_rate_limit_window",
        ),
        Index("idx_rate_limit_violations", "identifier", "limit_exceeded", "last_request_at"),
        Index("idx_rate_limit_window_end", "window_end"),
    )
