"""
AuditEvent Entity

Append-only record of every security-relevant occurrence.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Column, DateTime, Field, Index, JSON, SQLModel

from src.domain.base import store_utc_now

from .enums import AuditCategory, AuditSeverity


class AuditEvent(SQLModel, table=True):
    """
    AuditEvent entity - compliance-grade security event log.

    Business Rules:
    - Immutable (never updated or deleted)
    - category/severity derived from event_type unless explicitly overridden
    - actor_* fields are nullable for anonymous traffic (failed logins, throttling)
    - request_id correlates the event with the operational log line
    """

    __tablename__ = "audit_events"

    id: UUID = Field(default_factory=uuid4, primary_key=True)

    event_type: str = Field(max_length=100)  # e.g., "auth.login", "data.delete"
    category: AuditCategory = Field(default=AuditCategory.data_access)
    severity: AuditSeverity = Field(default=AuditSeverity.info)

    # Actor
    actor_id: Optional[str] = Field(default=None, max_length=255)
    actor_email: Optional[str] = Field(default=None, max_length=255)
    actor_role: Optional[str] = Field(default=None, max_length=50)

    # Target resource
    target_id: Optional[str] = Field(default=None, max_length=255)
    target_type: Optional[str] = Field(default=None, max_length=100)

    action: str = Field(max_length=500)
    action_details: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    # Request context
    ip_address: Optional[str] = Field(default=None, max_length=64)
    user_agent: Optional[str] = Field(default=None, max_length=1000)
    session_id: Optional[str] = Field(default=None, max_length=255)
    device_fingerprint: Optional[str] = Field(default=None, max_length=255)
    geo_location: Optional[str] = Field(default=None, max_length=255)
    request_method: Optional[str] = Field(default=None, max_length=10)
    request_path: Optional[str] = Field(default=None, max_length=2048)
    request_id: str = Field(max_length=36)

    # Outcome
    response_status: Optional[int] = None
    error_message: Optional[str] = Field(default=None, max_length=1000)
    risk_score: Optional[int] = Field(default=None, ge=0, le=100)
    is_anomaly: bool = Field(default=False)
    event_metadata: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    # Assigned by the store unless the caller stamps it
    created_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime, server_default=store_utc_now(), nullable=False),
    )

    __table_args__ = (
        Index("idx_audit_created_at", "created_at"),
        Index("idx_audit_event_type_created", "event_type", "created_at"),
        Index("idx_audit_actor_id", "actor_id"),
        Index("idx_audit_category_severity", "category", "severity"),
    )
