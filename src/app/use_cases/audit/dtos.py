"""
Audit Use Case DTOs (Data Transfer Objects)

Query filters and report payloads for the audit domain.
"""

from datetime import UTC, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from src.domain.entities import AuditCategory, AuditSeverity


# ============================================================================
# Command DTOs
# ============================================================================


class AuditLogFilters(BaseModel):
    """Filters and offset pagination for audit log queries"""

    actor_id: Optional[str] = None
    event_type: Optional[str] = Field(default=None, max_length=100)
    category: Optional[AuditCategory] = None
    severity: Optional[AuditSeverity] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: int = Field(default=100, ge=1, le=500)
    offset: int = Field(default=0, ge=0)

    @field_validator("start_date", "end_date")
    @classmethod
    def to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Stored timestamps are naive UTC
        if value is None or value.tzinfo is None:
            return value
        return value.astimezone(UTC).replace(tzinfo=None)

    @model_validator(mode="after")
    def check_time_range(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


# ============================================================================
# Response DTOs
# ============================================================================


class AuditEventView(BaseModel):
    """Single audit event as exposed to report consumers"""

    id: str
    event_type: str
    category: str
    severity: str
    actor_id: Optional[str]
    actor_email: Optional[str]
    actor_role: Optional[str]
    target_id: Optional[str]
    target_type: Optional[str]
    action: str
    action_details: Optional[Dict[str, Any]]
    ip_address: Optional[str]
    user_agent: Optional[str]
    session_id: Optional[str]
    request_method: Optional[str]
    request_path: Optional[str]
    request_id: str
    response_status: Optional[int]
    error_message: Optional[str]
    risk_score: Optional[int]
    is_anomaly: bool
    created_at: str


class AuditLogPage(BaseModel):
    """Page of audit events plus the total matching the same filters"""

    events: List[AuditEventView]
    total: int
    limit: int
    offset: int


class SecurityStats(BaseModel):
    """Trailing-window security summary"""

    window_days: int
    total_events: int = 0
    failed_logins: int = 0
    successful_logins: int = 0
    data_modifications: int = 0
    security_alerts: int = 0
    critical_events: int = 0
