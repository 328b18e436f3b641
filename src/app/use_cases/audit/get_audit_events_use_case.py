"""
Get Audit Events Use Case

Filtered, paginated retrieval of security audit events.
"""

from typing import Any

from pydantic import ValidationError

from libs.result import Error, Result, Return
from src.app.services.unit_of_work import UnitOfWork
from src.domain.entities import AuditEvent

from .dtos import AuditEventView, AuditLogFilters, AuditLogPage


def to_view(event: AuditEvent) -> AuditEventView:
    return AuditEventView(
        id=str(event.id),
        event_type=event.event_type,
        category=_enum_value(event.category),
        severity=_enum_value(event.severity),
        actor_id=event.actor_id,
        actor_email=event.actor_email,
        actor_role=event.actor_role,
        target_id=event.target_id,
        target_type=event.target_type,
        action=event.action,
        action_details=event.action_details,
        ip_address=event.ip_address,
        user_agent=event.user_agent,
        session_id=event.session_id,
        request_method=event.request_method,
        request_path=event.request_path,
        request_id=event.request_id,
        response_status=event.response_status,
        error_message=event.error_message,
        risk_score=event.risk_score,
        is_anomaly=event.is_anomaly,
        created_at=event.created_at.isoformat() + "Z",
    )


def _enum_value(value: Any) -> str:
    return getattr(value, "value", value)


class GetAuditEventsUseCase:
    """
    Use case for querying the audit log.

    Business Rules:
    - Filters by actor, event type, category, severity and created_at range
    - start_date must not be after end_date
    - limit 1..500, offset >= 0
    - Results ordered by newest first; total counts all matching rows
    - Malformed filters are returned as INVALID_FILTER, never swallowed
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def execute(self, **filters: Any) -> Result[AuditLogPage]:
        """
        Execute get audit events use case.

        Args:
            **filters: Fields of AuditLogFilters

        Returns:
            Result with AuditLogPage, or INVALID_FILTER Error
        """
        try:
            criteria = AuditLogFilters(**filters)
        except ValidationError as exc:
            return Return.err(
                Error(
                    "INVALID_FILTER",
                    "Invalid audit log filter",
                    reason="; ".join(err["msg"] for err in exc.errors()),
                )
            )

        async with self.uow:
            events, total = await self.uow.audit_events.search(
                actor_id=criteria.actor_id,
                event_type=criteria.event_type,
                category=criteria.category,
                severity=criteria.severity,
                start_date=criteria.start_date,
                end_date=criteria.end_date,
                limit=criteria.limit,
                offset=criteria.offset,
            )

        return Return.ok(
            AuditLogPage(
                events=[to_view(event) for event in events],
                total=total,
                limit=criteria.limit,
                offset=criteria.offset,
            )
        )
