"""
Get Security Stats Use Case

Trailing-window summary of the audit log for compliance dashboards.
"""

from datetime import datetime, timedelta
from typing import Callable, Iterable, Tuple

from libs.result import Error, Result, Return
from src.app.services.unit_of_work import UnitOfWork
from src.domain.base import utc_now
from src.domain.entities import AuditCategory, AuditSeverity
from src.domain.taxonomy import AuditEventType, category_for

from .dtos import SecurityStats

MAX_WINDOW_DAYS = 365


def fold_stats(
    rows: Iterable[Tuple[str, AuditSeverity, int]], window_days: int
) -> SecurityStats:
    """Reduce grouped (event_type, severity, count) rows into SecurityStats"""
    stats = SecurityStats(window_days=window_days)
    for event_type, severity, count in rows:
        stats.total_events += count

        if event_type == AuditEventType.AUTH_FAILED_LOGIN:
            stats.failed_logins += count
        elif event_type == AuditEventType.AUTH_LOGIN:
            stats.successful_logins += count

        category = category_for(event_type)
        if category == AuditCategory.data_modification:
            stats.data_modifications += count
        elif category == AuditCategory.security:
            stats.security_alerts += count

        if AuditSeverity(severity) == AuditSeverity.critical:
            stats.critical_events += count
    return stats


class GetSecurityStatsUseCase:
    """
    Use case for the security statistics report.

    Business Rules:
    - Window is 1..365 days, trailing from now
    - One grouped aggregation query, never one query per metric
    """

    def __init__(self, uow: UnitOfWork, clock: Callable[[], datetime] = utc_now):
        self.uow = uow
        self.clock = clock

    async def execute(self, window_days: int = 7) -> Result[SecurityStats]:
        if not isinstance(window_days, int) or not 1 <= window_days <= MAX_WINDOW_DAYS:
            return Return.err(
                Error(
                    "INVALID_FILTER",
                    f"window_days must be between 1 and {MAX_WINDOW_DAYS}",
                )
            )

        since = self.clock() - timedelta(days=window_days)
        async with self.uow:
            rows = await self.uow.audit_events.count_by_type_and_severity(since)

        return Return.ok(fold_stats(rows, window_days))
