"""
Audit Use Cases

All audit-related business logic.
"""

from .dtos import AuditEventView, AuditLogFilters, AuditLogPage, SecurityStats
from .get_audit_events_use_case import GetAuditEventsUseCase
from .get_security_stats_use_case import GetSecurityStatsUseCase

__all__ = [
    "GetAuditEventsUseCase",
    "GetSecurityStatsUseCase",
    # DTOs
    "AuditLogFilters",
    "AuditEventView",
    "AuditLogPage",
    "SecurityStats",
]
