"""
Security Telemetry Domain Entities

All domain entities organized by model.
Each entity in its own file for better maintainability.
"""

# Export all enums
from .enums import (
    AuditCategory,
    AuditSeverity,
    CallerRole,
    EndpointCategory,
    IdentifierType,
    TerminationReason,
)

# Export all entities
from .audit_event import AuditEvent
from .session import SecuritySession
from .rate_limit_window import RateLimitWindow

__all__ = [
    # Enums
    "AuditCategory",
    "AuditSeverity",
    "CallerRole",
    "EndpointCategory",
    "IdentifierType",
    "TerminationReason",
    # Entities
    "AuditEvent",
    "SecuritySession",
    "RateLimitWindow",
]
