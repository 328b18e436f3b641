"""
Security Telemetry Domain Enums

All enumeration types used across domain entities.
"""

from enum import Enum


class AuditCategory(str, Enum):
    """Compliance reporting bucket of an audit event"""

    authentication = "authentication"
    authorization = "authorization"
    data_access = "data_access"
    data_modification = "data_modification"
    admin = "admin"
    security = "security"


class AuditSeverity(str, Enum):
    """Audit event severity"""

    info = "info"
    warning = "warning"
    error = "error"
    critical = "critical"


class IdentifierType(str, Enum):
    """What a rate limit window is keyed on"""

    user = "user"
    origin = "origin"


class EndpointCategory(str, Enum):
    """Coarse request bucket selecting a rate limit policy"""

    auth = "auth"
    sensitive = "sensitive"
    write = "write"
    read = "read"
    default = "default"


class TerminationReason(str, Enum):
    """Why a session stopped being active"""

    logout = "logout"
    expired = "expired"
    forced = "forced"
    admin = "admin"
    superseded = "superseded"


class CallerRole(str, Enum):
    """Role claim carried by the caller's access token"""

    owner = "owner"
    admin = "admin"
    member = "member"
