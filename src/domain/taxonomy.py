"""
Audit Event Taxonomy

Static mapping from event type to (category, severity). Classification is a
pure lookup so two callers logging the same event type always agree.
"""

from typing import Dict, NamedTuple, Optional

from src.domain.entities.enums import AuditCategory, AuditSeverity


class AuditEventType:
    """Dotted-namespace event identifiers"""

    # Authentication
    AUTH_LOGIN = "auth.login"
    AUTH_LOGOUT = "auth.logout"
    AUTH_FAILED_LOGIN = "auth.failed_login"
    AUTH_PASSWORD_CHANGE = "auth.password_change"
    AUTH_PASSWORD_RESET_REQUEST = "auth.password_reset_request"
    AUTH_PASSWORD_RESET_COMPLETE = "auth.password_reset_complete"
    AUTH_SESSION_CREATED = "auth.session_created"
    AUTH_SESSION_EXPIRED = "auth.session_expired"
    AUTH_SESSION_TERMINATED = "auth.session_terminated"

    # Data access
    DATA_ACCESS = "data.access"
    DATA_EXPORT = "data.export"
    DATA_SEARCH = "data.search"

    # Data modification
    DATA_CREATE = "data.create"
    DATA_MODIFY = "data.modify"
    DATA_DELETE = "data.delete"

    # Admin
    ADMIN_USER_CREATE = "admin.user_create"
    ADMIN_USER_MODIFY = "admin.user_modify"
    ADMIN_USER_DELETE = "admin.user_delete"
    ADMIN_ROLE_CHANGE = "admin.role_change"
    ADMIN_PERMISSION_CHANGE = "admin.permission_change"
    ADMIN_SETTINGS_CHANGE = "admin.settings_change"
    ADMIN_FORCE_LOGOUT = "admin.force_logout"
    ADMIN_DATA_EXPORT = "admin.data_export"

    # Security
    SECURITY_RATE_LIMIT = "security.rate_limit"
    SECURITY_SUSPICIOUS_ACTIVITY = "security.suspicious_activity"
    SECURITY_IP_BLOCKED = "security.ip_blocked"
    SECURITY_BRUTE_FORCE_DETECTED = "security.brute_force_detected"


class Classification(NamedTuple):
    category: AuditCategory
    severity: AuditSeverity


_A = AuditCategory
_S = AuditSeverity

EVENT_TAXONOMY: Dict[str, Classification] = {
    AuditEventType.AUTH_LOGIN: Classification(_A.authentication, _S.info),
    AuditEventType.AUTH_LOGOUT: Classification(_A.authentication, _S.info),
    AuditEventType.AUTH_FAILED_LOGIN: Classification(_A.authentication, _S.warning),
    AuditEventType.AUTH_PASSWORD_CHANGE: Classification(_A.authentication, _S.critical),
    AuditEventType.AUTH_PASSWORD_RESET_REQUEST: Classification(_A.authentication, _S.info),
    AuditEventType.AUTH_PASSWORD_RESET_COMPLETE: Classification(_A.authentication, _S.info),
    AuditEventType.AUTH_SESSION_CREATED: Classification(_A.authentication, _S.info),
    AuditEventType.AUTH_SESSION_EXPIRED: Classification(_A.authentication, _S.info),
    AuditEventType.AUTH_SESSION_TERMINATED: Classification(_A.authentication, _S.info),
    AuditEventType.DATA_ACCESS: Classification(_A.data_access, _S.info),
    AuditEventType.DATA_EXPORT: Classification(_A.data_access, _S.info),
    AuditEventType.DATA_SEARCH: Classification(_A.data_access, _S.info),
    AuditEventType.DATA_CREATE: Classification(_A.data_modification, _S.info),
    AuditEventType.DATA_MODIFY: Classification(_A.data_modification, _S.info),
    AuditEventType.DATA_DELETE: Classification(_A.data_modification, _S.warning),
    AuditEventType.ADMIN_USER_CREATE: Classification(_A.admin, _S.info),
    AuditEventType.ADMIN_USER_MODIFY: Classification(_A.admin, _S.info),
    AuditEventType.ADMIN_USER_DELETE: Classification(_A.admin, _S.critical),
    AuditEventType.ADMIN_ROLE_CHANGE: Classification(_A.admin, _S.critical),
    AuditEventType.ADMIN_PERMISSION_CHANGE: Classification(_A.admin, _S.info),
    AuditEventType.ADMIN_SETTINGS_CHANGE: Classification(_A.admin, _S.info),
    AuditEventType.ADMIN_FORCE_LOGOUT: Classification(_A.admin, _S.info),
    AuditEventType.ADMIN_DATA_EXPORT: Classification(_A.admin, _S.info),
    AuditEventType.SECURITY_RATE_LIMIT: Classification(_A.security, _S.warning),
    AuditEventType.SECURITY_SUSPICIOUS_ACTIVITY: Classification(_A.security, _S.warning),
    AuditEventType.SECURITY_IP_BLOCKED: Classification(_A.security, _S.error),
    AuditEventType.SECURITY_BRUTE_FORCE_DETECTED: Classification(_A.security, _S.critical),
}

# Checked in order; first matching prefix wins.
_CATEGORY_PREFIXES = (
    ("auth.", AuditCategory.authentication),
    ("data.access", AuditCategory.data_access),
    ("data.export", AuditCategory.data_access),
    ("data.search", AuditCategory.data_access),
    ("data.", AuditCategory.data_modification),
    ("admin.", AuditCategory.admin),
    ("security.", AuditCategory.security),
)


def category_for(event_type: str) -> AuditCategory:
    known = EVENT_TAXONOMY.get(event_type)
    if known is not None:
        return known.category
    for prefix, category in _CATEGORY_PREFIXES:
        if event_type.startswith(prefix):
            return category
    return AuditCategory.data_access


def severity_for(event_type: str) -> AuditSeverity:
    known = EVENT_TAXONOMY.get(event_type)
    if known is not None:
        return known.severity
    return AuditSeverity.info


def classify(
    event_type: str, severity: Optional[AuditSeverity] = None
) -> Classification:
    """
    Classify an event type.

    Args:
        event_type: Dotted event identifier
        severity: Explicit severity; always wins over the derived one

    Returns:
        Classification(category, severity)
    """
    return Classification(
        category=category_for(event_type),
        severity=AuditSeverity(severity) if severity else severity_for(event_type),
    )
