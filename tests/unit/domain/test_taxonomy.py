"""
Unit tests for the audit event taxonomy
"""

import pytest

from src.domain.entities import AuditCategory, AuditSeverity
from src.domain.taxonomy import EVENT_TAXONOMY, AuditEventType, classify


@pytest.mark.parametrize(
    "event_type, category, severity",
    [
        (AuditEventType.AUTH_LOGIN, AuditCategory.authentication, AuditSeverity.info),
        (AuditEventType.AUTH_FAILED_LOGIN, AuditCategory.authentication, AuditSeverity.warning),
        (AuditEventType.AUTH_PASSWORD_CHANGE, AuditCategory.authentication, AuditSeverity.critical),
        (AuditEventType.DATA_EXPORT, AuditCategory.data_access, AuditSeverity.info),
        (AuditEventType.DATA_DELETE, AuditCategory.data_modification, AuditSeverity.warning),
        (AuditEventType.ADMIN_ROLE_CHANGE, AuditCategory.admin, AuditSeverity.critical),
        (AuditEventType.SECURITY_RATE_LIMIT, AuditCategory.security, AuditSeverity.warning),
        (AuditEventType.SECURITY_IP_BLOCKED, AuditCategory.security, AuditSeverity.error),
        (AuditEventType.SECURITY_BRUTE_FORCE_DETECTED, AuditCategory.security, AuditSeverity.critical),
    ],
)
def test_classify_known_event_types(event_type, category, severity):
    """Test known event types map to their fixed classification"""
    result = classify(event_type)

    assert result.category == category
    assert result.severity == severity


def test_classify_is_pure():
    """Test the same event type always classifies the same way"""
    for event_type in EVENT_TAXONOMY:
        assert classify(event_type) == classify(event_type)


def test_taxonomy_covers_every_event_type():
    """Test every declared event type has a taxonomy entry"""
    declared = {
        value
        for name, value in vars(AuditEventType).items()
        if name.isupper() and isinstance(value, str)
    }

    assert declared == set(EVENT_TAXONOMY)
    assert len(declared) == 27


def test_explicit_severity_wins():
    """Test a caller-supplied severity overrides the derived one"""
    result = classify(AuditEventType.AUTH_LOGIN, AuditSeverity.critical)

    assert result.category == AuditCategory.authentication
    assert result.severity == AuditSeverity.critical


def test_unknown_event_type_falls_back_on_prefix():
    """Test unregistered types are categorized by namespace, severity info"""
    assert classify("admin.something_new").category == AuditCategory.admin
    assert classify("security.new_signal").category == AuditCategory.security
    assert classify("data.bulk_update").category == AuditCategory.data_modification
    assert classify("data.access_report").category == AuditCategory.data_access
    assert classify("security.new_signal").severity == AuditSeverity.info
