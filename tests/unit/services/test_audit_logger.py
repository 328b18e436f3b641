"""
Unit tests for the Audit Logger
"""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from src.app.services.audit_logger import AuditLogger, AuditQueryError, AuditStoreError
from src.app.services.request_context import Identity, RequestContext
from src.domain.entities import AuditCategory, AuditSeverity
from src.domain.taxonomy import AuditEventType

LOGGER_NAME = "src.app.services.audit_logger"
FALLBACK_LOGGER_NAME = "src.app.services.audit_logger.fallback"


def _stored_event(mock_uow):
    mock_uow.audit_events.create.assert_called_once()
    return mock_uow.audit_events.create.call_args.args[0]


@pytest.mark.asyncio
async def test_log_persists_classified_event(mock_uow, uow_factory, clock):
    """Test an event is classified, enriched and committed"""
    mock_uow.audit_events.create = AsyncMock()
    audit_logger = AuditLogger(uow_factory, clock=clock)
    context = RequestContext(
        ip_address="203.0.113.7",
        user_agent="pytest",
        session_id="sess-1",
        method="POST",
        path="/auth/login",
    )

    await audit_logger.log(
        AuditEventType.AUTH_LOGIN,
        "User logged in",
        identity=Identity(user_id="user-1", email="a@example.com", role="member"),
        context=context,
    )

    event = _stored_event(mock_uow)
    assert event.category == AuditCategory.authentication
    assert event.severity == AuditSeverity.info
    assert event.actor_id == "user-1"
    assert event.actor_email == "a@example.com"
    assert event.ip_address == "203.0.113.7"
    assert event.session_id == "sess-1"
    assert event.request_path == "/auth/login"
    assert event.request_id
    assert event.created_at == clock()
    mock_uow.commit.assert_called_once()


@pytest.mark.asyncio
async def test_explicit_severity_overrides_taxonomy(mock_uow, uow_factory):
    mock_uow.audit_events.create = AsyncMock()
    audit_logger = AuditLogger(uow_factory)

    await audit_logger.log(AuditEventType.DATA_ACCESS, "Read", severity=AuditSeverity.error)

    assert _stored_event(mock_uow).severity == AuditSeverity.error


@pytest.mark.asyncio
async def test_risk_score_clamped(mock_uow, uow_factory):
    mock_uow.audit_events.create = AsyncMock()
    audit_logger = AuditLogger(uow_factory)

    await audit_logger.log(AuditEventType.SECURITY_IP_BLOCKED, "Blocked", risk_score=250)

    assert _stored_event(mock_uow).risk_score == 100


@pytest.mark.asyncio
async def test_store_failure_never_raises(mock_uow, uow_factory, caplog):
    """Test a failing store is reported to the fallback log only"""
    mock_uow.audit_events.create = AsyncMock(side_effect=RuntimeError("database is down"))
    audit_logger = AuditLogger(uow_factory)
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)

    await audit_logger.log(AuditEventType.AUTH_LOGOUT, "User logged out")

    fallback = [r for r in caplog.records if r.name == FALLBACK_LOGGER_NAME]
    assert len(fallback) == 1
    assert "auth.logout" in fallback[0].getMessage()
    mock_uow.commit.assert_not_called()


@pytest.mark.asyncio
async def test_store_timeout_never_raises(mock_uow, uow_factory, caplog):
    """Test a slow store is abandoned after store_timeout"""

    async def slow_create(event):
        await asyncio.sleep(5)

    mock_uow.audit_events.create = AsyncMock(side_effect=slow_create)
    audit_logger = AuditLogger(uow_factory, store_timeout=0.01)
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)

    await audit_logger.log(AuditEventType.DATA_EXPORT, "Exported invoices")

    fallback = [r for r in caplog.records if r.name == FALLBACK_LOGGER_NAME]
    assert len(fallback) == 1
    assert "timed out" in fallback[0].getMessage()


@pytest.mark.asyncio
async def test_operational_line_leveled_by_severity(mock_uow, uow_factory, caplog):
    mock_uow.audit_events.create = AsyncMock()
    audit_logger = AuditLogger(uow_factory)
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)

    await audit_logger.log(AuditEventType.AUTH_PASSWORD_CHANGE, "Changed password")
    await audit_logger.log(AuditEventType.AUTH_FAILED_LOGIN, "Bad password")
    await audit_logger.log(AuditEventType.AUTH_LOGIN, "Logged in")

    lines = [r for r in caplog.records if r.name == LOGGER_NAME]
    assert [r.levelno for r in lines] == [logging.ERROR, logging.WARNING, logging.INFO]
    assert all(r.getMessage().startswith("[SECURITY AUDIT]") for r in lines)


@pytest.mark.asyncio
async def test_failed_login_not_attributed(mock_uow, uow_factory):
    """Test failed logins record the attempted email but no actor id"""
    mock_uow.audit_events.create = AsyncMock()
    audit_logger = AuditLogger(uow_factory)

    await audit_logger.log_login(
        "victim@example.com",
        success=False,
        identity=Identity(user_id="user-1"),
    )

    event = _stored_event(mock_uow)
    assert event.event_type == AuditEventType.AUTH_FAILED_LOGIN
    assert event.actor_id is None
    assert event.actor_email == "victim@example.com"
    assert event.response_status == 401
    assert event.error_message == "Invalid credentials"
    assert event.severity == AuditSeverity.warning


@pytest.mark.asyncio
async def test_log_data_modification_maps_action(mock_uow, uow_factory):
    mock_uow.audit_events.create = AsyncMock()
    audit_logger = AuditLogger(uow_factory)

    await audit_logger.log_data_modification(
        Identity(user_id="user-1"), "invoice", "inv-42", "delete", details={"amount": 10}
    )

    event = _stored_event(mock_uow)
    assert event.event_type == AuditEventType.DATA_DELETE
    assert event.action == "Deleted invoice"
    assert event.target_type == "invoice"
    assert event.target_id == "inv-42"
    assert event.action_details == {"amount": 10}


@pytest.mark.asyncio
async def test_log_data_modification_unknown_action(mock_uow, uow_factory, caplog):
    mock_uow.audit_events.create = AsyncMock()
    audit_logger = AuditLogger(uow_factory)
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)

    await audit_logger.log_data_modification(Identity(user_id="user-1"), "invoice", "inv-42", "archive")

    mock_uow.audit_events.create.assert_not_called()
    assert any(r.name == FALLBACK_LOGGER_NAME for r in caplog.records)


@pytest.mark.asyncio
async def test_log_admin_action_is_critical(mock_uow, uow_factory):
    mock_uow.audit_events.create = AsyncMock()
    audit_logger = AuditLogger(uow_factory)

    await audit_logger.log_admin_action(
        Identity(user_id="admin-1", role="owner"),
        AuditEventType.ADMIN_ROLE_CHANGE,
        "Changed role",
        target_id="user-2",
    )

    event = _stored_event(mock_uow)
    assert event.category == AuditCategory.admin
    assert event.severity == AuditSeverity.critical
    assert event.actor_role == "admin"
    assert event.target_type == "user"


@pytest.mark.asyncio
async def test_log_security_event_flags_anomaly(mock_uow, uow_factory):
    mock_uow.audit_events.create = AsyncMock()
    audit_logger = AuditLogger(uow_factory)

    await audit_logger.log_security_event(
        AuditEventType.SECURITY_SUSPICIOUS_ACTIVITY,
        "Potential API abuse detected",
        target_id="203.0.113.7",
        risk_score=80,
        is_anomaly=True,
    )

    event = _stored_event(mock_uow)
    assert event.category == AuditCategory.security
    assert event.severity == AuditSeverity.warning
    assert event.risk_score == 80
    assert event.is_anomaly is True


@pytest.mark.asyncio
async def test_get_audit_logs_rejects_bad_filter(mock_uow, uow_factory):
    audit_logger = AuditLogger(uow_factory)

    with pytest.raises(AuditQueryError) as exc_info:
        await audit_logger.get_audit_logs(limit=0)

    assert exc_info.value.code == "INVALID_FILTER"
    mock_uow.audit_events.search.assert_not_called()


@pytest.mark.asyncio
async def test_get_security_stats_rejects_bad_window(uow_factory):
    audit_logger = AuditLogger(uow_factory)

    with pytest.raises(AuditQueryError) as exc_info:
        await audit_logger.get_security_stats(window_days=0)

    assert exc_info.value.code == "INVALID_FILTER"


@pytest.mark.asyncio
async def test_created_at_left_to_store_without_clock(mock_uow, uow_factory):
    mock_uow.audit_events.create = AsyncMock()
    audit_logger = AuditLogger(uow_factory)

    await audit_logger.log(AuditEventType.AUTH_LOGOUT, "User logged out")

    assert _stored_event(mock_uow).created_at is None


@pytest.mark.asyncio
async def test_get_audit_logs_times_out(mock_uow, uow_factory):
    """Test a hung store surfaces as AuditStoreError instead of hanging"""

    async def slow_search(**filters):
        await asyncio.sleep(5)

    mock_uow.audit_events.search = AsyncMock(side_effect=slow_search)
    audit_logger = AuditLogger(uow_factory, store_timeout=0.01)

    with pytest.raises(AuditStoreError) as exc_info:
        await audit_logger.get_audit_logs()

    assert exc_info.value.code == "AUDIT_STORE_UNAVAILABLE"
    assert "timed out" in str(exc_info.value)


@pytest.mark.asyncio
async def test_get_audit_logs_store_failure(mock_uow, uow_factory):
    mock_uow.audit_events.search = AsyncMock(side_effect=RuntimeError("connection reset"))
    audit_logger = AuditLogger(uow_factory)

    with pytest.raises(AuditStoreError):
        await audit_logger.get_audit_logs()


@pytest.mark.asyncio
async def test_get_security_stats_times_out(mock_uow, uow_factory, clock):
    async def slow_stats(since):
        await asyncio.sleep(5)

    mock_uow.audit_events.count_by_type_and_severity = AsyncMock(side_effect=slow_stats)
    audit_logger = AuditLogger(uow_factory, store_timeout=0.01, clock=clock)

    with pytest.raises(AuditStoreError) as exc_info:
        await audit_logger.get_security_stats(window_days=7)

    assert exc_info.value.code == "AUDIT_STORE_UNAVAILABLE"
