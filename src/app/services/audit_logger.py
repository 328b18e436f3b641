"""
Audit Logger

Classifies security events, enriches them with request context and appends
them to the audit store. Logging is best effort: a store failure is written
to the local fallback log and never reaches the caller.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple
from uuid import uuid4

from src.app.services.request_context import Identity, RequestContext
from src.app.services.unit_of_work import UnitOfWork
from src.app.use_cases.audit import (
    AuditLogPage,
    GetAuditEventsUseCase,
    GetSecurityStatsUseCase,
    SecurityStats,
)
from src.domain.base import utc_now
from src.domain.entities import AuditEvent, AuditSeverity
from src.domain.taxonomy import AuditEventType, classify

logger = logging.getLogger(__name__)
fallback_logger = logging.getLogger(f"{__name__}.fallback")

UnitOfWorkFactory = Callable[[], UnitOfWork]

_MODIFICATION_EVENTS = {
    "create": (AuditEventType.DATA_CREATE, "Created"),
    "modify": (AuditEventType.DATA_MODIFY, "Modified"),
    "delete": (AuditEventType.DATA_DELETE, "Deleted"),
}


class AuditQueryError(ValueError):
    """Raised when an audit query is malformed"""

    def __init__(self, code: str, message: str, reason: Optional[str] = None):
        self.code = code
        self.reason = reason
        super().__init__(message)


class AuditStoreError(RuntimeError):
    """Raised when the audit store cannot answer a query in time"""

    code = "AUDIT_STORE_UNAVAILABLE"


class AuditLogger:
    """
    Security audit logger.

    Business Rules:
    - Every log() call writes at most one AuditEvent and never raises
    - category/severity come from the taxonomy unless severity is explicit
    - Each call also emits one operational log line leveled by severity
    - Store writes are bounded by store_timeout; failures go to the fallback log
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        store_timeout: float = 2.0,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.uow_factory = uow_factory
        self.store_timeout = store_timeout
        # Without a clock the store stamps created_at
        self.clock = clock

    def build_event(
        self,
        event_type: str,
        action: str,
        *,
        identity: Optional[Identity] = None,
        actor_email: Optional[str] = None,
        target_id: Optional[str] = None,
        target_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[RequestContext] = None,
        response_status: Optional[int] = None,
        error_message: Optional[str] = None,
        severity: Optional[AuditSeverity] = None,
        risk_score: Optional[int] = None,
        is_anomaly: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        """Classify and enrich an event without persisting it"""
        category, resolved_severity = classify(event_type, severity)
        context = context or RequestContext()

        if risk_score is not None:
            risk_score = max(0, min(100, int(risk_score)))

        return AuditEvent(
            event_type=event_type,
            category=category,
            severity=resolved_severity,
            actor_id=identity.user_id if identity else None,
            actor_email=actor_email or (identity.email if identity else None),
            actor_role=identity.role if identity else None,
            target_id=target_id,
            target_type=target_type,
            action=action,
            action_details=details,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            session_id=context.session_id,
            device_fingerprint=context.device_fingerprint,
            request_method=context.method,
            request_path=context.path,
            request_id=str(uuid4()),
            response_status=response_status,
            error_message=error_message,
            risk_score=risk_score,
            is_anomaly=is_anomaly,
            event_metadata=metadata,
            created_at=self.clock() if self.clock else None,
        )

    async def log(self, event_type: str, action: str, **fields: Any) -> None:
        """
        Record a security event.

        Args:
            event_type: Dotted event identifier (see AuditEventType)
            action: Human readable summary
            **fields: Keyword arguments of build_event

        Never raises; failures are written to the fallback log.
        """
        try:
            event = self.build_event(event_type, action, **fields)
        except Exception:
            fallback_logger.exception(
                f"Rejected audit event {event_type!r}: {action!r} {fields!r}"
            )
            return

        try:
            await asyncio.wait_for(self._persist(event), timeout=self.store_timeout)
        except asyncio.TimeoutError:
            fallback_logger.error(
                f"Audit store timed out after {self.store_timeout}s, dropped event: "
                f"{self._describe(event)}"
            )
        except Exception:
            fallback_logger.exception(
                f"Audit store write failed, dropped event: {self._describe(event)}"
            )

        self._emit_operational_line(event)

    async def _persist(self, event: AuditEvent) -> None:
        async with self.uow_factory() as uow:
            await uow.audit_events.create(event)
            await uow.commit()

    def _emit_operational_line(self, event: AuditEvent) -> None:
        severity = AuditSeverity(event.severity)
        message = (
            f"[SECURITY AUDIT] {event.event_type}: {event.action} "
            f"actor={event.actor_id} ip={event.ip_address} "
            f"severity={severity.value} request_id={event.request_id}"
        )
        if severity in (AuditSeverity.critical, AuditSeverity.error):
            logger.error(message)
        elif severity == AuditSeverity.warning:
            logger.warning(message)
        else:
            logger.info(message)

    @staticmethod
    def _describe(event: AuditEvent) -> Dict[str, Any]:
        return event.model_dump(mode="json", exclude={"id"})

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def log_login(
        self,
        email: str,
        *,
        success: bool,
        identity: Optional[Identity] = None,
        context: Optional[RequestContext] = None,
    ) -> None:
        if success:
            await self.log(
                AuditEventType.AUTH_LOGIN,
                "User logged in successfully",
                identity=identity,
                actor_email=email,
                context=context,
                response_status=200,
                severity=AuditSeverity.info,
            )
            return

        # Failed attempts are not attributed to an account
        await self.log(
            AuditEventType.AUTH_FAILED_LOGIN,
            "Login attempt failed",
            actor_email=email,
            context=context,
            response_status=401,
            error_message="Invalid credentials",
            severity=AuditSeverity.warning,
        )

    async def log_logout(
        self, identity: Identity, context: Optional[RequestContext] = None
    ) -> None:
        await self.log(
            AuditEventType.AUTH_LOGOUT,
            "User logged out",
            identity=identity,
            context=context,
            response_status=200,
        )

    async def log_password_change(
        self, identity: Identity, context: Optional[RequestContext] = None
    ) -> None:
        await self.log(
            AuditEventType.AUTH_PASSWORD_CHANGE,
            "User changed password",
            identity=identity,
            context=context,
            response_status=200,
            severity=AuditSeverity.critical,
        )

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    async def log_data_access(
        self,
        identity: Identity,
        resource_type: str,
        action: str,
        resource_id: Optional[str] = None,
        context: Optional[RequestContext] = None,
    ) -> None:
        await self.log(
            AuditEventType.DATA_ACCESS,
            action,
            identity=identity,
            target_type=resource_type,
            target_id=resource_id,
            context=context,
            response_status=200,
        )

    async def log_data_modification(
        self,
        identity: Identity,
        resource_type: str,
        resource_id: str,
        action: str,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[RequestContext] = None,
    ) -> None:
        """
        Record a create/modify/delete of a business resource.

        Args:
            action: One of "create", "modify", "delete"
        """
        mapping: Optional[Tuple[str, str]] = _MODIFICATION_EVENTS.get(action)
        if mapping is None:
            fallback_logger.error(
                f"Unknown data modification action {action!r} on {resource_type}:{resource_id}"
            )
            return

        event_type, verb = mapping
        await self.log(
            event_type,
            f"{verb} {resource_type}",
            identity=identity,
            target_type=resource_type,
            target_id=resource_id,
            details=details,
            context=context,
            response_status=200,
        )

    # ------------------------------------------------------------------
    # Admin & security
    # ------------------------------------------------------------------

    async def log_admin_action(
        self,
        identity: Identity,
        event_type: str,
        action: str,
        target_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[RequestContext] = None,
    ) -> None:
        await self.log(
            event_type,
            action,
            identity=identity.model_copy(update={"role": "admin"}),
            target_id=target_id,
            target_type="user" if target_id else None,
            details=details,
            context=context,
            severity=AuditSeverity.critical,
        )

    async def log_security_event(
        self,
        event_type: str,
        action: str,
        *,
        identity: Optional[Identity] = None,
        target_id: Optional[str] = None,
        target_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[RequestContext] = None,
        risk_score: Optional[int] = None,
        is_anomaly: bool = False,
        severity: AuditSeverity = AuditSeverity.warning,
    ) -> None:
        await self.log(
            event_type,
            action,
            identity=identity,
            target_id=target_id,
            target_type=target_type,
            details=details,
            context=context,
            risk_score=risk_score,
            is_anomaly=is_anomaly,
            severity=severity,
        )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def get_audit_logs(self, **filters: Any) -> AuditLogPage:
        """
        Query the audit log.

        Returns:
            AuditLogPage with events and the total matching count

        Raises:
            AuditQueryError: filters are malformed
            AuditStoreError: the store failed or timed out
        """
        use_case = GetAuditEventsUseCase(self.uow_factory())
        result = await self._query("audit log query", use_case.execute(**filters))
        if result.is_err():
            raise AuditQueryError(result.error.code, result.error.message, result.error.reason)
        return result.value

    async def get_security_stats(self, window_days: int = 7) -> SecurityStats:
        """
        Aggregate security statistics over a trailing window.

        Raises:
            AuditQueryError: window_days is out of range
            AuditStoreError: the store failed or timed out
        """
        use_case = GetSecurityStatsUseCase(self.uow_factory(), clock=self.clock or utc_now)
        result = await self._query("security stats query", use_case.execute(window_days))
        if result.is_err():
            raise AuditQueryError(result.error.code, result.error.message, result.error.reason)
        return result.value

    async def _query(self, name: str, coro):
        try:
            return await asyncio.wait_for(coro, timeout=self.store_timeout)
        except asyncio.TimeoutError as exc:
            logger.error(f"Audit {name} timed out after {self.store_timeout}s")
            raise AuditStoreError(f"Audit {name} timed out") from exc
        except Exception as exc:
            logger.exception(f"Audit {name} failed")
            raise AuditStoreError(f"Audit {name} failed") from exc
