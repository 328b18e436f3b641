"""
Audit API Routes

Compliance reporting over the security audit log.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from libs.result import Error
from src.api.error import ClientError, ServerError
from src.app.services.audit_logger import AuditLogger, AuditQueryError, AuditStoreError
from src.app.services.request_context import Identity, RequestContext
from src.app.use_cases.audit import AuditLogPage, SecurityStats
from src.depends import get_audit_logger, get_request_context, require_admin

router = APIRouter(prefix="/audit", tags=["Audit"])


def _query_error(exc: AuditQueryError) -> ClientError:
    return ClientError(
        Error(exc.code, str(exc), exc.reason),
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
    )


def _store_error(exc: AuditStoreError) -> ServerError:
    return ServerError(Error(exc.code, str(exc)))


@router.get(
    "/events",
    status_code=status.HTTP_200_OK,
    response_model=AuditLogPage,
)
async def get_audit_events(
    actor_id: Optional[str] = Query(None),
    event_type: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    severity: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(100, description="Page size (1-500)"),
    offset: int = Query(0, description="Rows to skip"),
    admin: Identity = Depends(require_admin),
    audit_logger: AuditLogger = Depends(get_audit_logger),
    context: RequestContext = Depends(get_request_context),
):
    """
    Query Audit Events

    Returns audit events matching all given filters, newest first, plus the
    total number of matches. Only accessible by admin and owner roles.

    Raises:
        - 401 Unauthorized: Invalid or expired JWT
        - 403 Forbidden: Insufficient role
        - 422 Unprocessable Entity: Malformed filter (INVALID_FILTER)
        - 500 Internal Server Error: Audit store unavailable (AUDIT_STORE_UNAVAILABLE)
    """
    try:
        page = await audit_logger.get_audit_logs(
            actor_id=actor_id,
            event_type=event_type,
            category=category,
            severity=severity,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
            offset=offset,
        )
    except AuditQueryError as exc:
        raise _query_error(exc)
    except AuditStoreError as exc:
        raise _store_error(exc)

    await audit_logger.log_data_access(admin, "audit_log", "Viewed audit log", context=context)
    return page


@router.get(
    "/stats",
    status_code=status.HTTP_200_OK,
    response_model=SecurityStats,
)
async def get_security_stats(
    days: int = Query(7, description="Trailing window in days (1-365)"),
    admin: Identity = Depends(require_admin),
    audit_logger: AuditLogger = Depends(get_audit_logger),
):
    """
    Security Statistics

    Counts of logins, failed logins, data modifications, security alerts and
    critical events over the trailing window.
    """
    try:
        return await audit_logger.get_security_stats(window_days=days)
    except AuditQueryError as exc:
        raise _query_error(exc)
    except AuditStoreError as exc:
        raise _store_error(exc)
