from typing import Callable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.adapter.services.unit_of_work import unit_of_work_factory
from src.api.utils.jwt import identity_from_claims, verify_jwt
from src.app.services.audit_logger import AuditLogger
from src.app.services.rate_limiter import RateLimiter, build_policies
from src.app.services.request_context import Identity, RequestContext
from src.app.services.session_registry import SessionRegistry
from src.app.services.unit_of_work import UnitOfWork
from src.app.use_cases.sessions import is_admin

engine = create_async_engine(ApplicationConfig.DB_URI, echo=False, future=True)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)

default_uow_factory = unit_of_work_factory(AsyncSessionLocal)

security = HTTPBearer()


def build_audit_logger(config, uow_factory: Callable[[], UnitOfWork]) -> AuditLogger:
    return AuditLogger(uow_factory, store_timeout=config.STORE_TIMEOUT_SECONDS)


def build_session_registry(
    config, uow_factory: Callable[[], UnitOfWork], audit_logger: AuditLogger
) -> SessionRegistry:
    return SessionRegistry(
        uow_factory,
        audit_logger=audit_logger,
        max_sessions=config.MAX_CONCURRENT_SESSIONS,
        touch_interval_seconds=config.SESSION_TOUCH_INTERVAL_SECONDS,
        store_timeout=config.STORE_TIMEOUT_SECONDS,
    )


def build_rate_limiter(
    config, uow_factory: Callable[[], UnitOfWork], audit_logger: AuditLogger
) -> RateLimiter:
    return RateLimiter(
        uow_factory,
        audit_logger=audit_logger,
        policies=build_policies(config.RATE_LIMITS),
        abuse_threshold=config.ABUSE_VIOLATION_THRESHOLD,
        abuse_window_seconds=config.ABUSE_WINDOW_SECONDS,
        retention_seconds=config.RATE_LIMIT_RETENTION_SECONDS,
        store_timeout=config.STORE_TIMEOUT_SECONDS,
    )


def get_audit_logger(request: Request) -> AuditLogger:
    return request.app.state.audit_logger


def get_session_registry(request: Request) -> SessionRegistry:
    return request.app.state.session_registry


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_request_context(request: Request) -> RequestContext:
    return RequestContext.from_request(request)


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Identity:
    """
    Dependency to extract and verify JWT token from Authorization header.

    Args:
        credentials: Bearer token from Authorization header

    Returns:
        Identity built from the user_id, email and role claims

    Raises:
        HTTPException: 401 if token is invalid or expired
    """
    identity = identity_from_claims(verify_jwt(credentials.credentials))

    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    request.state.identity = identity
    return identity


async def require_admin(identity: Identity = Depends(get_current_user)) -> Identity:
    """
    Raises:
        HTTPException: 403 unless the caller's role is admin or owner
    """
    if not is_admin(identity):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return identity
