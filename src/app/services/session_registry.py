"""
Session Registry

Tracks the lifecycle of authenticated sessions. Every operation is
fire-and-allow: a store failure is logged and turned into a neutral result so
authentication itself never fails because of session bookkeeping.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from src.app.services.audit_logger import AuditLogger
from src.app.services.request_context import Identity, RequestContext
from src.app.services.unit_of_work import UnitOfWork
from src.domain.base import utc_now
from src.domain.entities import SecuritySession, TerminationReason
from src.domain.taxonomy import AuditEventType
from src.domain.user_agent import parse_user_agent

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Session lifecycle manager.

    Business Rules:
    - At most one active row per session token; re-creating a token supersedes it
    - A user may hold max_sessions concurrent sessions; within_limit() only
      reports, the authentication layer decides to reject or evict
    - touch() writes at most once per touch_interval per session
    - Expired sessions (now > expires_at) are never reported as active
    """

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        audit_logger: Optional[AuditLogger] = None,
        max_sessions: int = 5,
        touch_interval_seconds: int = 60,
        store_timeout: float = 2.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.uow_factory = uow_factory
        self.audit_logger = audit_logger
        self.max_sessions = max_sessions
        self.touch_interval = timedelta(seconds=touch_interval_seconds)
        self.store_timeout = store_timeout
        self.clock = clock

    async def _bounded(self, coro):
        return await asyncio.wait_for(coro, timeout=self.store_timeout)

    async def create_session(
        self,
        user_id: str,
        session_token: str,
        context: Optional[RequestContext] = None,
        expires_at: Optional[datetime] = None,
    ) -> Optional[SecuritySession]:
        """
        Record a new authenticated session.

        Args:
            user_id: Authenticated identity
            session_token: Transport-level session token
            context: Request the session was created from
            expires_at: Absolute expiry (naive UTC); defaults to 24h from now

        Returns:
            The stored SecuritySession, or None if the store failed
        """
        context = context or RequestContext()
        now = self.clock()
        device = parse_user_agent(context.user_agent)

        session = SecuritySession(
            session_token=session_token,
            user_id=user_id,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            device_fingerprint=context.device_fingerprint,
            device_type=device.device_type,
            browser=device.browser,
            os=device.os,
            is_active=True,
            created_at=now,
            last_activity_at=now,
            expires_at=expires_at or now + timedelta(hours=24),
        )

        async def _create():
            async with self.uow_factory() as uow:
                await uow.sessions.terminate_by_token(
                    session_token, TerminationReason.superseded.value, now
                )
                created = await uow.sessions.create(session)
                await uow.commit()
                return created

        try:
            created = await self._bounded(_create())
        except Exception:
            logger.exception(f"Failed to record session for user {user_id}")
            return None

        if self.audit_logger:
            await self.audit_logger.log(
                AuditEventType.AUTH_SESSION_CREATED,
                "Session created",
                identity=Identity(user_id=user_id),
                context=context.model_copy(update={"session_id": session_token}),
                details={
                    "device_type": device.device_type,
                    "browser": device.browser,
                    "os": device.os,
                },
            )
        return created

    async def touch(self, session_token: str) -> bool:
        """Refresh last_activity_at, coalesced to one write per touch interval"""
        now = self.clock()

        async def _touch():
            async with self.uow_factory() as uow:
                written = await uow.sessions.touch(
                    session_token, now, stale_before=now - self.touch_interval
                )
                await uow.commit()
                return written

        try:
            return await self._bounded(_touch())
        except Exception:
            logger.warning(f"Session touch failed for token ending ...{session_token[-4:]}")
            return False

    async def get_active(self, session_token: str) -> Optional[SecuritySession]:
        """
        Resolve a token to its live session.

        Returns None when the session is unknown, terminated or past
        expires_at, so the caller answers with an unauthenticated result.
        """
        async def _get():
            async with self.uow_factory() as uow:
                session = await uow.sessions.get_active_by_token(session_token)
            if session is None or session.expires_at <= self.clock():
                return None
            return session

        try:
            return await self._bounded(_get())
        except Exception:
            logger.exception("Session lookup failed")
            return None

    async def terminate(
        self,
        session_token: str,
        reason: str = TerminationReason.logout.value,
        identity: Optional[Identity] = None,
        context: Optional[RequestContext] = None,
    ) -> bool:
        """Terminate one session. Returns True if an active session was closed."""
        now = self.clock()

        async def _terminate():
            async with self.uow_factory() as uow:
                count = await uow.sessions.terminate_by_token(session_token, reason, now)
                await uow.commit()
                return count

        try:
            count = await self._bounded(_terminate())
        except Exception:
            logger.exception("Failed to terminate session")
            return False

        if count and self.audit_logger:
            await self.audit_logger.log(
                AuditEventType.AUTH_SESSION_TERMINATED,
                f"Session terminated ({reason})",
                identity=identity,
                context=context,
                details={"reason": reason},
            )
        return count > 0

    async def terminate_all(
        self,
        user_id: str,
        except_token: Optional[str] = None,
        reason: str = TerminationReason.forced.value,
        identity: Optional[Identity] = None,
        context: Optional[RequestContext] = None,
    ) -> int:
        """
        Terminate every active session of a user.

        Args:
            user_id: Whose sessions to close
            except_token: Session to keep (e.g. the caller's current one)
            reason: Stored termination reason; "admin" records a force logout
            identity: Who requested it, for the audit trail

        Returns:
            Number of sessions terminated (0 on store failure)
        """
        now = self.clock()

        async def _terminate_all():
            async with self.uow_factory() as uow:
                count = await uow.sessions.terminate_all_by_user_id(
                    user_id, reason, now, except_token=except_token
                )
                await uow.commit()
                return count

        try:
            count = await self._bounded(_terminate_all())
        except Exception:
            logger.exception(f"Failed to terminate sessions for user {user_id}")
            return 0

        if self.audit_logger:
            if reason == TerminationReason.admin.value:
                await self.audit_logger.log_admin_action(
                    identity or Identity(user_id=user_id),
                    AuditEventType.ADMIN_FORCE_LOGOUT,
                    "Forced logout of all user sessions",
                    target_id=user_id,
                    details={"terminated_count": count},
                    context=context,
                )
            else:
                await self.audit_logger.log(
                    AuditEventType.AUTH_SESSION_TERMINATED,
                    f"Terminated {count} session(s) ({reason})",
                    identity=identity or Identity(user_id=user_id),
                    target_id=user_id,
                    target_type="user",
                    context=context,
                    details={
                        "terminated_count": count,
                        "kept_session": bool(except_token),
                        "reason": reason,
                    },
                )
        return count

    async def list_active(self, user_id: str) -> List[SecuritySession]:
        async def _list():
            async with self.uow_factory() as uow:
                return await uow.sessions.list_active_by_user_id(user_id, self.clock())

        try:
            return await self._bounded(_list())
        except Exception:
            logger.exception(f"Failed to list sessions for user {user_id}")
            return []

    async def count_active(self, user_id: str) -> int:
        async def _count():
            async with self.uow_factory() as uow:
                return await uow.sessions.count_active_by_user_id(user_id, self.clock())

        try:
            return await self._bounded(_count())
        except Exception:
            logger.exception(f"Failed to count sessions for user {user_id}")
            return 0

    async def within_limit(self, user_id: str, max_sessions: Optional[int] = None) -> bool:
        """True if the user may open another session (count < ceiling)"""
        ceiling = max_sessions if max_sessions is not None else self.max_sessions
        return await self.count_active(user_id) < ceiling

    async def expire_idle(self) -> int:
        """Close sessions whose expires_at has passed. Returns count."""
        now = self.clock()

        async def _expire():
            async with self.uow_factory() as uow:
                count = await uow.sessions.expire_before(now)
                await uow.commit()
                return count

        try:
            count = await self._bounded(_expire())
        except Exception:
            logger.exception("Failed to expire idle sessions")
            return 0

        if count:
            logger.info(f"Expired {count} idle session(s)")
        return count
