from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlmodel import select, update
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.repositories.session_repository import ISessionRepository
from src.domain.entities import SecuritySession, TerminationReason


class SessionRepository(ISessionRepository):
    """SecuritySession repository implementation using SQLModel"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_active_by_token(self, session_token: str) -> Optional[SecuritySession]:
        """Get the active session for a token"""
        stmt = select(SecuritySession).where(
            SecuritySession.session_token == session_token,
            SecuritySession.is_active == True,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, session_obj: SecuritySession) -> SecuritySession:
        """Create a new session"""
        self.session.add(session_obj)
        await self.session.flush()
        await self.session.refresh(session_obj)
        return session_obj

    async def touch(
        self, session_token: str, now: datetime, stale_before: datetime
    ) -> bool:
        """Coalesced activity update; only stale rows are written"""
        stmt = (
            update(SecuritySession)
            .where(
                SecuritySession.session_token == session_token,
                SecuritySession.is_active == True,
                SecuritySession.last_activity_at < stale_before,
            )
            .values(last_activity_at=now)
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount > 0

    async def terminate_by_token(
        self, session_token: str, reason: str, now: datetime
    ) -> int:
        stmt = (
            update(SecuritySession)
            .where(
                SecuritySession.session_token == session_token,
                SecuritySession.is_active == True,
            )
            .values(is_active=False, terminated_at=now, termination_reason=reason)
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount

    async def terminate_all_by_user_id(
        self,
        user_id: str,
        reason: str,
        now: datetime,
        except_token: Optional[str] = None,
    ) -> int:
        conditions = [
            SecuritySession.user_id == user_id,
            SecuritySession.is_active == True,
        ]
        if except_token:
            conditions.append(SecuritySession.session_token != except_token)

        stmt = (
            update(SecuritySession)
            .where(*conditions)
            .values(is_active=False, terminated_at=now, termination_reason=reason)
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount

    async def list_active_by_user_id(
        self, user_id: str, now: datetime
    ) -> List[SecuritySession]:
        stmt = (
            select(SecuritySession)
            .where(
                SecuritySession.user_id == user_id,
                SecuritySession.is_active == True,
                SecuritySession.expires_at > now,
            )
            .order_by(SecuritySession.last_activity_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_active_by_user_id(self, user_id: str, now: datetime) -> int:
        stmt = select(func.count()).select_from(SecuritySession).where(
            SecuritySession.user_id == user_id,
            SecuritySession.is_active == True,
            SecuritySession.expires_at > now,
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one() or 0)

    async def expire_before(self, now: datetime) -> int:
        stmt = (
            update(SecuritySession)
            .where(
                SecuritySession.is_active == True,
                SecuritySession.expires_at < now,
            )
            .values(is_active=False, terminated_at=now, termination_reason=TerminationReason.expired.value)
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount
